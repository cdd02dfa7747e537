from __future__ import annotations

import re

import phonenumbers
from phonenumbers import NumberParseException

_MIN_DIGITS = 10
_MAX_DIGITS = 15


def _only_digits(s: str) -> str:
    return re.sub(r"\D+", "", s or "")


def normalize_phone(raw: str | None, default_region: str = "AR") -> str | None:
    """
    Retorna o número em E.164 (`+5491155551234`) ou None se inválido.

    - Números sem DDI são interpretados na `default_region`.
    - Prefixo internacional `00` é aceito.
    """
    if not raw or not raw.strip():
        return None

    try:
        num = phonenumbers.parse(raw, default_region)
    except NumberParseException:
        digits = _only_digits(raw)
        if digits.startswith("00"):
            digits = digits[2:]
        try:
            num = phonenumbers.parse("+" + digits)
        except NumberParseException:
            return None

    if not phonenumbers.is_possible_number(num):
        return None

    e164 = phonenumbers.format_number(num, phonenumbers.PhoneNumberFormat.E164)
    if not (_MIN_DIGITS <= len(_only_digits(e164)) <= _MAX_DIGITS):
        return None
    return e164
