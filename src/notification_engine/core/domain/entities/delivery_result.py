"""
Resultado classificado de um envio feito por um adaptador de canal.

O motor de fila decide a transição do job exclusivamente a partir
deste tipo: `Delivered`, `TransientFailure` ou `PermanentFailure`.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Delivered:
    provider_message_id: str | None = None
    confirmed: bool = False


@dataclass(frozen=True, slots=True)
class TransientFailure:
    reason: str


@dataclass(frozen=True, slots=True)
class PermanentFailure:
    reason: str


DeliveryResult = Delivered | TransientFailure | PermanentFailure
