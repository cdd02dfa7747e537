"""
Base das views do motor: traduz exceções de domínio em respostas HTTP.
"""
from __future__ import annotations

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from notification_engine.adapters.config.composition_root import get_control_service
from notification_engine.core.domain.events.exceptions import (
    InvalidNotificationStatus,
    NotFoundError,
    PermanentNotificationError,
    SchedulerUnavailable,
    SystemUnhealthy,
    TaskAlreadyRunningError,
    TemporaryNotificationError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# ordem importa: subclasses antes das bases
ERROR_STATUS_MAP: tuple[tuple[type[Exception], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InvalidNotificationStatus, status.HTTP_409_CONFLICT),
    (TaskAlreadyRunningError, status.HTTP_409_CONFLICT),
    (SchedulerUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PermanentNotificationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (TemporaryNotificationError, status.HTTP_502_BAD_GATEWAY),
)


def parse_body(dto_cls: type[BaseModel], data) -> BaseModel:
    if hasattr(data, "dict"):
        data = data.dict()  # QueryDict → valores simples
    try:
        return dto_cls.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            "; ".join(f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors())
        ) from exc


class EngineAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @property
    def service(self):
        return get_control_service()

    def handle_exception(self, exc):
        if isinstance(exc, SystemUnhealthy):
            return Response(
                {"detail": str(exc), "problems": exc.problems, **exc.report},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        for exc_cls, http_status in ERROR_STATUS_MAP:
            if isinstance(exc, exc_cls):
                logger.info(
                    "http.domain_error",
                    view=type(self).__name__,
                    error=type(exc).__name__,
                    status=http_status,
                )
                return Response({"detail": str(exc), "error": type(exc).__name__}, status=http_status)
        return super().handle_exception(exc)
