from uuid import UUID

from pydantic import BaseModel

from notification_engine.core.domain.types import NotificationChannel


class OutboundMessageDTO(BaseModel):
    """
    Mensagem pronta para envio por um adaptador de canal.
    """
    channel: NotificationChannel
    recipient: str  # telefone E.164 ou endereço de e-mail
    body: str
    subject: str | None = None
    job_id: UUID | None = None
