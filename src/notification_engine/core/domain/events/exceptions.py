class NotificationError(Exception):
    """Classe base para todas as exceções do motor de notificações."""
    pass


# ───────────────────────────────────────────────
# Não encontrado
# ───────────────────────────────────────────────
class NotFoundError(NotificationError):
    """Entidade referenciada (turno, job ou tarefa) não existe."""
    pass


class AppointmentNotFound(NotFoundError):
    def __init__(self, appointment_id) -> None:
        self.appointment_id = appointment_id
        super().__init__(f"Turno não encontrado: {appointment_id}")


class PatientNotFound(NotFoundError):
    def __init__(self, patient_id) -> None:
        self.patient_id = patient_id
        super().__init__(f"Paciente não encontrado: {patient_id}")


class NotificationNotFound(NotFoundError):
    def __init__(self, job_id) -> None:
        self.job_id = job_id
        super().__init__(f"Notificação não encontrada: {job_id}")


class TaskNotFound(NotFoundError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tarefa desconhecida: {name}")


# ───────────────────────────────────────────────
# Entrada inválida / estado inválido
# ───────────────────────────────────────────────
class ValidationError(NotificationError):
    """Canal inválido, data malformada, parâmetros fora do intervalo."""
    pass


class InvalidNotificationStatus(NotificationError):
    """Reenvio solicitado para um job que não está em FAILED/DEAD."""

    def __init__(self, job_id, status) -> None:
        self.job_id = job_id
        self.status = status
        super().__init__(
            f"Notificação {job_id} está em {status}; reenvio permitido apenas a partir de FAILED ou DEAD"
        )


# ───────────────────────────────────────────────
# Entrega
# ───────────────────────────────────────────────
class PermanentNotificationError(NotificationError):
    """
    Representa um erro permanente que não deve ser retentado.
    Exemplos:
    - 4xx: Destinatário inválido (e-mail não existe, telefone formatado incorretamente).
    - Credenciais inválidas do provedor.
    """
    pass


class TemporaryNotificationError(NotificationError):
    """
    Representa um erro temporário que pode ser resolvido com uma nova tentativa.
    Exemplos:
    - 5xx: Servidor do provedor de WhatsApp/E-mail indisponível.
    - Falhas de rede, timeouts.
    """
    pass


# ───────────────────────────────────────────────
# Agendador / Saúde
# ───────────────────────────────────────────────
class SchedulerTaskError(NotificationError):
    """Falha isolada de uma tarefa agendada."""

    def __init__(self, name: str, cause: BaseException | None = None) -> None:
        self.name = name
        self.cause = cause
        super().__init__(f"Tarefa '{name}' falhou: {cause}")


class TaskAlreadyRunningError(NotificationError):
    """Execução manual rejeitada porque a tarefa já está em andamento."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tarefa '{name}' já está em execução")


class SystemUnhealthy(NotificationError):
    """Store ou adaptadores inacessíveis."""

    def __init__(self, problems: list[str], report: dict | None = None) -> None:
        self.problems = problems
        self.report = report or {}
        super().__init__("Sistema indisponível: " + "; ".join(problems))


class SchedulerUnavailable(NotificationError):
    """Cache configurado é local ao processo; locks e toggles não seriam vistos pelos demais."""
    pass
