"""Domain error taxonomy.

Every error raised by the engines and the lifecycle carries a stable ``code``
and a client-facing ``message_user``; ``app.main`` renders them as
``{code, message_user, error, **extra}``.
"""
from typing import Any, Optional

from fastapi import status


class DiagnosticError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        code: str,
        message_user: str,
        status_code: Optional[int] = None,
        **extra: Any,
    ) -> None:
        super().__init__(f"{code}: {message_user}")
        self.code = code
        self.message_user = message_user
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_body(self) -> dict:
        body = {"code": self.code, "message_user": self.message_user, "error": self.code}
        body.update(self.extra)
        return body


class ValidationFailed(DiagnosticError):
    """Missing or invalid request fields."""


class StatePreconditionFailed(DiagnosticError):
    """The assessment/action is not in a state that allows the operation."""


class IncompleteError(DiagnosticError):
    """Required items are missing; ``extra`` lists exactly which ones."""


class NotFoundError(DiagnosticError):
    status_code = status.HTTP_404_NOT_FOUND


class WriteOnceConflict(DiagnosticError):
    status_code = status.HTTP_409_CONFLICT


class IntegrityFailure(DiagnosticError):
    """Fatal configuration/catalog problem; not fixable by the user."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# ── Frequently raised errors ─────────────────────────────────────────────────

def assessment_not_found(assessment_id: str) -> NotFoundError:
    return NotFoundError(
        "DIAG_NOT_FOUND",
        "Diagnóstico não encontrado.",
        assessment_id=assessment_id,
    )


def diag_not_ready() -> StatePreconditionFailed:
    return StatePreconditionFailed(
        "DIAG_NOT_READY",
        "Conclua o diagnóstico para continuar.",
    )


def cycle_closed() -> StatePreconditionFailed:
    return StatePreconditionFailed(
        "CYCLE_CLOSED",
        "Ciclo encerrado. Inicie um novo ciclo para alterar o plano.",
        status_code=status.HTTP_409_CONFLICT,
    )


def action_not_found(action_key: str) -> NotFoundError:
    return NotFoundError(
        "ACTION_NOT_FOUND",
        "Ação não encontrada no plano.",
        action_key=action_key,
    )
