# file: app/core/errors.py

import logging
from contextlib import contextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger("errors")


class ChatError(Exception):
    code = "chat_error"
    status_code = 400

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.code.replace("_", " ")
        super().__init__(self.detail)


class InvalidOwner(ChatError):
    code = "invalid_owner"
    status_code = 422


class IdentityRequired(ChatError):
    """The caller is a guest without a resolvable GuestUser: show the guest form."""
    code = "identity_required"
    status_code = 401


class AccessDenied(ChatError):
    code = "access_denied"
    status_code = 403


class Forbidden(ChatError):
    code = "forbidden"
    status_code = 403


class NotFound(ChatError):
    code = "not_found"
    status_code = 404


class InvalidContent(ChatError):
    code = "invalid_content"
    status_code = 422


class ConversationClosed(ChatError):
    code = "conversation_closed"
    status_code = 409


class PersistenceError(ChatError):
    code = "persistence_error"
    status_code = 503


class RelayDeliveryFailure(Exception):
    """Best-effort relay send failed. Logged, never surfaced to HTTP callers."""
    pass


@contextmanager
def persistence_errors(db: Session, action: str):
    """
    Rolls back and re-raises store failures as PersistenceError.
    """
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"❌ [DB] {action} failed: {e}")
        raise PersistenceError(f"{action} failed") from e


async def chat_error_handler(request: Request, exc: ChatError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.detail},
    )


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(ChatError, chat_error_handler)
