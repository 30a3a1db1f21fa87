import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from caseledger.core.errors import CaseLedgerError, ValidationError
from caseledger.core.mutation import ENTITY_TYPES
from caseledger.core.scope import Scope
from caseledger.services.command_log import CommandLog
from caseledger.services.db_service import DatabaseService
from caseledger.webserver.config import ServerConfig

# Configure logging
logger = logging.getLogger(__name__)

# Global config (set on startup)
_config: ServerConfig = ServerConfig()

# HTTP status per error kind
STATUS_CODES = {
    "validation": 422,
    "not_found": 404,
    "conflict": 409,
    "transaction": 503,
}


class SubmitCommandRequest(BaseModel):
    action_type: str
    params: Dict[str, Any] = Field(default_factory=dict)


def get_db_service() -> DatabaseService:
    """
    Create a new DatabaseService instance for the current request.
    This ensures thread safety by creating a fresh connection per request/thread.
    """
    service = DatabaseService(db_path=_config.db_path)
    service.connect()
    return service


@contextmanager
def open_command_log() -> Iterator[CommandLog]:
    """Yields a CommandLog on a per-request connection and closes it afterwards."""
    db = get_db_service()
    try:
        yield CommandLog(db, config=_config.ledger_config())
    finally:
        db.close()


def _status_for(error: Optional[CaseLedgerError]) -> int:
    if error is None:
        return 200
    return STATUS_CODES.get(error.kind, 500)


def create_app(config: ServerConfig) -> FastAPI:
    """
    Factory function to create the FastAPI app with the given configuration.
    """
    global _config
    _config = config

    app = FastAPI(title="CaseLedger Command Log")

    @app.exception_handler(CaseLedgerError)
    def handle_ledger_error(request: Request, exc: CaseLedgerError) -> JSONResponse:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
        return JSONResponse(status_code=_status_for(exc), content=exc.to_dict())

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    @app.post("/api/scopes/{scope_id}/commands", status_code=201)
    def submit_command(
        scope_id: str,
        body: SubmitCommandRequest,
        x_actor_id: str = Header("system"),
    ) -> dict[str, Any]:
        """
        Submit a command. Responds with the new command id and description.
        """
        with open_command_log() as log:
            result = log.submit_command(
                Scope(scope_id, x_actor_id), body.action_type, body.params
            )
        return result.data

    @app.get("/api/scopes/{scope_id}/commands/{command_id}")
    def get_command(scope_id: str, command_id: int) -> dict[str, Any]:
        with open_command_log() as log:
            return log.get_command(Scope(scope_id), command_id).to_dict()

    # -------------------------------------------------------------------------
    # Undo / Redo
    # -------------------------------------------------------------------------

    @app.get("/api/scopes/{scope_id}/undo/last")
    def get_last_undo(scope_id: str) -> dict[str, Any]:
        with open_command_log() as log:
            return {"command": log.get_last_undo(Scope(scope_id))}

    @app.get("/api/scopes/{scope_id}/redo/last")
    def get_last_redo(scope_id: str) -> dict[str, Any]:
        with open_command_log() as log:
            return {"command": log.get_last_redo(Scope(scope_id))}

    @app.get("/api/scopes/{scope_id}/undo/stack")
    def get_undo_stack(scope_id: str, limit: Optional[int] = None) -> list[dict[str, Any]]:
        with open_command_log() as log:
            return log.get_undo_stack(Scope(scope_id), limit)

    @app.get("/api/scopes/{scope_id}/redo/stack")
    def get_redo_stack(scope_id: str, limit: Optional[int] = None) -> list[dict[str, Any]]:
        with open_command_log() as log:
            return log.get_redo_stack(Scope(scope_id), limit)

    @app.post("/api/scopes/{scope_id}/undo")
    def execute_undo(scope_id: str, x_actor_id: str = Header("system")) -> JSONResponse:
        """
        Undo the most recent command. Conflicts respond with 409.
        """
        with open_command_log() as log:
            result = log.execute_undo(Scope(scope_id, x_actor_id))
        return JSONResponse(status_code=_status_for(result.error), content=result.to_dict())

    @app.post("/api/scopes/{scope_id}/redo")
    def execute_redo(scope_id: str, x_actor_id: str = Header("system")) -> JSONResponse:
        with open_command_log() as log:
            result = log.execute_redo(Scope(scope_id, x_actor_id))
        return JSONResponse(status_code=_status_for(result.error), content=result.to_dict())

    @app.delete("/api/scopes/{scope_id}/history")
    def clear_history(scope_id: str) -> dict[str, int]:
        with open_command_log() as log:
            return {"expired": log.clear_history(Scope(scope_id))}

    # -------------------------------------------------------------------------
    # Audit trail
    # -------------------------------------------------------------------------

    @app.get("/api/scopes/{scope_id}/audit/{entity_type}/{entity_id}")
    def get_audit_log(scope_id: str, entity_type: str, entity_id: int) -> list[dict[str, Any]]:
        """
        Full audit history of one entity, oldest first.
        """
        if entity_type not in ENTITY_TYPES:
            raise ValidationError(
                f"Unknown entity type: {entity_type}", {"entity_type": "unknown"}
            )
        with open_command_log() as log:
            entries = log.get_audit_log(entity_id, entity_type, Scope(scope_id))
        return [entry.to_dict() for entry in entries]

    @app.get("/api/scopes/{scope_id}/changelog")
    def get_changelog(scope_id: str, limit: int = 100) -> list[dict[str, Any]]:
        with open_command_log() as log:
            entries = log.get_changelog(Scope(scope_id), limit)
        return [entry.to_dict() for entry in entries]

    @app.get("/health")
    def health_check() -> dict[str, str]:
        return {"status": "ok"}

    return app
