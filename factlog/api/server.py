"""
factlog: Entity History API Server
==================================

HTTP surface layered on the reconstruction pipeline.

Endpoints:
- GET  /health
- GET  /api/v1/entities
- POST /api/v1/entities/{entity_id}/transactions  -> Assert attributes
- POST /api/v1/entities/{entity_id}/retractions   -> Retract attributes
- GET  /api/v1/entities/{entity_id}/history       -> All snapshots
- GET  /api/v1/entities/{entity_id}/current       -> Latest snapshot
- GET  /api/v1/entities/{entity_id}/deltas        -> Per-transaction changes
- GET  /api/v1/entities/{entity_id}/as-of/{tx}    -> Snapshot at transaction
- GET  /api/v1/entities/{entity_id}/snapshot/{ts} -> Snapshot at time
- GET  /api/v1/entities/{entity_id}/verify        -> Terminal equivalence check

Usage:
    uvicorn factlog.api.server:app --reload
"""
from contextlib import asynccontextmanager
import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..contracts.base import ErrorCode, FactLogError, Timestamp
from ..contracts.values import Value
from ..engine import FactLogConfig, FactLogEngine
from .mapper import map_delta, map_error, map_history, map_receipt, map_snapshot


logger = logging.getLogger(__name__)

_STATUS_BY_CODE = {
    ErrorCode.STORE_UNAVAILABLE: 503,
    ErrorCode.MALFORMED_FACT_GROUP: 500,
    ErrorCode.TERMINAL_STATE_MISMATCH: 500,
    ErrorCode.ENTITY_NOT_FOUND: 404,
}


# =============================================================================
# REQUEST MODELS
# =============================================================================

class EncodedValue(BaseModel):
    kind: str
    value: Any


class TransactionRequest(BaseModel):
    changes: Dict[str, EncodedValue]
    timestamp: Optional[str] = None


class RetractionRequest(BaseModel):
    attributes: List[str]
    timestamp: Optional[str] = None


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def get_engine(request: Request) -> FactLogEngine:
    engine = request.app.state.engine
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return engine


def _parse_timestamp(raw: Optional[str]) -> Optional[Timestamp]:
    if raw is None:
        return None
    try:
        return Timestamp.from_iso(raw)
    except ValueError:
        raise HTTPException(400, detail=f"Invalid timestamp format: {raw}")


def create_app(engine: Optional[FactLogEngine] = None) -> FastAPI:
    """
    Build the API application.

    Without an explicit engine, one is created at startup from
    FACTLOG_* environment variables.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.engine is None:
            app.state.engine = FactLogEngine(FactLogConfig.from_env())
        yield
        logger.info("Shutting down API")

    app = FastAPI(
        title="factlog API",
        version="0.1.0",
        description="Event-sourced entity history",
        lifespan=lifespan
    )
    app.state.engine = engine

    @app.exception_handler(FactLogError)
    async def handle_factlog_error(request: Request, exc: FactLogError):
        status = _STATUS_BY_CODE.get(exc.code, 500)
        if status >= 500:
            logger.error("%s on %s: %s", exc.code.name, request.url.path, exc.message)
        return JSONResponse(status_code=status, content=map_error(exc.to_error()))

    @app.get("/health")
    async def health_check(engine: FactLogEngine = Depends(get_engine)):
        return {"status": "online", "backend": engine.config.storage.backend_type}

    @app.get("/api/v1/entities")
    def list_entities(engine: FactLogEngine = Depends(get_engine)):
        return {"entities": engine.entity_ids()}

    @app.post("/api/v1/entities/{entity_id}/transactions", status_code=201)
    def post_transaction(
        entity_id: str,
        body: TransactionRequest,
        engine: FactLogEngine = Depends(get_engine)
    ):
        if not body.changes:
            raise HTTPException(400, detail="changes must not be empty")
        try:
            changes = {
                attribute: Value.from_json(encoded.model_dump())
                for attribute, encoded in body.changes.items()
            }
            receipt = engine.transact(entity_id, changes, _parse_timestamp(body.timestamp))
        except (TypeError, ValueError) as e:
            raise HTTPException(400, detail=str(e))
        return map_receipt(receipt)

    @app.post("/api/v1/entities/{entity_id}/retractions", status_code=201)
    def post_retraction(
        entity_id: str,
        body: RetractionRequest,
        engine: FactLogEngine = Depends(get_engine)
    ):
        try:
            receipt = engine.retract(entity_id, body.attributes, _parse_timestamp(body.timestamp))
        except ValueError as e:
            raise HTTPException(400, detail=str(e))
        return map_receipt(receipt)

    @app.get("/api/v1/entities/{entity_id}/history")
    def get_history(entity_id: str, engine: FactLogEngine = Depends(get_engine)):
        return map_history(entity_id, engine.history(entity_id, require=True))

    @app.get("/api/v1/entities/{entity_id}/current")
    def get_current(entity_id: str, engine: FactLogEngine = Depends(get_engine)):
        snapshot = engine.current(entity_id)
        if snapshot is None:
            raise HTTPException(404, detail=f"Entity {entity_id} not found")
        return map_snapshot(snapshot)

    @app.get("/api/v1/entities/{entity_id}/deltas")
    def get_deltas(entity_id: str, engine: FactLogEngine = Depends(get_engine)):
        deltas = engine.deltas(entity_id)
        if not deltas:
            raise HTTPException(404, detail=f"Entity {entity_id} not found")
        return {"entity_id": entity_id, "deltas": [map_delta(d) for d in deltas]}

    @app.get("/api/v1/entities/{entity_id}/as-of/{transaction_id}")
    def get_as_of_transaction(
        entity_id: str,
        transaction_id: int,
        engine: FactLogEngine = Depends(get_engine)
    ):
        snapshot = engine.as_of_transaction(entity_id, transaction_id)
        if snapshot is None:
            raise HTTPException(404, detail=f"No state for {entity_id} at transaction {transaction_id}")
        return map_snapshot(snapshot)

    @app.get("/api/v1/entities/{entity_id}/snapshot/{timestamp}")
    def get_as_of_time(
        entity_id: str,
        timestamp: str,
        engine: FactLogEngine = Depends(get_engine)
    ):
        at = _parse_timestamp(timestamp)
        snapshot = engine.as_of_time(entity_id, at)
        if snapshot is None:
            raise HTTPException(404, detail=f"No state for {entity_id} at {timestamp}")
        return map_snapshot(snapshot)

    @app.get("/api/v1/entities/{entity_id}/verify")
    def verify_entity(entity_id: str, engine: FactLogEngine = Depends(get_engine)):
        consistent, error = engine.verify(entity_id)
        return {
            "entity_id": entity_id,
            "consistent": consistent,
            "error": map_error(error) if error else None,
        }

    return app


app = create_app()
