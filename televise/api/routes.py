"""
Televise HTTP Routes
====================
Viewer-facing endpoints (heartbeat, count, votes) and the operator's
metadata update hook. Every handler reaches storage through the Services
container stored on ``app.state`` at startup.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel

from ..bootstrap.services import Services
from ..core.errors import BackendUnavailable, InvalidIdentity, NotFound
from ..identity import identity_from_headers
from ..snowflake import Snowflake, SnowflakeHex
from ..utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["televise"])

MANIFEST_KEY = "manifest"


class InfoResponse(BaseModel):
    viewers: int
    title: Optional[str] = None


class ResultsResponse(BaseModel):
    id: SnowflakeHex
    title: str
    votes: int


def get_services(request: Request) -> Services:
    return request.app.state.services


def _peer(request: Request) -> Optional[str]:
    # Starlette already splits host and port
    if request.client is None:
        return None
    return request.client.host


@router.get("/info", response_model=InfoResponse)
async def info(request: Request, services: Services = Depends(get_services)) -> InfoResponse:
    """Heartbeat: record the caller's presence and return the cached view."""
    identity = identity_from_headers(request.headers, _peer(request))
    await services.store.upsert(identity)
    snapshot = services.cache.snapshot()
    return InfoResponse(viewers=snapshot.viewers, title=snapshot.title)


@router.get("/count", response_class=PlainTextResponse)
async def count(services: Services = Depends(get_services)) -> str:
    """Live viewer count, bypassing the cache."""
    viewers = await services.store.count(services.config.viewer_window)
    return str(viewers)


@router.get("/update")
async def update(
    k: str = Query(default=""),
    v: str = Query(default=""),
    poll: str = Query(default=""),
    services: Services = Depends(get_services),
) -> Response:
    """Set metadata ``k``; an empty ``v`` clears it. ``poll=true`` also opens a poll option."""
    if not k:
        return PlainTextResponse("missing metadata key", status_code=400)
    value = v or None
    open_poll = poll == "true" and value is not None

    # validate every write before the first one
    services.metadata.validate(k, value)
    if open_poll:
        services.metadata.validate(f"{k}_id", None)
        services.polls.validate_title(value)

    await services.metadata.set(k, value)
    if open_poll:
        option_id = await services.polls.insert_option(value)
        await services.metadata.set(f"{k}_id", option_id.hex())

    return Response(status_code=200)


@router.get("/manifest", response_class=PlainTextResponse)
async def manifest(services: Services = Depends(get_services)) -> str:
    value = await services.metadata.get(MANIFEST_KEY)
    return value or ""


@router.get("/vote")
async def vote(
    request: Request,
    id: str = Query(default=""),
    services: Services = Depends(get_services),
) -> Response:
    try:
        option_id = Snowflake.parse(id)
    except ValueError:
        return PlainTextResponse("malformed option id", status_code=400)

    identity = identity_from_headers(request.headers, _peer(request))
    counted = await services.polls.cast_vote(identity.key, option_id)
    if not counted:
        logger.debug("vote_repeated", option_id=option_id.hex())
    return Response(status_code=200)


@router.get("/results", response_model=ResultsResponse)
async def results(services: Services = Depends(get_services)) -> ResultsResponse:
    """Tally for the most recently opened poll option."""
    result = await services.polls.last_results()
    return ResultsResponse(id=result.option_id, title=result.title, votes=result.votes)


@router.get("/health")
async def health(services: Services = Depends(get_services)) -> Dict[str, Any]:
    presence_ok = await services.store.ping()
    try:
        sql_ok = await services.database.run(services.database.ping)
    except BackendUnavailable:
        sql_ok = False

    return {
        "status": "operational" if presence_ok and sql_ok else "degraded",
        "backend": services.store.backend,
        "storage": {
            "presence": presence_ok,
            "sql": sql_ok,
        },
        "cache": {
            "viewers": services.cache.viewers,
            "refreshed_at": (
                services.cache.snapshot().refreshed_at.isoformat()
                if services.cache.snapshot().refreshed_at else None
            ),
        },
    }


def register_error_handlers(app: FastAPI) -> None:
    """Translate the Televise error taxonomy into HTTP statuses."""

    @app.exception_handler(InvalidIdentity)
    async def invalid_identity_handler(request: Request, exc: InvalidIdentity) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(BackendUnavailable)
    async def backend_unavailable_handler(request: Request, exc: BackendUnavailable) -> JSONResponse:
        logger.error("backend_unavailable", backend=exc.backend, path=request.url.path, error=str(exc))
        return JSONResponse(status_code=503, content={"detail": "storage backend unavailable"})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})
