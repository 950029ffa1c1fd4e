from contextlib import asynccontextmanager
from functools import lru_cache
from threading import Event
from typing import Any, Dict, Optional, Annotated
import asyncio
import json as _json

from fastapi import Depends, FastAPI, Form, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .dispatcher import BatchResponse
from .errors import InvalidQuery, LookupFailure, MalformedDocument
from .logging_config import get_logger, setup_logging
from .reconcile_service import ReconcileService
from .reconmodels import service_metadata, to_reconcile_result
from .search_query import SearchQuery, build_batch, parse_query_param
from .settings import get_settings
from .viaf_client import ViafClient

setup_logging(get_settings().log_level)
logger = get_logger(__name__)

#seconds between checks for a client that went away mid-batch
DISCONNECT_POLL = 0.1


@lru_cache
def get_service() -> ReconcileService:
    settings = get_settings()
    return ReconcileService(ViafClient(settings), settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if get_service.cache_info().currsize:
        get_service().client.close()


app = FastAPI(title="VIAF Reconciliation API", version="0.2.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"]
)


def _json_response(payload: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        content=payload,
        status_code=status_code,
        media_type="application/json; charset=utf-8",
        headers={"Cache-Control": "no-store"},
    )


@app.exception_handler(InvalidQuery)
async def invalid_query_handler(request: Request, exc: InvalidQuery):
    logger.warning(f"Rejected query: {exc}")
    return _json_response({"detail": str(exc)}, status_code=400)


@app.exception_handler(LookupFailure)
@app.exception_handler(MalformedDocument)
async def registry_error_handler(request: Request, exc: Exception):
    return _json_response({"detail": str(exc)}, status_code=502)


@app.get("/")
def manifest() -> JSONResponse:
    return _json_response(service_metadata(get_settings().service_name).model_dump())


@app.get("/healthy")
def health() -> JSONResponse:
    return _json_response({"status": "ok"})


#http://127.0.0.1:8000/reconcile?queries={%22q0%22:{%22query%22:%22Steinbeck%22,%22limit%22:3}}
#http://127.0.0.1:8000/reconcile/LC?query=Steinbeck

async def _read_params(request: Request, queries: Optional[str], query: Optional[str]):
    #form body first (OpenRefine POSTs form data), then the query string
    queries = queries or request.query_params.get("queries")
    query = query or request.query_params.get("query") or request.query_params.get("q")

    #raw JSON body
    if queries is None and query is None and request.method == "POST":
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            queries = body.get("queries")
            query = body.get("query")

    return queries, query


async def _watch_disconnect(request: Request, cancel: Event) -> None:
    while not cancel.is_set():
        if await request.is_disconnected():
            logger.warning("Client disconnected, cancelling batch")
            cancel.set()
            return
        await asyncio.sleep(DISCONNECT_POLL)


async def run_batch(request: Request, service: ReconcileService, batch: Dict[str, SearchQuery]) -> BatchResponse:
    """Run a batch off the event loop, cancelling it if the client goes away."""
    cancel = Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel))
    #the thread hop only gives up once its thread returns, so the shield lets a cancelled request reach the finally at once
    worker = asyncio.ensure_future(run_in_threadpool(service.search_batch, batch, cancel))
    try:
        return await asyncio.shield(worker)
    finally:
        cancel.set()
        watcher.cancel()


async def _reconcile(
    request: Request,
    service: ReconcileService,
    source: Optional[str],
    queries: Optional[str],
    query: Optional[str],
) -> JSONResponse:
    queries, query = await _read_params(request, queries, query)

    if query is not None:
        logger.debug(f"query={query}")
        search_query = parse_query_param(_json.dumps(query) if isinstance(query, dict) else str(query), source)
        results = await run_in_threadpool(service.search, search_query)
        return _json_response(to_reconcile_result(results, source).model_dump())

    if queries is not None:
        logger.debug(f"queries={queries}")
        if isinstance(queries, str):
            try:
                queries = _json.loads(queries)
            except _json.JSONDecodeError as e:
                raise InvalidQuery(f"queries is not valid JSON: {e.msg}") from e

        batch = build_batch(queries, source)
        all_results = await run_batch(request, service, batch)
        payload = {
            key: to_reconcile_result(results, source).model_dump()
            for key, results in all_results.items()
        }
        return _json_response(payload)

    #no query at all, describe the service
    return _json_response(service_metadata(service.settings.service_name, source).model_dump())


@app.api_route("/reconcile", methods=["GET", "POST"])
async def reconcile(
    request: Request,
    service: Annotated[ReconcileService, Depends(get_service)],
    queries: Annotated[Optional[str], Form()] = None,
    query: Annotated[Optional[str], Form()] = None,
) -> JSONResponse:
    return await _reconcile(request, service, None, queries, query)


@app.api_route("/reconcile/{source}", methods=["GET", "POST"])
async def reconcile_source(
    request: Request,
    source: str,
    service: Annotated[ReconcileService, Depends(get_service)],
    queries: Annotated[Optional[str], Form()] = None,
    query: Annotated[Optional[str], Form()] = None,
) -> JSONResponse:
    return await _reconcile(request, service, source.upper(), queries, query)


#https://www.w3.org/community/reports/reconciliation/CG-FINAL-specs-0.2-20230410/
#https://www.oclc.org/developer/api/oclc-apis/viaf.en.html
