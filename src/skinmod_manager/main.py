import asyncio
import logging
import sys
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from datetime import timedelta

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from skinmod_manager.config import Settings, settings
from skinmod_manager.errors import ModManagerError, NotFoundError, ResultCode
from skinmod_manager.origins import UpdateSourceClient, build_clients
from skinmod_manager.registry.registry import ModRegistry
from skinmod_manager.routers import api_router
from skinmod_manager.services.conflicts.engine import ConflictEngine
from skinmod_manager.services.update_checker import UpdateChecker

ClientsFactory = Callable[[httpx.AsyncClient, Settings], Mapping[str, UpdateSourceClient]]


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    for name in ("httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)


_configure_logging()
logger = logging.getLogger(__name__)


def _default_clients(http: httpx.AsyncClient, cfg: Settings) -> Mapping[str, UpdateSourceClient]:
    return build_clients(http, github_token=cfg.github_token or None)


def _build_checker(
    registry: ModRegistry, clients: Mapping[str, UpdateSourceClient], cfg: Settings
) -> UpdateChecker:
    return UpdateChecker(
        registry,
        clients,
        freshness=timedelta(hours=cfg.update_freshness_hours),
        backoff_base=timedelta(seconds=cfg.update_backoff_base_seconds),
        backoff_cap=timedelta(seconds=cfg.update_backoff_cap_seconds),
        max_concurrent=cfg.update_max_concurrent,
        timeout=cfg.update_request_timeout,
    )


def create_app(cfg: Settings | None = None, *, clients_factory: ClientsFactory | None = None) -> FastAPI:
    cfg = cfg or settings
    make_clients = clients_factory or _default_clients

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        registry = ModRegistry.open(cfg.db_path, reject_duplicate_claims=cfg.reject_duplicate_claims)
        http = httpx.AsyncClient(
            timeout=cfg.update_request_timeout,
            headers={"User-Agent": cfg.user_agent},
        )
        app.state.registry = registry
        app.state.http = http
        stop = asyncio.Event()
        checker: UpdateChecker | None = None
        periodic: asyncio.Task | None = None
        try:
            app.state.engine = ConflictEngine(registry)
            app.state.checker = checker = _build_checker(registry, make_clients(http, cfg), cfg)
            if cfg.update_check_interval_minutes > 0:
                periodic = asyncio.create_task(
                    checker.run_periodic(timedelta(minutes=cfg.update_check_interval_minutes), stop)
                )
            logger.info("Application started")
            yield
        finally:
            logger.info("Shutting down...")
            stop.set()
            if checker is not None:
                checker.cancel()
            if periodic is not None:
                try:
                    await periodic
                except Exception:
                    logger.exception("Periodic update task ended with an error")
            try:
                await http.aclose()
            except Exception:
                logger.exception("Failed to close HTTP client")
            try:
                registry.close()
            except Exception:
                logger.exception("Failed to close mod registry")
            logger.info("Shutdown complete")

    app = FastAPI(
        title="Skin Mod Manager",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(ModManagerError)
    async def _mod_manager_error(_request: Request, exc: ModManagerError) -> JSONResponse:
        status = 404 if isinstance(exc, NotFoundError) else 422
        return JSONResponse(status_code=status, content={"result": exc.result_code, "detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"result": ResultCode.invalid_input, "detail": _jsonable_errors(exc)},
        )

    app.include_router(api_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    return app


def _jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


app = create_app()
