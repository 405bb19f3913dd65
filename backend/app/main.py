import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from app.core.config import settings
from app.api.v1.router import api_router
from app.core.db import build_sessionmaker, engine as default_engine, init_models
from app.services.errors import LedgerError, PersistenceFailure
from app.services.ledger import build_ledgers
from app.services.locks import build_account_locks

logger = logging.getLogger(__name__)


def create_app(db_engine: AsyncEngine | None = None, locks=None) -> FastAPI:
    """Build the API around an explicit engine, session factory and ledger set."""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if db_engine is None:
        db_engine = default_engine

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_models(db_engine)
        yield
        await db_engine.dispose()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.db_engine = db_engine
    app.state.session_factory = build_sessionmaker(db_engine)
    app.state.ledgers = build_ledgers(app.state.session_factory, locks or build_account_locks(settings))

    if settings.cors_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins_list,
            allow_credentials=False,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(api_router, prefix="/api/v1")

    @app.exception_handler(LedgerError)
    async def ledger_error(request: Request, exc: LedgerError):
        if isinstance(exc, PersistenceFailure):
            logger.error("ledger failure path=%s err=%s", request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.get("/api/docs", include_in_schema=False)
    async def docs_alias():
        return RedirectResponse(url="/docs")

    @app.get("/api/openapi.json", include_in_schema=False)
    async def openapi_alias():
        return JSONResponse(app.openapi())

    @app.get("/health")
    async def health():
        db_ok = False
        try:
            async with app.state.session_factory() as s:
                await s.execute(text("SELECT 1"))
            db_ok = True
        except SQLAlchemyError:
            db_ok = False
        return {"status": "ok" if db_ok else "degraded", "db_ok": db_ok}

    return app


app = create_app()
