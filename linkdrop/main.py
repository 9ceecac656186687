import logging
from contextlib import asynccontextmanager
from datetime import tzinfo
from zoneinfo import ZoneInfo

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from linkdrop.api.routes import router
from linkdrop.config import settings
from linkdrop.db.connection import run_migrations
from linkdrop.repositories.link_repository import LinkRepository
from linkdrop.services.eligibility_service import SubmissionGatekeeper
from linkdrop.services.metadata_service import MetadataResolver
from linkdrop.services.submission_service import SubmissionService


def _configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _reset_timezone() -> tzinfo | None:
    return ZoneInfo(settings.TIMEZONE) if settings.TIMEZONE else None


@asynccontextmanager
async def lifespan(app: FastAPI):
    _configure_logging()
    logger = logging.getLogger(__name__)
    logger.info(
        "linkdrop starting | db=%s | port=%s | tz=%s",
        settings.DB_PATH,
        settings.PORT,
        settings.TIMEZONE or "local",
    )
    run_migrations(settings.DB_PATH)

    http_client = httpx.AsyncClient(
        timeout=settings.METADATA_TIMEOUT_SECONDS, follow_redirects=True
    )
    repository = LinkRepository(settings.DB_PATH)
    app.state.repository = repository
    app.state.http_client = http_client
    app.state.submission_service = SubmissionService(
        repository,
        SubmissionGatekeeper(repository, tz=_reset_timezone()),
        MetadataResolver(client=http_client, timeout=settings.METADATA_TIMEOUT_SECONDS),
    )
    try:
        yield
    finally:
        await http_client.aclose()
        logger.info("linkdrop shutting down")


def create_app() -> FastAPI:
    app = FastAPI(title="linkdrop", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logging.getLogger(__name__).exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": "Internal server error"},
        )

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("linkdrop.main:app", host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL)
