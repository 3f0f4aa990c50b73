from __future__ import annotations

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field, field_validator

BASE_DIR = Path(__file__).resolve().parent.parent

# Load environment variables from .env file
env_path = BASE_DIR / ".env"
if env_path.exists():
    load_dotenv(env_path)

# Add parent directory to path for catalog module import
sys.path.insert(0, str(BASE_DIR))
from catalog import (
    CatalogService,
    InvalidTagsError,
    NotFoundError,
    UpdateFailedError,
    validate_tags,
)

# Configuration
COMIC_BASE_PATH = Path(os.environ.get("COMIC_BASE_PATH", str(BASE_DIR / "Comics")))
DEFAULT_PORT = int(os.environ.get("PORT", "3000"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
SCAN_WORKERS = int(os.environ.get("SCAN_WORKERS", "4"))
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MEDIA_PREFIX = "/comics/"

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class TagsPayload(BaseModel):
    tags: List[str] = Field(..., description="New tags for the comic, in order.")

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: List[str]) -> List[str]:
        return validate_tags(value)


def _allowed_origins() -> List[str]:
    # For production, set CORS_ORIGINS="https://yourdomain.com,https://app.yourdomain.com"
    cors_origins_str = os.environ.get("CORS_ORIGINS", "*")
    if cors_origins_str == "*":
        logger.warning("CORS is set to allow all origins. This is not recommended for production!")
        return ["*"]
    origins = [origin.strip() for origin in cors_origins_str.split(",") if origin.strip()]
    logger.info(f"CORS allowed origins: {origins}")
    return origins


def create_app(service: Optional[CatalogService] = None) -> FastAPI:
    """Build the API around a catalog service.

    The catalog is scanned on startup unless the given service already
    holds one.
    """
    if service is None:
        service = CatalogService(COMIC_BASE_PATH, max_workers=SCAN_WORKERS)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if service.get_count() == 0:
            await run_in_threadpool(service.initialize)
        yield

    app = FastAPI(title="Comic Library", version="1.0.0", lifespan=lifespan)
    app.state.catalog = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "PUT"],
        allow_headers=["*"],
    )

    # Serve page images straight from the library
    if service.root.exists():
        app.mount("/comics", StaticFiles(directory=service.root), name="comics")
    else:
        logger.warning(f"Comic library not found at {service.root}")

    @app.get("/health")
    def health_check() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/comic-count")
    def comic_count() -> JSONResponse:
        logger.info("API: comic-count requested")
        return JSONResponse({"count": service.get_count()})

    @app.get("/api/comics")
    def list_comics(page: int = DEFAULT_PAGE, limit: int = DEFAULT_LIMIT) -> JSONResponse:
        if page <= 0:
            page = DEFAULT_PAGE
        if limit <= 0:
            limit = DEFAULT_LIMIT
        logger.info(f"API: comics requested with page={page}, limit={limit}")

        result = service.list_page(page, limit)
        return JSONResponse(
            {
                "comics": [record.to_dict(MEDIA_PREFIX) for record in result.records],
                "totalComics": result.total,
            }
        )

    @app.get("/api/comic/{title}")
    def comic_detail(title: str) -> JSONResponse:
        logger.info(f"API: comic detail requested for {title}")
        try:
            detail = service.list_detail(title)
        except NotFoundError as exc:
            logger.warning(f"Comic not found: {title}")
            raise HTTPException(status_code=404, detail="Comic not found") from exc
        return JSONResponse(detail.to_dict(MEDIA_PREFIX))

    @app.put("/api/comic/{title}/tags")
    def update_comic_tags(title: str, payload: TagsPayload) -> JSONResponse:
        logger.info(f"API: update comic tags for {title} with tags: {payload.tags}")
        try:
            record = service.set_tags(title, payload.tags)
        except InvalidTagsError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail="Comic not found.") from exc
        except UpdateFailedError as exc:
            logger.error(f"Error updating comic tags for {title}: {exc}")
            raise HTTPException(status_code=500, detail="Failed to update comic tags.") from exc
        stored = record.metadata.tags if record is not None else payload.tags
        return JSONResponse({"message": "Comic tags updated successfully.", "tags": stored})

    @app.get("/api/tags")
    def unique_tags() -> JSONResponse:
        logger.info("API: all unique tags requested")
        return JSONResponse({"tags": service.list_unique_tags()})

    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = DEFAULT_PORT, reload: bool = False) -> None:
    try:
        import uvicorn
    except ModuleNotFoundError as exc:  # pragma: no cover - runtime guard
        raise SystemExit(
            "Missing dependency 'uvicorn'. Install it with 'pip install uvicorn[standard]' and retry."
        ) from exc

    uvicorn.run(
        "app:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    run_server(port=DEFAULT_PORT, reload=False)
