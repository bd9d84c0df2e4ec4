from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import JSONResponse

from catalog_search.search import SearchService, SearchServiceConfig
from catalog_search.store.record_store import SqlRecordStore

from .routers.search import router as search_router


logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _base_path() -> str:
    """API_BASE_PATH normalized to "/prefix" (or "" when unset)."""
    base = os.getenv("API_BASE_PATH", "").strip()
    if base and not base.startswith("/"):
        base = "/" + base
    if base.endswith("/") and base != "/":
        base = base.rstrip("/")
    return base


def build_search_service() -> SearchService:
    store = SqlRecordStore(create_schema=True)
    return SearchService(store=store, config=SearchServiceConfig.from_env())


@asynccontextmanager
async def lifespan(app: FastAPI):
    owns_service = getattr(app.state, "search_service", None) is None
    if owns_service:
        app.state.search_service = build_search_service()
        logger.info("Search service ready")
    try:
        yield
    finally:
        store = app.state.search_service.store
        if owns_service and hasattr(store, "close"):
            store.close()


def create_app(search_service: SearchService | None = None) -> FastAPI:
    """Build the API; an injected service is used as-is and never closed here.

    Built-in docs/openapi routes are replaced by explicit JSONResponse ones so
    strict Accept headers do not get a 406 on the vendor OpenAPI media type,
    and so a deployment sub-path (API_BASE_PATH) is advertised in "servers".
    """
    base_path = _base_path()
    app = FastAPI(
        title="catalog-search",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        root_path=base_path or "",
    )
    if search_service is not None:
        app.state.search_service = search_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(search_router)

    @app.get("/health", tags=["ops"], summary="Health check")
    async def health():
        return {"status": "ok"}

    @app.get("/openapi.json", include_in_schema=False)
    def openapi_json():
        schema = app.openapi()
        if base_path and base_path != "/":
            # app.openapi() is cached; copy before annotating.
            schema = {**schema, "servers": [{"url": base_path}]}
        return JSONResponse(schema)

    # Relative openapi_url keeps Swagger UI working behind a sub-path proxy.
    @app.get("/docs", include_in_schema=False)
    def swagger_ui():
        return get_swagger_ui_html(openapi_url="openapi.json", title="API Docs")

    return app


app = create_app()
