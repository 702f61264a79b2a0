"""Entry point for the FastAPI-powered Stremio addon."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .catalogs import CatalogExtra, CatalogService
from .config import Settings, settings
from .manifest import AddonConfig, build_manifest
from .meta import MetaService
from .services.jikan import JikanClient
from .store import CatalogStore
from .web import render_config_page

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    app_settings: Settings = fastapi_app.state.settings
    exit_stack = AsyncExitStack()

    jikan: JikanClient | None = None
    if app_settings.fetch_synopsis:
        jikan_http_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(
                base_url=str(app_settings.jikan_api_url),
                timeout=httpx.Timeout(10.0, connect=5.0),
            )
        )
        jikan = JikanClient(
            jikan_http_client,
            cache_ttl=app_settings.synopsis_cache_ttl,
            cache_size=app_settings.synopsis_cache_size,
        )

    store = CatalogStore(
        app_settings.catalog_path, app_settings.filter_options_path
    )
    fastapi_app.state.store = store
    fastapi_app.state.catalog_service = CatalogService(store)
    fastapi_app.state.meta_service = MetaService(store, jikan)
    await store.load()

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await exit_stack.aclose()


def create_app(app_settings: Settings | None = None) -> FastAPI:
    app_settings = app_settings or settings
    fastapi_app = FastAPI(
        title=app_settings.app_name,
        description="Anime catalogs, search and metadata for Stremio",
        version="1.0.0",
        lifespan=lifespan,
    )
    fastapi_app.state.settings = app_settings

    @fastapi_app.middleware("http")
    async def _addon_cors(request: Request, call_next):
        # Stremio clients send bare OPTIONS probes without CORS preflight headers.
        if request.method == "OPTIONS":
            response: Response = Response(status_code=204)
        else:
            response = await call_next(request)
        for header, value in CORS_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    register_exception_handlers(fastapi_app)
    register_routes(fastapi_app)
    return fastapi_app


def get_store(fastapi_app: FastAPI) -> CatalogStore:
    store = getattr(fastapi_app.state, "store", None)
    if not isinstance(store, CatalogStore):
        raise RuntimeError("Catalog store not initialised")
    return store


def get_catalog_service(fastapi_app: FastAPI) -> CatalogService:
    service = getattr(fastapi_app.state, "catalog_service", None)
    if not isinstance(service, CatalogService):
        raise RuntimeError("Catalog service not initialised")
    return service


def get_meta_service(fastapi_app: FastAPI) -> MetaService:
    service = getattr(fastapi_app.state, "meta_service", None)
    if not isinstance(service, MetaService):
        raise RuntimeError("Meta service not initialised")
    return service


def register_exception_handlers(fastapi_app: FastAPI) -> None:
    @fastapi_app.exception_handler(StarletteHTTPException)
    async def _http_error(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse({"error": "Not found"}, status_code=404)
        return JSONResponse(
            {"error": str(exc.detail)},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @fastapi_app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error for %s", request.url.path)
        return JSONResponse({"error": "Internal server error"}, status_code=500)


def register_routes(fastapi_app: FastAPI) -> None:
    app_settings: Settings = fastapi_app.state.settings

    async def _manifest_endpoint(config_segment: str | None) -> JSONResponse:
        config = AddonConfig.from_path_segment(config_segment)
        try:
            store = get_store(fastapi_app)
            await store.load()
            manifest = build_manifest(
                store.filter_options(),
                config.show_counts,
                name=app_settings.app_name,
            )
        except Exception:
            logger.exception("Failed to generate manifest")
            return JSONResponse(
                {"error": "Failed to generate manifest"}, status_code=500
            )
        return JSONResponse(manifest)

    async def _catalog_endpoint(
        content_type: str,
        catalog_id: str,
        extra_segment: str | None,
        config_segment: str | None,
    ) -> JSONResponse:
        config = AddonConfig.from_path_segment(config_segment)
        try:
            payload = await get_catalog_service(fastapi_app).get_catalog_payload(
                content_type,
                catalog_id,
                CatalogExtra.from_path_segment(extra_segment),
                exclude_long_running=config.exclude_long_running,
            )
        except Exception:
            logger.exception("Catalog %s/%s failed", content_type, catalog_id)
            payload = {"metas": []}
        return JSONResponse(payload)

    async def _meta_endpoint(content_type: str, meta_id: str) -> JSONResponse:
        try:
            payload = await get_meta_service(fastapi_app).get_meta_payload(
                content_type, meta_id
            )
        except Exception:
            logger.exception("Meta %s/%s failed", content_type, meta_id)
            payload = {"meta": None}
        return JSONResponse(payload)

    def _configure_page(request: Request, config_segment: str | None) -> HTMLResponse:
        store = get_store(fastapi_app)
        _, base = _resolve_external_base(request)
        return HTMLResponse(
            render_config_page(
                app_settings,
                config=AddonConfig.from_path_segment(config_segment),
                total_anime=len(store.get_all()),
                base_url=str(app_settings.base_url or base),
            )
        )

    @fastapi_app.get("/health")
    async def healthcheck() -> dict[str, Any]:
        store = get_store(fastapi_app)
        ready = store.is_ready()
        return {
            "status": "healthy" if ready else "unhealthy",
            "database": "loaded" if ready else "not_loaded",
            "totalAnime": len(store.get_all()),
            "buildDate": store.build_date,
        }

    @fastapi_app.get("/api/stats")
    async def filter_stats() -> dict[str, Any]:
        store = get_store(fastapi_app)
        options = store.filter_options()
        return {
            **(options.stats if options else {}),
            "totalAnime": len(store.get_all()),
            "buildDate": store.build_date,
        }

    @fastapi_app.get("/admin/reload")
    async def reload_catalog() -> dict[str, Any]:
        store = get_store(fastapi_app)
        snapshot = await store.load(force=True)
        return {
            "success": snapshot.available,
            "totalAnime": len(snapshot.records),
            "buildDate": snapshot.build_date,
            "error": snapshot.error,
        }

    @fastapi_app.get("/admin/stats")
    async def admin_stats() -> dict[str, Any]:
        store = get_store(fastapi_app)
        return {
            **store.stats(),
            "ready": store.is_ready(),
            "loadError": store.load_error,
            "catalogPath": str(store.catalog_path),
            "seasons": len(store.available_seasons()),
        }

    @fastapi_app.get("/", include_in_schema=False)
    @fastapi_app.get("/configure", response_class=HTMLResponse)
    async def configure(request: Request) -> HTMLResponse:
        return _configure_page(request, None)

    @fastapi_app.get("/manifest.json")
    async def manifest() -> JSONResponse:
        return await _manifest_endpoint(None)

    @fastapi_app.get("/catalog/{content_type}/{catalog_id}.json")
    async def catalog(content_type: str, catalog_id: str) -> JSONResponse:
        return await _catalog_endpoint(content_type, catalog_id, None, None)

    @fastapi_app.get("/catalog/{content_type}/{catalog_id}/{extra}.json")
    async def catalog_with_extra(
        request: Request, content_type: str, catalog_id: str, extra: str
    ) -> JSONResponse:
        return await _catalog_endpoint(
            content_type, catalog_id, _raw_extra_segment(request, extra), None
        )

    @fastapi_app.get("/meta/{content_type}/{meta_id}.json")
    async def meta(content_type: str, meta_id: str) -> JSONResponse:
        return await _meta_endpoint(content_type, meta_id)

    @fastapi_app.get("/{config}/configure", response_class=HTMLResponse)
    async def configure_with_config(request: Request, config: str) -> HTMLResponse:
        return _configure_page(request, config)

    @fastapi_app.get("/{config}/manifest.json")
    async def manifest_with_config(request: Request, config: str) -> JSONResponse:
        return await _manifest_endpoint(config)

    @fastapi_app.get("/{config}/catalog/{content_type}/{catalog_id}.json")
    async def catalog_with_config(
        request: Request, config: str, content_type: str, catalog_id: str
    ) -> JSONResponse:
        return await _catalog_endpoint(
            content_type, catalog_id, None, config
        )

    @fastapi_app.get(
        "/{config}/catalog/{content_type}/{catalog_id}/{extra}.json"
    )
    async def catalog_with_config_and_extra(
        request: Request,
        config: str,
        content_type: str,
        catalog_id: str,
        extra: str,
    ) -> JSONResponse:
        return await _catalog_endpoint(
            content_type,
            catalog_id,
            _raw_extra_segment(request, extra),
            config,
        )

    @fastapi_app.get("/{config}/meta/{content_type}/{meta_id}.json")
    async def meta_with_config(
        config: str, content_type: str, meta_id: str
    ) -> JSONResponse:
        return await _meta_endpoint(content_type, meta_id)


def _raw_extra_segment(request: Request, fallback: str) -> str:
    """Return the extra segment before percent-decoding.

    Values are decoded one by one after splitting on ``&`` and ``=`` so that
    encoded separators inside a value survive.
    """

    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return fallback
    path = raw_path.decode("latin-1").split("?", 1)[0]
    segment = path.rstrip("/").rsplit("/", 1)[-1]
    if segment.endswith(".json"):
        segment = segment[: -len(".json")]
    return segment or fallback


def _resolve_external_base(request: Request) -> tuple[str, str]:
    headers = request.headers
    scheme = _first_forwarded_value(headers.get("x-forwarded-proto")) or request.url.scheme

    host = _first_forwarded_value(headers.get("x-forwarded-host"))
    if not host:
        host_header = headers.get("host")
        host = _first_forwarded_value(host_header) if host_header else None
    if not host:
        host = request.url.netloc

    origin = f"{scheme}://{host}".rstrip("/")

    prefix = (
        _first_forwarded_value(headers.get("x-forwarded-prefix"))
        or request.scope.get("root_path")
        or ""
    )
    if prefix and not prefix.startswith("/"):
        prefix = f"/{prefix}"
    prefix = prefix.rstrip("/")

    base = f"{origin}{prefix}" if prefix else origin
    return origin, base


def _first_forwarded_value(header_value: str | None) -> str | None:
    if not header_value:
        return None
    return header_value.split(",", 1)[0].strip()


app = create_app()
