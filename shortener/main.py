import logging
import sys

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shortener import crud, database, schemas
from shortener.auth import require_admin
from shortener.config import Settings
from shortener.errors import ShortenerError

logger = logging.getLogger("shortener")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# --- Error mapping ---
def _error_response(request: Request, status_code: int, message: str) -> Response:
    # JSON for the API, plain text for the redirect path
    if request.url.path.startswith("/api/"):
        return JSONResponse(status_code=status_code, content={"error": message})
    return PlainTextResponse(message, status_code=status_code)


async def handle_shortener_error(request: Request, exc: ShortenerError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(request, exc.status_code, exc.message)


async def handle_request_validation(request: Request, exc: RequestValidationError):
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    return _error_response(request, 400, "Invalid request")


async def handle_store_error(request: Request, exc: SQLAlchemyError):
    logger.exception("Store error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(request, 500, "Server error")


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(request, 500, "Server error")


router = APIRouter()


@router.get("/", include_in_schema=False)
def root():
    return PlainTextResponse(
        "URL Shortener API is live. Try: /api/health, /api/debug/db, /api/debug/count, /api/admin/links"
    )


# Health check (useful for uptime monitors & load balancers)
@router.get("/api/health", response_model=schemas.HealthOut)
def health():
    return {"ok": True}


# ---------- Debug ----------
@router.get("/api/debug/db", response_model=schemas.DbInfoOut)
def debug_db(request: Request):
    engine = request.app.state.engine
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        connected = True
    except SQLAlchemyError:
        logger.warning("Database probe failed", exc_info=True)
        connected = False
    return {"connected": connected, "dialect": engine.dialect.name, "name": engine.url.database}


@router.get("/api/debug/count", response_model=schemas.CountOut)
def debug_count(db=Depends(database.get_db)):
    return {"links_count": crud.count_links(db)}


# ---------- Public API ----------
@router.post("/api/shorten", response_model=schemas.ShortenOut, status_code=201)
def shorten(
    link_in: schemas.ShortenIn,
    response: Response,
    db=Depends(database.get_db),
    settings: Settings = Depends(get_settings),
):
    link, created = crud.shorten(db, link_in.url, link_in.preferredCode)
    if not created:
        response.status_code = 200
    return {
        "short_code": link.short_code,
        "short_url": crud.make_short_url(settings.base_url, link.short_code),
        "original_url": link.original_url,
    }


# ---------- Admin ----------
admin = APIRouter(prefix="/api/admin", dependencies=[Depends(require_admin)])


@admin.get("/links", response_model=schemas.PaginatedLinks)
def list_links(
    page: int = Query(1),
    limit: int = Query(crud.DEFAULT_LIMIT),
    db=Depends(database.get_db),
    settings: Settings = Depends(get_settings),
):
    page, limit, total, rows = crud.list_links(db, page=page, limit=limit)
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "rows": [
            {
                "id": r.id,
                "short_code": r.short_code,
                "short_url": crud.make_short_url(settings.base_url, r.short_code),
                "original_url": r.original_url,
                "visits": r.visits or 0,
                "createdAt": r.created_at,
            }
            for r in rows
        ],
    }


@admin.get("/summary", response_model=schemas.SummaryOut)
def summary(db=Depends(database.get_db)):
    total_links, total_visits = crud.summary(db)
    return {"total_links": total_links, "total_visits": total_visits}


@admin.delete("/links/{link_id}", response_model=schemas.DeletedOut)
def delete_link(link_id: str, db=Depends(database.get_db)):
    crud.delete_link(db, link_id)
    return {"ok": True, "deleted": link_id}


@admin.delete("/links", response_model=schemas.BulkDeletedOut)
def delete_links(payload: schemas.BulkDeleteIn | None = None, db=Depends(database.get_db)):
    deleted = crud.delete_links(db, payload.ids if payload else None)
    return {"ok": True, "deletedCount": deleted}


router.include_router(admin)


# Redirect /{shortcode}; registered last so it never shadows the API
@router.get("/{shortcode}", include_in_schema=False)
def redirect(shortcode: str, db=Depends(database.get_db)):
    original_url = crud.record_visit(db, shortcode)
    return RedirectResponse(url=original_url, status_code=302)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    engine = database.make_engine(settings)
    database.init_db(engine)
    logger.info("Store ready: dialect=%s db=%s", engine.dialect.name, engine.url.database)

    app = FastAPI(
        title="URL Shortener",
        description="Shorten long URLs, redirect with visit counts, and manage links from an admin API.",
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = database.make_session_factory(engine)

    # --- CORS: comma-separated list or "*" ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ShortenerError, handle_shortener_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(SQLAlchemyError, handle_store_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(router)
    return app


def run() -> None:
    try:
        settings = Settings.from_env()
        app = create_app(settings)
    except (RuntimeError, ValueError, SQLAlchemyError):
        logger.exception("Failed to start server")
        sys.exit(1)
    logger.info("API running on %s", settings.base_url)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
