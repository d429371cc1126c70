from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse

from overflow.config import settings
from overflow.exceptions import (
    InvalidPayloadError,
    InvalidSignatureError,
    NotFoundError,
    PermissionDeniedError,
)
from overflow.logging_config import configure_logging
from overflow.metrics import metrics_endpoint
from overflow.middleware.identity import IdentityMiddleware
from overflow.middleware.logging_middleware import RequestLoggingMiddleware
from overflow.rendering import render_page
from overflow.routers import answers, pages, questions, tags, users, webhook
from overflow.services.identity import IdentityProvider


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure structured logging before anything else
    configure_logging()

    # Startup: create Redis connection (page cache) and store on app.state
    app.state.redis = aioredis.from_url(
        settings.redis_url, encoding="utf-8", decode_responses=True
    )
    try:
        yield
    finally:
        await app.state.redis.aclose()


async def not_found_handler(request: Request, exc: NotFoundError):
    if request.url.path.startswith("/api/"):
        return JSONResponse({"detail": str(exc)}, status_code=404)
    html = render_page(
        request,
        "not_found.html",
        {"page_title": f"Not found | {settings.app_name}", "detail": str(exc)},
    )
    return HTMLResponse(html, status_code=404)


async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
    return JSONResponse({"detail": str(exc)}, status_code=403)


async def bad_webhook_handler(request: Request, exc: InvalidSignatureError | InvalidPayloadError):
    return JSONResponse({"detail": str(exc)}, status_code=400)


def create_app(identity_provider: Optional[IdentityProvider] = None) -> FastAPI:
    app = FastAPI(title="Overflow", version="0.1.0", lifespan=lifespan)

    # Middleware added last runs first: request logging wraps session resolution
    app.add_middleware(
        IdentityMiddleware,
        provider=identity_provider or IdentityProvider.from_settings(settings),
        public_routes=settings.public_routes,
        ignored_routes=settings.ignored_routes,
        session_cookie=settings.identity_session_cookie,
        sign_in_url=settings.sign_in_url,
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(PermissionDeniedError, permission_denied_handler)
    app.add_exception_handler(InvalidSignatureError, bad_webhook_handler)
    app.add_exception_handler(InvalidPayloadError, bad_webhook_handler)

    # JSON API
    app.include_router(questions.router)
    app.include_router(answers.router)
    app.include_router(users.router)
    app.include_router(tags.router)
    app.include_router(webhook.router)

    # Server-rendered pages
    app.include_router(pages.router)

    # Prometheus metrics endpoint
    app.get("/metrics")(metrics_endpoint)

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()
