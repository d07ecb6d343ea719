# eastlink/core/middleware.py
import re

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from eastlink.core.config import settings
from eastlink.core.errors import error_body
from eastlink.core.logging import http_logging_middleware, security_log
from eastlink.core.rate_limit import client_ip

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": (
        "default-src 'self'; style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
        "font-src 'self' https://fonts.gstatic.com; img-src 'self' data: https: http:; "
        "script-src 'self'"
    ),
}

SUSPICIOUS_PATTERNS = [
    re.compile(r"\.\."),
    re.compile(r"<script", re.I),
    re.compile(r"union.*select", re.I),
    re.compile(r"javascript:", re.I),
]


def is_suspicious(text: str) -> bool:
    return any(p.search(text) for p in SUSPICIOUS_PATTERNS)


async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


async def request_size_middleware(request: Request, call_next):
    length = request.headers.get("content-length")
    if length and length.isdigit() and int(length) > settings.MAX_REQUEST_BYTES:
        return JSONResponse(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            content=error_body("Request entity too large"),
        )
    return await call_next(request)


async def suspicious_request_middleware(request: Request, call_next):
    target = request.url.path + "?" + request.url.query
    if is_suspicious(target):
        security_log.suspicious_activity(
            f"{request.method} {target}", client_ip(request), request.headers.get("user-agent", "")
        )
    return await call_next(request)


def install_middleware(app: FastAPI):
    # registration order is reversed at runtime: the HTTP logger wraps everything
    app.middleware("http")(suspicious_request_middleware)
    app.middleware("http")(request_size_middleware)
    app.middleware("http")(security_headers_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )
    app.middleware("http")(http_logging_middleware)
