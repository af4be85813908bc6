"""Card Scanner Gateway — FastAPI application entry point.

Sits between the card scanner web UI and the Gemini API so the browser
never sees upstream API keys. The UI posts ``{modelName, body}`` to
/api/gemini; the gateway forwards ``body`` with a pooled key, rotating keys
when Gemini rate limits.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from cardscan_gateway.config.settings import get_settings
from cardscan_gateway.logging.audit import (
    RequestTimer,
    generate_request_id,
    get_audit_logger,
    redact_credentials,
    request_id_var,
    setup_logging,
)
from cardscan_gateway.proxy.handler import close_client, handle_proxy_request

VERSION = "1.0.0"

PROXY_PATH = "/api/gemini"

ALLOWED_HEADERS = (
    "X-CSRF-Token, X-Requested-With, Accept, Accept-Version, Content-Length, "
    "Content-MD5, Content-Type, Date, X-Api-Version"
)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    setup_logging()
    get_audit_logger().info("Gateway started")
    yield
    await close_client()
    get_audit_logger().info("Gateway stopped")

app = FastAPI(
    title="Card Scanner Gateway",
    description="Key-rotating proxy between the card scanner UI and Gemini",
    version=VERSION,
    lifespan=lifespan,
)

def _cors_headers() -> dict:
    return {
        "Access-Control-Allow-Origin": get_settings().cors_allow_origin,
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
    }

@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}

@app.options(PROXY_PATH)
async def gemini_preflight():
    """CORS preflight: acknowledge without touching the proxy."""
    return Response(status_code=200, headers=_cors_headers())

@app.post(PROXY_PATH)
async def gemini_proxy(request: Request):
    """Forward a ``{modelName, body}`` envelope to Gemini.

    Upstream responses other than 429 come back with their original status
    and body text. Anything unexpected (malformed JSON, upstream unreachable)
    becomes a 500 with the error message in ``details``.
    """
    logger = get_audit_logger()
    rid = generate_request_id()
    request_id_var.set(rid)
    headers = {**_cors_headers(), "X-Request-Id": rid}

    try:
        envelope = await request.json()
        with RequestTimer() as timer:
            result = await handle_proxy_request(envelope)
    except Exception as e:
        logger.exception(
            "Proxy request failed",
            extra={"audit_data": {"error_type": type(e).__name__}},
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Internal Server Error", "details": redact_credentials(str(e))},
            headers=headers,
        )

    logger.info(
        "Request proxied",
        extra={"audit_data": {
            "client_ip": request.client.host if request.client else "unknown",
            "model": envelope.get("modelName") if isinstance(envelope, dict) else None,
            "status": result.status_code,
            "latency_ms": timer.elapsed_ms,
        }},
    )

    return Response(
        content=result.body,
        status_code=result.status_code,
        media_type="application/json",
        headers=headers,
    )

@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Answer unsupported methods on the proxy path in the UI's error shape."""
    if exc.status_code == 405 and request.url.path == PROXY_PATH:
        return JSONResponse(
            status_code=405,
            content={"error": "Method Not Allowed"},
            headers={**_cors_headers(), "Allow": "POST, OPTIONS"},
        )
    return await http_exception_handler(request, exc)
