import logging
from contextlib import asynccontextmanager

import psycopg
import sentry_sdk
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .config import settings
from .db import get_conn, pool
from .logging_utils import setup_logging
from .middleware.request_context import RequestContextMiddleware
from .routes import account, auth, catalog, dashboard, subscriptions, webhook
from .services.identity import SupabaseAuthClient
from .services.payment_gateway import PaymentGatewayError, build_payment_gateway

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        send_default_pii=False,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    await pool.open(wait=True)
    try:
        yield
    finally:
        await pool.close()


app = FastAPI(title="SimosMaths Backend", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_origin_regex=settings.cors_allow_origin_regex,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "Accept",
        "X-Requested-With",
        "X-Request-ID",
        "Stripe-Signature",
    ],
)
app.add_middleware(RequestContextMiddleware)

app.state.payment_gateway = build_payment_gateway(settings)
if settings.supabase_url and settings.supabase_anon_key:
    app.state.identity_client = SupabaseAuthClient(
        settings.supabase_url.unicode_string(), settings.supabase_anon_key
    )
else:
    app.state.identity_client = None


@app.exception_handler(psycopg.Error)
async def database_error_handler(request: Request, exc: psycopg.Error) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": str(exc) or "Database error"})


@app.exception_handler(PaymentGatewayError)
async def gateway_error_handler(request: Request, exc: PaymentGatewayError) -> JSONResponse:
    logger.error("Payment gateway error on %s: %s", request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


app.include_router(auth.router)
app.include_router(account.router)
app.include_router(subscriptions.router)
app.include_router(webhook.router)
app.include_router(dashboard.router)
app.include_router(catalog.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "message": "SimosMaths API running"}


@app.get("/api/ready")
async def ready():
    try:
        async with get_conn() as cur:  # type: ignore[attr-defined]
            await cur.execute("select 1")  # type: ignore[attr-defined]
            await cur.fetchone()
    except Exception as exc:  # pragma: no cover - surfaced in tests
        raise HTTPException(status_code=503, detail="database unavailable") from exc
    return {"ok": True, "database": "ready"}


@app.get("/metrics")
def metrics_endpoint():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
