# app/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.logging import setup_logging

settings = get_settings()
setup_logging(settings.LOG_LEVEL, json=settings.JSON_LOG)
logger = logging.getLogger("wmsdu")

from app.api.routers.asn import router as asn_router  # noqa: E402
from app.api.routers.asn_lines import router as asn_lines_router  # noqa: E402
from app.api.routers.asn_process import router as asn_process_router  # noqa: E402
from app.db.base import init_models  # noqa: E402
from app.db.session import close_engines  # noqa: E402
from app.http_problem_handlers import register_exception_handlers  # noqa: E402
from app.metrics import router as metrics_router  # noqa: E402


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_models()
    logger.info("WMS-DU ASN service started (env=%s)", settings.ENV)
    yield
    await close_engines()


app = FastAPI(
    title="WMS-DU ASN",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://127.0.0.1:8000",
        "http://localhost:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# ===========================
#        ASN 收货上架
# ===========================
app.include_router(asn_router)
app.include_router(asn_lines_router)
app.include_router(asn_process_router)

# ===========================
#        观测
# ===========================
app.include_router(metrics_router)


@app.get("/healthz", tags=["meta"])
async def healthz() -> dict:
    return {"ok": True}
