from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import config
from .db import init_db
from .errors import VetClinicError
from .routes import ROUTERS
from .seed import seed_base

logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
logger = logging.getLogger(__name__)

app = FastAPI(title="Veterinary Clinic API", version="1.0.0")

for r in ROUTERS:
    app.include_router(r)


# Startup

@app.on_event("startup")
def startup() -> None:
    # tables + base seed (idempotent)
    init_db()
    seed_base()
    logger.info("API ready (db=%s)", config.DATABASE_URL)


# Errors

@app.exception_handler(VetClinicError)
def domain_error(request: Request, exc: VetClinicError) -> JSONResponse:
    logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.exception_handler(Exception)
def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/api/health")
def health() -> dict:
    return {"ok": True}
