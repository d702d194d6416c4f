"""
Db2 Migration Precheck
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from api import health, inventory, precheck
from config import settings

# ── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger("precheck")


@asynccontextmanager
async def lifespan(app: FastAPI):
    mode = "remote" if settings.remote_mode else "local"
    logger.info("Db2 migration precheck starting up (%s mode)…", mode)
    yield
    logger.info("Db2 migration precheck shutting down.")


# ── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="Db2 Migration Precheck",
    description="Migration readiness validation and object inventory for Db2 databases moving to RDS for Db2.",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ──────────────────────────────────────────────────────────────────────
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(health.router,    prefix="/api")
app.include_router(precheck.router,  prefix="/api")
app.include_router(inventory.router, prefix="/api")


if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.API_HOST, port=settings.API_PORT)
