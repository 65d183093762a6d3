# app/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI

from app.core.config import get_settings
from app.services.cart_mirror import get_cart_mirror

# Routers
from app.routers.cart import router as cart_router
from app.routers.jams import router as jams_router
from app.routers.rankings import router as rankings_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Start the cart mirror queue.

    Shutdown:
      - Let queued cart mirror writes finish, then stop the workers.
    """
    logger.info("🔄 Startup: starting cart mirror queue...")
    mirror = get_cart_mirror()
    logger.info("✅ Startup: cart mirror queue ready.")
    yield
    logger.info("🔄 Shutdown: flushing cart mirror queue...")
    mirror.shutdown(wait=True)


app = FastAPI(
    title=settings.PROJECT_NAME or "JamJam API",
    version="0.1.0",
    lifespan=lifespan,
)


# --- CORS configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Versioned API prefix, e.g. /api/v1
app.include_router(cart_router, prefix=settings.API_V1_STR)
app.include_router(jams_router, prefix=settings.API_V1_STR)
app.include_router(rankings_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "jamjam-backend"}
