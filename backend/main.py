import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import router
from database import create_tables

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_PRODUCTION_ORIGIN = "https://personal-finance-assistant-ai-agent.vercel.app"
_DEV_ORIGIN = "http://localhost:3000"


def allowed_origin() -> str:
    """FRONTEND_URL if set, else the deployed front end in production, else localhost."""
    explicit = os.getenv("FRONTEND_URL")
    if explicit:
        return explicit
    if os.getenv("ENVIRONMENT", "").lower() == "production":
        return _PRODUCTION_ORIGIN
    return _DEV_ORIGIN


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    logger.info("Ledger tables created / verified.")
    yield


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(title="Finance Assistant API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[allowed_origin()],
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(router)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    port = int(os.getenv("PORT", "3000"))
    logger.info("Server running on http://localhost:%d", port)
    uvicorn.run(app, host="0.0.0.0", port=port)
