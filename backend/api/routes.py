import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from graph.agent import FinanceAgent

logger = logging.getLogger(__name__)

router = APIRouter()

LIVENESS_TEXT = "Server is running. Use POST /api/finance for queries"


def get_agent(db: AsyncSession = Depends(get_db)) -> FinanceAgent:
    return FinanceAgent(db)


@router.get("/", response_class=PlainTextResponse)
async def index():
    return LIVENESS_TEXT


# ---------------------------------------------------------------------------
# POST /api/finance
# ---------------------------------------------------------------------------

class FinanceQuestion(BaseModel):
    question: str = Field(min_length=1)


@router.post("/api/finance")
async def finance(body: FinanceQuestion, agent: FinanceAgent = Depends(get_agent)):
    try:
        reply = await agent.handle(body.question)
    except Exception as exc:
        logger.error("Error processing request: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Error processing request"})
    return {"reply": reply}
