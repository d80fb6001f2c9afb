"""
Tool-call dispatch.

Validates a model-issued tool call against its argument schema and routes it
to the matching ledger operation. Dispatch is keyed on ToolName so a tool
declared in the catalog without a handler fails at import, not at runtime.
"""

import datetime
import json
import logging
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from graph.catalog import TOOL_SCHEMA, ToolName
from services import ledger

logger = logging.getLogger(__name__)


class ToolError(Exception):
    pass


class ToolArgumentsError(ToolError):
    """Tool arguments were not valid JSON or did not match the tool's schema."""


class UnknownToolError(ToolError):
    pass


# ---------------------------------------------------------------------------
# Argument models
# ---------------------------------------------------------------------------

class TotalExpenseArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start: datetime.datetime | None = Field(default=None, alias="from")
    end: datetime.datetime | None = Field(default=None, alias="to")

    @field_validator("start", "end", mode="before")
    @classmethod
    def _parse_bound(cls, value, info: ValidationInfo):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        if not isinstance(value, str):
            return value

        text = value.strip()
        # A bare date on the upper bound covers the whole day
        if len(text) == 10:
            day = datetime.date.fromisoformat(text)
            clock = datetime.time.max if info.field_name == "end" else datetime.time.min
            return datetime.datetime.combine(day, clock)

        parsed = datetime.datetime.fromisoformat(text.replace("Z", "+00:00"))
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        return parsed


class LedgerEntryArgs(BaseModel):
    name: str = Field(min_length=1)
    # Models send amounts as strings; lax mode coerces "500" -> 500.0
    amount: float = Field(allow_inf_nan=False)

    @field_validator("amount", mode="before")
    @classmethod
    def _reject_bool(cls, value):
        if isinstance(value, bool):
            raise ValueError("amount must be a number or numeric string")
        return value


class NoArgs(BaseModel):
    pass


def _decode_args(name: str, raw) -> dict:
    if raw is None:
        return {}
    if isinstance(raw, str):
        if not raw.strip():
            return {}
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("Malformed arguments for %s: %r (%s)", name, raw, exc)
            raise ToolArgumentsError(f"{name}: arguments are not valid JSON") from exc
    if not isinstance(raw, dict):
        raise ToolArgumentsError(f"{name}: arguments must be an object")
    return raw


def _validate(model: type[BaseModel], name: str, raw):
    try:
        return model.model_validate(_decode_args(name, raw))
    except ValidationError as exc:
        logger.error("Invalid arguments for %s: %r (%s)", name, raw, exc)
        raise ToolArgumentsError(f"{name}: {exc.error_count()} invalid argument(s)") from exc


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def _get_total_expense(raw, db: AsyncSession) -> str:
    args = _validate(TotalExpenseArgs, ToolName.GET_TOTAL_EXPENSE.value, raw)
    return await ledger.get_total_expense(db, args.start, args.end)


async def _add_expense(raw, db: AsyncSession) -> str:
    args = _validate(LedgerEntryArgs, ToolName.ADD_EXPENSE.value, raw)
    return await ledger.add_expense(db, args.name, args.amount)


async def _add_income(raw, db: AsyncSession) -> str:
    args = _validate(LedgerEntryArgs, ToolName.ADD_INCOME.value, raw)
    return await ledger.add_income(db, args.name, args.amount)


async def _get_money_balance(raw, db: AsyncSession) -> str:
    _validate(NoArgs, ToolName.GET_MONEY_BALANCE.value, raw)
    return await ledger.get_money_balance(db)


_HANDLERS: dict[ToolName, Callable[[object, AsyncSession], Awaitable[str]]] = {
    ToolName.GET_TOTAL_EXPENSE: _get_total_expense,
    ToolName.ADD_EXPENSE: _add_expense,
    ToolName.ADD_INCOME: _add_income,
    ToolName.GET_MONEY_BALANCE: _get_money_balance,
}

_missing = set(ToolName) - _HANDLERS.keys()
if _missing:
    raise RuntimeError(f"No handler for tools: {sorted(t.value for t in _missing)}")

_declared = {tool["function"]["name"] for tool in TOOL_SCHEMA}
if _declared != {t.value for t in ToolName}:
    raise RuntimeError(f"Tool schema out of sync with ToolName: {sorted(_declared)}")


async def execute_tool_call(call: dict, db: AsyncSession) -> str:
    """
    Run one tool call and return its result text.

    `call` is a LangChain tool call: {"name", "args", "id"}. `args` may be a
    decoded dict or the raw JSON string.
    """
    name = call.get("name")
    try:
        tool = ToolName(name)
    except ValueError as exc:
        logger.error("Model requested unknown tool %r", name)
        raise UnknownToolError(f"unknown tool: {name!r}") from exc

    logger.info("Calling tool %s (id=%s)", tool.value, call.get("id"))
    return await _HANDLERS[tool](call.get("args"), db)
