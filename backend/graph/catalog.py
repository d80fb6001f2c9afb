import datetime
from enum import Enum


class ToolName(str, Enum):
    GET_TOTAL_EXPENSE = "getTotalExpense"
    ADD_EXPENSE = "addExpense"
    ADD_INCOME = "addIncome"
    GET_MONEY_BALANCE = "getMoneyBalance"


_SYSTEM_PROMPT = """You are Josh, a personal finance assistant. Your task is to assist the user with their expenses, balances, and financial planning.
You have access to the following tools:
1. getTotalExpense({{from, to}}): string // Get total expense for a time period.
2. addExpense({{name, amount}}): string // Add new expense to the expense database.
3. addIncome({{name, amount}}): string // Add new income to income database.
4. getMoneyBalance(): string // Get remaining money balance from database.

Dates are ISO 8601 (YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS). Amounts are in INR.

current datetime: {now}"""


def build_system_prompt(now: datetime.datetime | None = None) -> str:
    now = now or datetime.datetime.now(datetime.timezone.utc)
    return _SYSTEM_PROMPT.format(now=now.strftime("%a, %d %b %Y %H:%M:%S GMT"))


def _function(name: ToolName, description: str, properties: dict) -> dict:
    return {
        "type": "function",
        "function": {
            "name": name.value,
            "description": description,
            "parameters": {"type": "object", "properties": properties},
        },
    }


TOOL_SCHEMA: list[dict] = [
    _function(
        ToolName.GET_TOTAL_EXPENSE,
        "Get total expense from date to date.",
        {
            "from": {"type": "string", "description": "From date to get the expense."},
            "to": {"type": "string", "description": "To date to get the expense."},
        },
    ),
    _function(
        ToolName.ADD_EXPENSE,
        "Add new expense entry to the expense database.",
        {
            "name": {"type": "string", "description": "Name of the expense. e.g., Bought an iphone"},
            "amount": {"type": "string", "description": "Amount of the expense."},
        },
    ),
    _function(
        ToolName.ADD_INCOME,
        "Add new income entry to income database",
        {
            "name": {"type": "string", "description": "Name of the income. e.g., Got salary"},
            "amount": {"type": "string", "description": "Amount of the income."},
        },
    ),
    _function(
        ToolName.GET_MONEY_BALANCE,
        "Get remaining money balance from database.",
        {},
    ),
]
