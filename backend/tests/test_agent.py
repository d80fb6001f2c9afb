"""
Unit tests for the FinanceAgent conversation loop.

The chat model is a scripted mock: bind_tools() returns an object whose
ainvoke() yields the queued AIMessages in order.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from database import Expense
from graph.agent import APOLOGY, FinanceAgent, message_text
from graph.catalog import TOOL_SCHEMA


def scripted_llm(*responses):
    bound = Mock()
    bound.ainvoke = AsyncMock(side_effect=list(responses))
    llm = Mock()
    llm.bind_tools = Mock(return_value=bound)
    return llm, bound


def tool_call(name: str, args: dict, call_id: str) -> dict:
    return {"name": name, "args": args, "id": call_id, "type": "tool_call"}


def requests_tools(*calls) -> AIMessage:
    return AIMessage(content="", tool_calls=list(calls))


# ===== No tool calls =====


class TestDirectAnswer:
    @pytest.mark.asyncio
    async def test_returns_content_unchanged_without_storage(self, mock_db):
        llm, bound = scripted_llm(AIMessage(content="Hi, I'm Josh. How can I help?"))
        agent = FinanceAgent(mock_db, llm=llm)

        reply = await agent.handle("hello")

        assert reply == "Hi, I'm Josh. How can I help?"
        llm.bind_tools.assert_called_once_with(TOOL_SCHEMA)
        bound.ainvoke.assert_awaited_once()
        mock_db.scalar.assert_not_awaited()
        mock_db.execute.assert_not_awaited()
        mock_db.add.assert_not_called()
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transcript_starts_with_system_prompt(self, mock_db):
        llm, bound = scripted_llm(AIMessage(content="ok"))
        agent = FinanceAgent(mock_db, llm=llm)

        run = await agent.run("What can you do?")

        sent = bound.ainvoke.await_args.args[0]
        assert isinstance(sent[0], SystemMessage)
        assert "You are Josh" in sent[0].content
        assert isinstance(sent[1], HumanMessage)
        assert sent[1].content == "What can you do?"
        assert [type(m) for m in run.messages] == [SystemMessage, HumanMessage, AIMessage]

    @pytest.mark.asyncio
    async def test_history_is_placed_between_system_prompt_and_question(self, mock_db):
        llm, bound = scripted_llm(AIMessage(content="Still 500 INR."))
        agent = FinanceAgent(mock_db, llm=llm)
        history = [
            SystemMessage(content="stale prompt"),
            HumanMessage(content="balance?"),
            AIMessage(content="500 INR"),
        ]

        await agent.run("and now?", history=history)

        sent = bound.ainvoke.await_args.args[0]
        assert [m.content for m in sent[1:]] == ["balance?", "500 INR", "and now?"]
        assert sum(isinstance(m, SystemMessage) for m in sent) == 1


# ===== Literal mode =====


class TestLiteralMode:
    @pytest.mark.asyncio
    async def test_add_expense_returns_tool_confirmation(self, db):
        llm, bound = scripted_llm(
            requests_tools(tool_call("addExpense", {"name": "Coffee", "amount": "150"}, "call_1"))
        )
        agent = FinanceAgent(db, llm=llm, synthesize_tool_results=False)

        run = await agent.run("I spent 150 on coffee")

        assert run.reply == "Expense added to the database."
        last = run.messages[-1]
        assert isinstance(last, ToolMessage)
        assert last.tool_call_id == "call_1"
        assert last.content == "Expense added to the database."
        bound.ainvoke.assert_awaited_once()

        rows = (await db.execute(select(Expense))).scalars().all()
        assert [(r.name, r.amount) for r in rows] == [("Coffee", 150.0)]

    @pytest.mark.asyncio
    async def test_multiple_calls_return_only_last_result(self, db):
        llm, _ = scripted_llm(
            requests_tools(
                tool_call("addIncome", {"name": "Got salary", "amount": "1000"}, "call_a"),
                tool_call("getMoneyBalance", {}, "call_b"),
            )
        )
        agent = FinanceAgent(db, llm=llm, synthesize_tool_results=False)

        run = await agent.run("Got my salary of 1000, what's my balance?")

        assert run.reply == "1000 INR"
        tool_messages = [m for m in run.messages if isinstance(m, ToolMessage)]
        assert [(m.tool_call_id, m.content) for m in tool_messages] == [
            ("call_a", "Income added to the database."),
            ("call_b", "1000 INR"),
        ]


# ===== Synthesize mode =====


class TestSynthesizeMode:
    @pytest.mark.asyncio
    async def test_second_completion_sees_tool_results(self, db):
        llm, bound = scripted_llm(
            requests_tools(tool_call("getMoneyBalance", {}, "call_1")),
            AIMessage(content="Your balance is 0 INR."),
        )
        agent = FinanceAgent(db, llm=llm, synthesize_tool_results=True)

        run = await agent.run("What's my balance?")

        assert run.reply == "Your balance is 0 INR."
        assert bound.ainvoke.await_count == 2
        second_request = bound.ainvoke.await_args_list[1].args[0]
        assert isinstance(second_request[-1], ToolMessage)
        assert second_request[-1].content == "0 INR"
        assert [type(m) for m in run.messages] == [
            SystemMessage,
            HumanMessage,
            AIMessage,
            ToolMessage,
            AIMessage,
        ]

    @pytest.mark.asyncio
    async def test_stops_at_round_limit(self, db):
        llm, bound = scripted_llm(
            requests_tools(tool_call("getMoneyBalance", {}, "call_1")),
            requests_tools(tool_call("getMoneyBalance", {}, "call_2")),
        )
        agent = FinanceAgent(db, llm=llm, synthesize_tool_results=True, max_tool_rounds=1)

        run = await agent.run("balance?")

        assert run.reply == "0 INR"
        bound.ainvoke.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_keeps_calling_tools_until_answer(self, db):
        llm, bound = scripted_llm(
            requests_tools(tool_call("addExpense", {"name": "Rent", "amount": "12000"}, "call_1")),
            requests_tools(tool_call("getMoneyBalance", {}, "call_2")),
            AIMessage(content="Logged rent. Balance is -12000 INR."),
        )
        agent = FinanceAgent(db, llm=llm, synthesize_tool_results=True)

        reply = await agent.handle("Paid rent 12000, balance?")

        assert reply == "Logged rent. Balance is -12000 INR."
        assert bound.ainvoke.await_count == 3

    @pytest.mark.asyncio
    async def test_zero_round_limit_is_honoured(self, db):
        llm, bound = scripted_llm(
            requests_tools(tool_call("getMoneyBalance", {}, "call_1")),
            AIMessage(content="never requested"),
        )
        agent = FinanceAgent(db, llm=llm, synthesize_tool_results=True, max_tool_rounds=0)

        run = await agent.run("balance?")

        assert agent.max_tool_rounds == 0
        assert run.reply == "0 INR"
        bound.ainvoke.assert_awaited_once()


# ===== Failures =====


class TestFailures:
    @pytest.mark.asyncio
    async def test_storage_error_returns_apology(self, mock_db):
        mock_db.commit.side_effect = OperationalError("INSERT", {}, Exception("db down"))
        llm, _ = scripted_llm(
            requests_tools(tool_call("addExpense", {"name": "Coffee", "amount": "150"}, "call_1"))
        )
        agent = FinanceAgent(mock_db, llm=llm)

        assert await agent.handle("I spent 150 on coffee") == APOLOGY

    def test_apology_text(self):
        assert APOLOGY == "Sorry, I encountered an error while processing your request."

    @pytest.mark.asyncio
    async def test_completion_error_returns_apology(self, mock_db):
        llm, _ = scripted_llm(RuntimeError("upstream 503"))
        agent = FinanceAgent(mock_db, llm=llm)

        run = await agent.run("balance?")

        assert run.reply == APOLOGY
        assert [type(m) for m in run.messages] == [SystemMessage, HumanMessage]

    @pytest.mark.asyncio
    async def test_malformed_tool_arguments_return_apology(self, mock_db):
        bad = AIMessage(
            content="",
            invalid_tool_calls=[
                {
                    "name": "addExpense",
                    "args": '{"name": "Coffee", "amount":',
                    "id": "call_1",
                    "error": "Expecting value",
                    "type": "invalid_tool_call",
                }
            ],
        )
        llm, _ = scripted_llm(bad)
        agent = FinanceAgent(mock_db, llm=llm)

        assert await agent.handle("coffee 150") == APOLOGY
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_tool_returns_apology(self, mock_db):
        llm, _ = scripted_llm(requests_tools(tool_call("deleteExpense", {"id": 1}, "call_1")))
        agent = FinanceAgent(mock_db, llm=llm)

        assert await agent.handle("delete my last expense") == APOLOGY


# ===== message_text =====


class TestMessageText:
    def test_plain_string(self):
        assert message_text(AIMessage(content="hello")) == "hello"

    def test_content_blocks(self):
        message = AIMessage(
            content=[
                {"type": "text", "text": "Your balance "},
                {"type": "tool_use", "id": "t1", "name": "getMoneyBalance", "input": {}},
                {"type": "text", "text": "is 0 INR."},
            ]
        )
        assert message_text(message) == "Your balance is 0 INR."
