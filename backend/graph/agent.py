import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv
from langchain_anthropic import ChatAnthropic
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from sqlalchemy.ext.asyncio import AsyncSession

from graph.catalog import build_system_prompt
from graph.graph import compile_agent_graph

load_dotenv()

logger = logging.getLogger(__name__)

APOLOGY = "Sorry, I encountered an error while processing your request."

_MODEL = os.getenv("FINANCE_AGENT_MODEL", "claude-sonnet-4-6")
_SYNTHESIZE = os.getenv("FINANCE_AGENT_SYNTHESIZE", "true").strip().lower() not in {"0", "false", "no", "off"}
_MAX_TOOL_ROUNDS = int(os.getenv("FINANCE_AGENT_MAX_TOOL_ROUNDS", "5"))


def message_text(message: BaseMessage) -> str:
    """Plain text of a message whose content may be a list of content blocks."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


@dataclass
class AgentRun:
    reply: str
    messages: list[BaseMessage] = field(default_factory=list)


class FinanceAgent:
    """Answers one finance question, calling ledger tools when the model asks."""

    def __init__(
        self,
        db: AsyncSession,
        llm=None,
        *,
        synthesize_tool_results: bool | None = None,
        max_tool_rounds: int | None = None,
    ) -> None:
        self.llm = llm if llm is not None else ChatAnthropic(model=_MODEL, max_tokens=1024)
        self.synthesize_tool_results = _SYNTHESIZE if synthesize_tool_results is None else synthesize_tool_results
        self.max_tool_rounds = _MAX_TOOL_ROUNDS if max_tool_rounds is None else max_tool_rounds
        self._graph = compile_agent_graph(
            self.llm,
            db,
            synthesize=self.synthesize_tool_results,
            max_tool_rounds=self.max_tool_rounds,
        )

    def build_transcript(self, question: str, history: list[BaseMessage] | None = None) -> list[BaseMessage]:
        messages: list[BaseMessage] = [SystemMessage(content=build_system_prompt())]
        messages.extend(m for m in history or [] if not isinstance(m, SystemMessage))
        messages.append(HumanMessage(content=question))
        return messages

    async def run(self, question: str, history: list[BaseMessage] | None = None) -> AgentRun:
        """
        Run the transcript through the model/tool loop.

        Any failure (model, ledger, malformed tool call) is logged and turned
        into APOLOGY; the returned transcript is then the one that was sent.
        """
        messages = self.build_transcript(question, history)
        # model + tools per round, plus the closing model call
        config = {"recursion_limit": 2 * self.max_tool_rounds + 5}

        try:
            final_state = await self._graph.ainvoke({"messages": messages, "tool_rounds": 0}, config=config)
        except Exception as exc:
            logger.error("Finance agent failed for %r: %s", question, exc)
            return AgentRun(reply=APOLOGY, messages=messages)

        transcript = final_state["messages"]
        return AgentRun(reply=message_text(transcript[-1]), messages=transcript)

    async def handle(self, question: str) -> str:
        run = await self.run(question)
        return run.reply
