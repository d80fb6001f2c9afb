import operator
from typing import Annotated, TypedDict

from langchain_core.messages import BaseMessage


class AgentState(TypedDict):
    # Append-only transcript; nodes return only the messages they add
    messages: Annotated[list[BaseMessage], operator.add]
    tool_rounds: int
