import logging

from langchain_core.messages import AIMessage, ToolMessage
from langgraph.graph import END, START, StateGraph
from sqlalchemy.ext.asyncio import AsyncSession

from graph.catalog import TOOL_SCHEMA
from graph.state import AgentState
from graph.tools import ToolArgumentsError, execute_tool_call

logger = logging.getLogger(__name__)


def _requested_tools(message) -> bool:
    return isinstance(message, AIMessage) and bool(message.tool_calls or message.invalid_tool_calls)


def compile_agent_graph(
    llm,
    db: AsyncSession,
    *,
    synthesize: bool = True,
    max_tool_rounds: int = 5,
):
    """
    Build the model -> tools loop.

    With synthesize=False the graph stops after the first tools round, so the
    last transcript entry is the final tool result. Otherwise control returns
    to the model until it answers without tool calls or max_tool_rounds is hit.
    """
    model = llm.bind_tools(TOOL_SCHEMA)

    async def model_node(state: AgentState) -> dict:
        response = await model.ainvoke(state["messages"])
        return {"messages": [response]}

    async def tools_node(state: AgentState) -> dict:
        request = state["messages"][-1]
        if request.invalid_tool_calls:
            bad = request.invalid_tool_calls[0]
            logger.error("Unparseable tool call %s: %s", bad.get("name"), bad.get("error"))
            raise ToolArgumentsError(f"{bad.get('name')}: arguments are not valid JSON")

        results = []
        for call in request.tool_calls:
            content = await execute_tool_call(call, db)
            results.append(ToolMessage(content=content, tool_call_id=call["id"], name=call["name"]))
        return {"messages": results, "tool_rounds": state["tool_rounds"] + 1}

    def after_model(state: AgentState) -> str:
        return "tools" if _requested_tools(state["messages"][-1]) else END

    def after_tools(state: AgentState) -> str:
        if not synthesize:
            return END
        if state["tool_rounds"] >= max_tool_rounds:
            logger.warning("Stopping after %d tool rounds without a final answer", state["tool_rounds"])
            return END
        return "model"

    graph = StateGraph(AgentState)

    graph.add_node("model", model_node)
    graph.add_node("tools", tools_node)

    graph.add_edge(START, "model")
    graph.add_conditional_edges("model", after_model, ["tools", END])
    graph.add_conditional_edges("tools", after_tools, ["model", END])

    return graph.compile()
