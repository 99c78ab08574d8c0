from typing import TypedDict, Annotated, List, Dict, Any, Optional, Callable, Literal
from langgraph.graph import StateGraph, END
from langgraph.graph.message import add_messages
from langgraph.errors import GraphRecursionError
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, AIMessage, SystemMessage, ToolMessage
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool
import asyncio
import time
import uuid
import structlog

from hub_agent.domain.context.context_manager import ContextManager
from hub_agent.domain.context.context_resolver import get_context_keys
from hub_agent.domain.context.formatting import message_text
from hub_agent.domain.context.memory.conversation_memory import ConversationMemory
from hub_agent.domain.errors import (
    AgentTimeoutError, HubAgentError, RequestValidationError, UpstreamError
)
from hub_agent.domain.guardrail.guardrail_validator import GuardrailValidator
from hub_agent.domain.models.agent_state import (
    ChatTurnResult, ContextSnapshot, ToolCallRecord, ToolContext, TurnStatus
)
from hub_agent.domain.streaming.event_bus import StreamEventBus
from hub_agent.domain.streaming.streaming_handler import STREAM_TAG, StreamingCallbackHandler
from hub_agent.domain.tool.tool_executor import ToolExecutor
from hub_agent.domain.tool.tool_manifest import resolve_tools
from hub_agent.domain.tool.tool_registry import ToolDependencies, ToolRegistry
from hub_agent.domain.tool.tool_validator import ToolParameterValidator
from hub_agent.infrastructure.config.settings import Settings
from hub_agent.infrastructure.observability.langfuse_tracing import LangfuseTracing
from hub_agent.infrastructure.observability.logging import agent_logger, metrics
from .system_prompt import compose_system_prompt

logger = structlog.get_logger(__name__)

TIMEOUT_MESSAGE = "I'm sorry, that took too long to process. Please try again."
FAILURE_MESSAGE = "I'm sorry, I ran into a problem while processing your request. Please try again."


class TurnState(TypedDict):
    """State for the turn graph"""
    messages: Annotated[List[BaseMessage], add_messages]
    user_input: str
    snapshot: Optional[ContextSnapshot]
    calendar_id: str
    context_keys: List[str]
    tools: List[BaseTool]
    system_prompt: str
    status: TurnStatus


class AgentOrchestrator:
    """Runs chat turns through a LangGraph state machine"""

    def __init__(
        self,
        chat_model: BaseChatModel,
        tool_registry: ToolRegistry,
        context_manager: ContextManager,
        guardrail: GuardrailValidator,
        memory: ConversationMemory,
        caption_generator: Any = None,
        grader: Any = None,
        event_bus: Optional[StreamEventBus] = None,
        tracing: Optional[LangfuseTracing] = None,
        settings: Optional[Settings] = None,
        repository_factory: Optional[Callable[[str, str], Any]] = None,
        executor: Optional[ToolExecutor] = None
    ):
        self.chat_model = chat_model
        self.tool_registry = tool_registry
        self.context_manager = context_manager
        self.guardrail = guardrail
        self.memory = memory
        self.caption_generator = caption_generator
        self.grader = grader
        self.event_bus = event_bus
        self.settings = settings or Settings()
        self.tracing = tracing
        self.repository_factory = repository_factory
        self.executor = executor or ToolExecutor()
        self.workflow = self._create_workflow()

    def _create_workflow(self):
        """Create the turn graph"""

        workflow = StateGraph(TurnState)

        workflow.add_node("guardrail_check", self.guardrail_node)
        workflow.add_node("tool_resolution", self.tool_resolution_node)
        workflow.add_node("model_invoke", self.model_invoke_node)
        workflow.add_node("tools", self.tool_execution_node)
        workflow.add_node("pending_client_tool", self.pending_client_tool_node)
        workflow.add_node("final_response", self.final_response_node)

        workflow.set_entry_point("guardrail_check")

        workflow.add_conditional_edges(
            "guardrail_check",
            self.route_after_guardrail,
            {
                "allowed": "tool_resolution",
                "blocked": END
            }
        )

        workflow.add_edge("tool_resolution", "model_invoke")

        workflow.add_conditional_edges(
            "model_invoke",
            self.route_after_model,
            {
                "tools": "tools",
                "respond": "final_response"
            }
        )

        workflow.add_conditional_edges(
            "tools",
            self.route_after_tools,
            {
                "deferred": "pending_client_tool",
                "continue": "model_invoke"
            }
        )

        workflow.add_edge("pending_client_tool", END)
        workflow.add_edge("final_response", END)

        return workflow.compile()

    async def guardrail_node(self, state: TurnState, config: RunnableConfig) -> Dict[str, Any]:
        """Block off-topic input before any tool or main model call"""

        messages = state["messages"]
        if not messages or not isinstance(messages[-1], HumanMessage):
            return {"status": TurnStatus.GUARDRAIL_CHECK}

        decision = await self.guardrail.validate(state["user_input"], messages[:-1], config)
        if decision.is_allowed:
            return {"status": TurnStatus.GUARDRAIL_CHECK}

        return {
            "messages": [AIMessage(content=GuardrailValidator.refusal_for(decision))],
            "status": TurnStatus.BLOCKED
        }

    async def tool_resolution_node(self, state: TurnState, config: RunnableConfig) -> Dict[str, Any]:
        """Pick this turn's tools and assemble the system prompt"""

        configurable = config.get("configurable", {})
        thread_id = configurable.get("thread_id")
        repository = configurable["repository"]
        snapshot = state.get("snapshot")

        context_keys = get_context_keys(snapshot)
        deps = ToolDependencies(
            repository=repository,
            tool_context=configurable["tool_context"],
            snapshot=snapshot,
            caption_generator=self.caption_generator,
            grader=self.grader
        )
        tools = resolve_tools(context_keys, snapshot, self.tool_registry, deps)

        context_block = await self.context_manager.build_context(
            snapshot,
            repository,
            state["messages"][:-1],
            state["user_input"],
            state["calendar_id"],
            thread_id=thread_id,
            config=config
        )

        return {
            "context_keys": context_keys,
            "tools": tools,
            "system_prompt": compose_system_prompt(context_block),
            "status": TurnStatus.TOOL_RESOLUTION
        }

    async def model_invoke_node(self, state: TurnState, config: RunnableConfig) -> Dict[str, Any]:
        """Call the chat model with the turn's tools"""

        tools = state.get("tools") or []
        model = self.chat_model.bind_tools(tools) if tools else self.chat_model
        model = model.with_config(tags=[STREAM_TAG])

        started = time.perf_counter()
        try:
            response = await model.ainvoke(
                [SystemMessage(content=state["system_prompt"])] + list(state["messages"]),
                config
            )
        except Exception as e:
            logger.error("Chat model call failed", error=str(e), error_type=type(e).__name__)
            raise UpstreamError("Chat model call failed", {"error": str(e)})

        if isinstance(response, AIMessage) and any(not call.get("id") for call in response.tool_calls):
            # tool messages are matched to calls by id
            response = response.model_copy(update={"tool_calls": [
                {**call, "id": call.get("id") or f"call_{uuid.uuid4().hex[:24]}"}
                for call in response.tool_calls
            ]})

        metrics.record_latency("model_invoke", (time.perf_counter() - started) * 1000)
        return {"messages": [response], "status": TurnStatus.MODEL_INVOKE}

    async def tool_execution_node(self, state: TurnState, config: RunnableConfig) -> Dict[str, Any]:
        """Execute every tool call of the last model response"""

        last_message = state["messages"][-1]
        thread_id = config.get("configurable", {}).get("thread_id")

        results = await self.executor.execute(
            last_message.tool_calls,
            state.get("tools") or [],
            config,
            thread_id
        )
        return {"messages": results}

    async def pending_client_tool_node(self, state: TurnState) -> Dict[str, Any]:
        return {"status": TurnStatus.PENDING_CLIENT_TOOL}

    async def final_response_node(self, state: TurnState) -> Dict[str, Any]:
        return {"status": TurnStatus.TERMINAL_RESPONSE}

    def route_after_guardrail(self, state: TurnState) -> Literal["allowed", "blocked"]:
        route = "blocked" if state.get("status") == TurnStatus.BLOCKED else "allowed"
        agent_logger.log_turn_transition(None, "guardrail_check", route)
        return route

    def route_after_model(self, state: TurnState) -> Literal["tools", "respond"]:
        last_message = state["messages"][-1]
        route = "tools" if isinstance(last_message, AIMessage) and last_message.tool_calls else "respond"
        agent_logger.log_turn_transition(None, "model_invoke", route)
        return route

    def route_after_tools(self, state: TurnState) -> Literal["deferred", "continue"]:
        """A deferred call that succeeded hands the turn back to the client"""

        route = "deferred" if self._completed_deferred_calls(state["messages"]) else "continue"
        agent_logger.log_turn_transition(None, "tools", route)
        return route

    def _completed_deferred_calls(self, messages: List[BaseMessage]) -> List[ToolCallRecord]:
        """Deferred calls of the last assistant message whose tool message is not an error"""

        ai_message: Optional[AIMessage] = None
        results: Dict[str, ToolMessage] = {}

        for message in reversed(messages):
            if isinstance(message, ToolMessage):
                results[message.tool_call_id] = message
            elif isinstance(message, AIMessage):
                ai_message = message
                break
            else:
                break

        if ai_message is None:
            return []

        return [
            ToolCallRecord(id=call["id"], name=call["name"], args=call.get("args") or {})
            for call in ai_message.tool_calls
            if self.tool_registry.is_deferred(call["name"])
            and call.get("id") in results
            and results[call["id"]].status != "error"
        ]

    def extract_response(self, new_messages: List[BaseMessage], thread_id: str, status: TurnStatus) -> ChatTurnResult:
        """Text of the last assistant message plus any deferred calls for the client"""

        tool_calls: Optional[List[ToolCallRecord]] = None
        if status == TurnStatus.PENDING_CLIENT_TOOL:
            tool_calls = self._completed_deferred_calls(new_messages) or None

        for message in reversed(new_messages):
            if isinstance(message, AIMessage):
                return ChatTurnResult(
                    response=message_text(message),
                    tool_calls=tool_calls,
                    thread_id=thread_id,
                    status=status
                )

        return ChatTurnResult(response="", tool_calls=None, thread_id=thread_id, status=status)

    async def run_chat(
        self,
        user_input: str,
        tool_context: ToolContext,
        snapshot: Optional[ContextSnapshot] = None,
        thread_id: Optional[str] = None,
        repository: Any = None
    ) -> ChatTurnResult:
        """Process one user message; memory is written only when the turn succeeds"""

        if not user_input or not user_input.strip():
            raise RequestValidationError("Input is required")

        thread_id = thread_id or str(uuid.uuid4())
        if repository is None:
            if self.repository_factory is None:
                raise RequestValidationError("No repository available for this turn")
            repository = self.repository_factory(tool_context.user_id, tool_context.calendar_id)

        with structlog.contextvars.bound_contextvars(
            thread_id=thread_id,
            user_id=tool_context.user_id,
            calendar_id=tool_context.calendar_id
        ):
            return await self._run_turn(user_input, tool_context, snapshot, thread_id, repository)

    async def _run_turn(
        self,
        user_input: str,
        tool_context: ToolContext,
        snapshot: Optional[ContextSnapshot],
        thread_id: str,
        repository: Any
    ) -> ChatTurnResult:
        logger.info("Processing chat turn", input_length=len(user_input))

        history = await self.memory.load(thread_id)
        streaming = StreamingCallbackHandler(self.event_bus, thread_id) if self.event_bus else None

        callbacks: List[Any] = [streaming] if streaming else []
        metadata: Dict[str, Any] = {}
        if self.tracing is not None:
            callbacks.extend(self.tracing.callbacks())
            metadata = self.tracing.trace_metadata(thread_id, tool_context.user_id)

        config: RunnableConfig = {
            "configurable": {
                "thread_id": thread_id,
                "repository": repository,
                "tool_context": tool_context,
            },
            "callbacks": callbacks,
            "metadata": metadata,
            "recursion_limit": self.settings.recursion_limit,
            "run_name": "chat_turn",
        }

        initial_state: TurnState = {
            "messages": history + [HumanMessage(content=user_input)],
            "user_input": user_input,
            "snapshot": snapshot,
            "calendar_id": tool_context.calendar_id,
            "context_keys": [],
            "tools": [],
            "system_prompt": "",
            "status": TurnStatus.IDLE,
        }

        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                self.workflow.ainvoke(initial_state, config),
                timeout=self.settings.agent_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error("Chat turn timed out", timeout_seconds=self.settings.agent_timeout_seconds)
            self._fail(streaming, started, TIMEOUT_MESSAGE)
            raise AgentTimeoutError(
                "Agent invocation timed out",
                {"timeout_seconds": self.settings.agent_timeout_seconds}
            )
        except GraphRecursionError as e:
            logger.error("Chat turn hit recursion limit", recursion_limit=self.settings.recursion_limit)
            self._fail(streaming, started, FAILURE_MESSAGE)
            raise UpstreamError("Agent exceeded the step limit", {"error": str(e)})
        except HubAgentError as e:
            logger.error("Chat turn failed", error=e.message, error_type=type(e).__name__)
            self._fail(streaming, started, FAILURE_MESSAGE)
            raise
        except Exception as e:
            logger.error("Chat turn failed", error=str(e), error_type=type(e).__name__)
            self._fail(streaming, started, FAILURE_MESSAGE)
            raise UpstreamError("Agent invocation failed", {"error": str(e)})
        finally:
            if self.tracing is not None:
                self.tracing.flush()

        new_messages = list(result["messages"][len(history):])
        try:
            ToolParameterValidator.validate_message_sequence(history + new_messages)
        except RequestValidationError as e:
            # the sequence is the agent's own output, not the caller's
            logger.error("Turn produced an invalid message sequence", error=e.message)
            self._fail(streaming, started, FAILURE_MESSAGE)
            raise UpstreamError("Agent produced an invalid message sequence", {"error": e.message})
        await self.memory.append(thread_id, new_messages)

        status = result.get("status", TurnStatus.TERMINAL_RESPONSE)
        turn = self.extract_response(new_messages, thread_id, status)

        metrics.record_latency("chat_turn", (time.perf_counter() - started) * 1000, tags={"status": status.value})
        logger.info(
            "Chat turn completed",
            status=status.value,
            new_messages=len(new_messages),
            deferred_calls=len(turn.tool_calls or [])
        )

        if streaming:
            streaming.publish_done()

        return turn

    def _fail(self, streaming: Optional[StreamingCallbackHandler], started: float, message: str) -> None:
        status = TurnStatus.FAILED.value
        metrics.record_latency("chat_turn", (time.perf_counter() - started) * 1000, tags={"status": status})
        metrics.increment_counter("chat_turn.failed")
        if streaming:
            streaming.publish_error(message)
