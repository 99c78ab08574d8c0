from typing import Any, Dict, List, Optional, Sequence
from langchain_core.messages import ToolCall, ToolMessage
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool
import asyncio
import time
import structlog

from hub_agent.domain.errors import RequestValidationError
from hub_agent.infrastructure.observability.logging import agent_logger, metrics
from .tool_validator import ToolParameterValidator

logger = structlog.get_logger(__name__)


class ToolExecutor:
    """Dispatches model tool calls to capability objects by name"""

    def __init__(self, validator: Optional[ToolParameterValidator] = None):
        self.validator = validator or ToolParameterValidator()

    async def execute(
        self,
        tool_calls: Sequence[ToolCall],
        tools: Sequence[BaseTool],
        config: Optional[RunnableConfig] = None,
        thread_id: Optional[str] = None
    ) -> List[ToolMessage]:
        """Run every call concurrently; always one ToolMessage per call, in call order"""

        tools_by_name: Dict[str, BaseTool] = {tool.name: tool for tool in tools}

        return list(await asyncio.gather(*[
            self.execute_tool(call, tools_by_name.get(call["name"]), config, thread_id)
            for call in tool_calls
        ]))

    async def execute_tool(
        self,
        call: ToolCall,
        tool: Optional[BaseTool],
        config: Optional[RunnableConfig] = None,
        thread_id: Optional[str] = None
    ) -> ToolMessage:
        """Execute a single tool call, converting failures into error tool messages"""

        name = call["name"]
        call_id = call.get("id") or ""
        args: Dict[str, Any] = call.get("args") or {}
        started = time.perf_counter()

        if tool is None:
            return self._error(call_id, name, f"Error: tool '{name}' is not available in this context.", args, started, thread_id)

        try:
            self.validator.validate_tool_call(tool, args)
        except RequestValidationError as e:
            return self._error(call_id, name, f"Error: {e.message}", args, started, thread_id)

        try:
            result = await tool.ainvoke(
                {"name": name, "args": args, "id": call_id, "type": "tool_call"},
                config
            )
        except Exception as e:
            logger.error("Tool execution failed", tool_name=name, error=str(e))
            return self._error(call_id, name, f"Error: {e}", args, started, thread_id)

        message = result if isinstance(result, ToolMessage) else ToolMessage(
            content=str(result), tool_call_id=call_id, name=name
        )

        duration_ms = (time.perf_counter() - started) * 1000
        success = message.status != "error"
        agent_logger.log_tool_execution(
            tool_name=name,
            thread_id=thread_id,
            input_data=args,
            duration_ms=duration_ms,
            success=success,
            error=None if success else str(message.content)
        )
        if not success:
            metrics.increment_counter("tool.errors", tags={"tool": name})

        return message

    def _error(
        self,
        call_id: str,
        name: str,
        content: str,
        args: Dict[str, Any],
        started: float,
        thread_id: Optional[str]
    ) -> ToolMessage:
        agent_logger.log_tool_execution(
            tool_name=name,
            thread_id=thread_id,
            input_data=args,
            duration_ms=(time.perf_counter() - started) * 1000,
            success=False,
            error=content
        )
        metrics.increment_counter("tool.errors", tags={"tool": name})
        return ToolMessage(content=content, tool_call_id=call_id, name=name, status="error")
