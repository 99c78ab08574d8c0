from typing import Any, Dict, Sequence, Set
from langchain_core.messages import AIMessage, BaseMessage, ToolMessage
from langchain_core.tools import BaseTool
from pydantic import BaseModel, ValidationError

from hub_agent.domain.errors import RequestValidationError


class ToolParameterValidator:
    """Validates tool arguments and tool-message bookkeeping"""

    @staticmethod
    def validate_tool_call(tool: BaseTool, parameters: Dict[str, Any]) -> Dict[str, Any]:
        """Validate arguments against the tool's schema, returning the parsed values"""

        schema = tool.args_schema
        if schema is None or not (isinstance(schema, type) and issubclass(schema, BaseModel)):
            return dict(parameters or {})

        try:
            parsed = schema.model_validate(parameters or {})
        except ValidationError as e:
            raise RequestValidationError(
                f"Invalid arguments for tool '{tool.name}': {e.errors(include_url=False)}",
                {"tool": tool.name}
            )

        return parsed.model_dump(exclude_unset=True)

    @staticmethod
    def validate_message_sequence(messages: Sequence[BaseMessage]) -> None:
        """Every tool message must answer a tool call emitted earlier in the thread"""

        emitted: Set[str] = set()
        answered: Set[str] = set()

        for index, message in enumerate(messages):
            if isinstance(message, AIMessage):
                for call in message.tool_calls:
                    if call.get("id"):
                        emitted.add(call["id"])
            elif isinstance(message, ToolMessage):
                if message.tool_call_id not in emitted:
                    raise RequestValidationError(
                        f"Tool message at position {index} references unknown tool call '{message.tool_call_id}'",
                        {"tool_call_id": message.tool_call_id}
                    )
                if message.tool_call_id in answered:
                    raise RequestValidationError(
                        f"Tool call '{message.tool_call_id}' was answered more than once",
                        {"tool_call_id": message.tool_call_id}
                    )
                answered.add(message.tool_call_id)
