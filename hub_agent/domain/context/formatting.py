from typing import Any, Dict, List, Sequence
from langchain_core.messages import BaseMessage


def message_text(message: Any) -> str:
    """Plain text of a message whose content may be a string or content blocks"""

    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict):
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return str(content or "")


def format_history(messages: Sequence[BaseMessage], window: int = 4) -> str:
    """Compact `type: content` lines for the trailing messages"""

    recent = list(messages)[-window:] if window > 0 else []
    return "\n".join(f"{msg.type}: {message_text(msg)}" for msg in recent)


def rich_text_to_plain(nodes: List[Dict[str, Any]]) -> str:
    """Flatten editor nodes (blocks with children of text leaves) into lines"""

    if not nodes or not isinstance(nodes, list):
        return ""

    def node_string(node: Any) -> str:
        if not isinstance(node, dict):
            return ""
        if "text" in node:
            return str(node.get("text") or "")
        return "".join(node_string(child) for child in node.get("children", []))

    return "\n".join(node_string(node) for node in nodes).strip()
