from typing import Dict, List, Optional
from langchain_core.tools import BaseTool
import structlog

from hub_agent.domain.context.context_resolver import BRAND_VOICE, CALENDAR, GLOBAL, POST_EDITOR
from hub_agent.domain.models.agent_state import ContextSnapshot
from .tool_registry import ToolDependencies, ToolRegistry

logger = structlog.get_logger(__name__)

CURRENT_POST_TOOL = "get_current_post"

TOOL_MANIFEST: Dict[str, List[str]] = {
    GLOBAL: [
        "navigate_to_calendar",
        "generate_caption",
        "get_brand_rules",
        "grade_caption",
    ],
    CALENDAR: [
        "get_posts",
        "generate_caption",
        "get_brand_rules",
        "grade_caption",
        "create_post",
        "open_post",
    ],
    POST_EDITOR: [
        "generate_caption",
        "apply_caption_to_open_post",
        "get_brand_rules",
        "grade_caption",
    ],
    BRAND_VOICE: [
        "get_brand_rules",
        "grade_caption",
    ],
}


def tool_names_for_context(context_keys: List[str], manifest: Optional[Dict[str, List[str]]] = None) -> List[str]:
    """Union of tool names for the active keys, first-seen order"""

    manifest = TOOL_MANIFEST if manifest is None else manifest
    names: List[str] = []

    for key in context_keys:
        for name in manifest.get(key, []):
            if name not in names:
                names.append(name)

    return names


def resolve_tools(
    context_keys: List[str],
    snapshot: Optional[ContextSnapshot],
    registry: ToolRegistry,
    deps: ToolDependencies,
    manifest: Optional[Dict[str, List[str]]] = None
) -> List[BaseTool]:
    """Instantiate the tools visible for this turn; missing tools are skipped"""

    names = tool_names_for_context(context_keys, manifest)

    # The open post can always be introspected
    if snapshot is not None and snapshot.open_post_id and CURRENT_POST_TOOL not in names:
        names.append(CURRENT_POST_TOOL)

    tools: List[BaseTool] = []
    for name in names:
        if not registry.has_tool(name):
            logger.warning("Tool in manifest is not registered", tool_name=name)
            continue

        try:
            tools.append(registry.create_tool(name, deps))
        except Exception as e:
            logger.error("Error creating tool", tool_name=name, error=str(e))

    logger.info("Resolved tools", context_keys=context_keys, tools=[t.name for t in tools])
    return tools
