from typing import Any, Callable, Dict, List, Optional, Set
from dataclasses import dataclass
from enum import Enum
from langchain_core.tools import BaseTool
import structlog

from hub_agent.domain.models.agent_state import ContextSnapshot, ToolContext

logger = structlog.get_logger(__name__)


class ToolMode(str, Enum):
    """Where a tool's effect happens"""
    SERVER = "server"
    CLIENT = "client"


@dataclass
class ToolDependencies:
    """Everything a tool factory may bind into the tool it builds"""
    repository: Any
    tool_context: ToolContext
    snapshot: Optional[ContextSnapshot] = None
    caption_generator: Any = None
    grader: Any = None


ToolFactory = Callable[[ToolDependencies], BaseTool]


@dataclass
class ToolSpec:
    """A registered capability"""
    name: str
    factory: ToolFactory
    mode: ToolMode = ToolMode.SERVER
    category: str = "general"


class ToolRegistry:
    """Registry of capability factories keyed by tool name"""

    def __init__(self):
        self.tools: Dict[str, ToolSpec] = {}
        self.tool_categories: Dict[str, List[str]] = {}

    def register_tool(
        self,
        name: str,
        factory: ToolFactory,
        mode: ToolMode = ToolMode.SERVER,
        category: str = "general"
    ) -> ToolSpec:
        """Register a new tool factory"""

        if name in self.tools:
            logger.warning("Replacing registered tool", tool_name=name)
            self.tool_categories[self.tools[name].category].remove(name)

        spec = ToolSpec(name=name, factory=factory, mode=mode, category=category)
        self.tools[name] = spec
        self.tool_categories.setdefault(category, []).append(name)
        return spec

    def has_tool(self, name: str) -> bool:
        return name in self.tools

    def get_tool_info(self, name: str) -> Optional[ToolSpec]:
        """Get information about a specific tool"""
        return self.tools.get(name)

    def is_deferred(self, name: str) -> bool:
        """True for client-deferred tools"""
        spec = self.tools.get(name)
        return spec is not None and spec.mode == ToolMode.CLIENT

    def deferred_tool_names(self) -> Set[str]:
        return {name for name, spec in self.tools.items() if spec.mode == ToolMode.CLIENT}

    def get_tools_by_category(self, category: str) -> List[ToolSpec]:
        """Get tools by category"""

        tool_names = self.tool_categories.get(category, [])
        return [self.tools[name] for name in tool_names if name in self.tools]

    def create_tool(self, name: str, deps: ToolDependencies) -> BaseTool:
        """Instantiate a registered tool; raises KeyError for unknown names"""

        spec = self.tools[name]
        tool = spec.factory(deps)

        if tool.name != name:
            raise ValueError(f"Factory for '{name}' built a tool named '{tool.name}'")

        # Deferred tools end the model loop as soon as they run
        if spec.mode == ToolMode.CLIENT:
            tool.return_direct = True

        return tool
