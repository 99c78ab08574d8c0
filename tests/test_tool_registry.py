"""Tests for the tool registry and context manifest."""
import pytest
from langchain_core.tools import StructuredTool

from hub_agent.domain.context.context_resolver import CALENDAR, GLOBAL, POST_EDITOR
from hub_agent.domain.models.agent_state import ContextSnapshot
from hub_agent.domain.tool.calendar_tools import NoArgs, build_tool_registry
from hub_agent.domain.tool.tool_manifest import resolve_tools, tool_names_for_context
from hub_agent.domain.tool.tool_registry import ToolDependencies, ToolMode, ToolRegistry


@pytest.fixture
def registry():
    return build_tool_registry()


@pytest.fixture
def deps(repository, tool_context, caption_generator, grader):
    return ToolDependencies(
        repository=repository,
        tool_context=tool_context,
        caption_generator=caption_generator,
        grader=grader,
    )


def test_registry_marks_client_tools_as_deferred(registry):
    assert registry.deferred_tool_names() == {
        "navigate_to_calendar", "apply_caption_to_open_post", "create_post", "open_post"
    }
    assert registry.is_deferred("create_post")
    assert not registry.is_deferred("get_posts")
    assert not registry.is_deferred("missing")


def test_categories(registry):
    names = [spec.name for spec in registry.get_tools_by_category("posts")]
    assert names == ["get_posts", "get_current_post", "create_post", "open_post"]


def test_deferred_tools_return_direct(registry, deps):
    assert registry.create_tool("open_post", deps).return_direct is True
    assert registry.create_tool("get_posts", deps).return_direct is False


def test_replacing_a_tool_moves_its_category():
    registry = ToolRegistry()

    def factory(deps):
        return StructuredTool.from_function(func=lambda: "x", name="thing", description="d", args_schema=NoArgs)

    registry.register_tool("thing", factory, category="a")
    registry.register_tool("thing", factory, mode=ToolMode.CLIENT, category="b")

    assert registry.tool_categories["a"] == []
    assert [spec.name for spec in registry.get_tools_by_category("b")] == ["thing"]


def test_manifest_union_keeps_first_seen_order():
    names = tool_names_for_context([GLOBAL, CALENDAR])

    assert names == [
        "navigate_to_calendar", "generate_caption", "get_brand_rules", "grade_caption",
        "get_posts", "create_post", "open_post",
    ]


def test_resolve_tools_appends_current_post_tool(registry, deps):
    snapshot = ContextSnapshot(post_id="post-1")
    tools = resolve_tools([GLOBAL, POST_EDITOR], snapshot, registry, deps)

    names = [tool.name for tool in tools]
    assert names[-1] == "get_current_post"
    assert "apply_caption_to_open_post" in names
    assert names.count("generate_caption") == 1


def test_resolve_tools_skips_unregistered_names(registry, deps):
    manifest = {GLOBAL: ["get_brand_rules", "not_a_tool"]}

    tools = resolve_tools([GLOBAL], None, registry, deps, manifest=manifest)

    assert [tool.name for tool in tools] == ["get_brand_rules"]
