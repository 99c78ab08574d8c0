"""Tests for the calendar capabilities exposed to the model."""
import json

import pytest
from langchain_core.messages import ToolMessage

from hub_agent.domain.models.agent_state import ContextSnapshot
from hub_agent.domain.tool.calendar_tools import build_tool_registry
from hub_agent.domain.tool.tool_registry import ToolDependencies
from hub_agent.infrastructure.repository.calendar_repository import InMemoryCalendarRepository
from tests.conftest import CALENDAR_ID, USER_ID


def invoke(tool, args=None):
    return tool.ainvoke({"name": tool.name, "args": args or {}, "id": "call-1", "type": "tool_call"})


@pytest.fixture
def make_tool(repository, tool_context, caption_generator, grader):
    registry = build_tool_registry()

    def factory(name, snapshot=None, repo=None):
        deps = ToolDependencies(
            repository=repo or repository,
            tool_context=tool_context,
            snapshot=snapshot,
            caption_generator=caption_generator,
            grader=grader,
        )
        return registry.create_tool(name, deps)

    return factory


@pytest.mark.asyncio
async def test_get_posts_lists_calendar_posts_in_date_order(make_tool):
    message = await invoke(make_tool("get_posts"))

    posts = json.loads(message.content)
    assert [post["id"] for post in posts] == ["post-2", "post-1"]
    assert posts[1]["caption"] == "Old caption"


@pytest.mark.asyncio
async def test_get_posts_forbidden_for_non_member(make_tool, store, access):
    outsider = InMemoryCalendarRepository(store, access, "intruder", CALENDAR_ID)

    message = await invoke(make_tool("get_posts", repo=outsider))

    assert isinstance(message, ToolMessage)
    assert message.status == "error"
    assert "Forbidden" in message.content


@pytest.mark.asyncio
async def test_get_current_post_without_open_post(make_tool):
    message = await invoke(make_tool("get_current_post"))
    assert json.loads(message.content) == {"error": "No post ID provided"}


@pytest.mark.asyncio
async def test_get_current_post_details(make_tool):
    message = await invoke(make_tool("get_current_post", snapshot=ContextSnapshot(post_id="post-1")))

    post = json.loads(message.content)
    assert post["id"] == "post-1"
    assert post["images"] == ["a.png"]


@pytest.mark.asyncio
async def test_get_current_post_missing(make_tool):
    message = await invoke(make_tool("get_current_post", snapshot=ContextSnapshot(post_id="nope")))
    assert json.loads(message.content) == {"error": "Post not found"}


@pytest.mark.asyncio
async def test_generate_caption_returns_score_and_suggestions(make_tool):
    message = await invoke(make_tool("generate_caption"), {"topic": "Summer sale"})

    assert message.status != "error"
    assert "Caption about Summer sale" in message.content
    assert "Add an emoji." in message.content


@pytest.mark.asyncio
async def test_grade_caption_message(make_tool):
    message = await invoke(make_tool("grade_caption"), {"caption": "Hi there"})

    assert "Caption scored 92/100. 1 suggestion(s) provided." in message.content


@pytest.mark.asyncio
async def test_get_brand_rules_only_enabled(make_tool):
    message = await invoke(make_tool("get_brand_rules"))

    assert "Friendly tone" in message.content
    assert "Old rule" not in message.content


@pytest.mark.asyncio
async def test_get_brand_rules_none_configured(make_tool, store, access):
    access.grant(USER_ID, "cal-empty")
    empty = InMemoryCalendarRepository(store, access, USER_ID, "cal-empty")

    message = await invoke(make_tool("get_brand_rules", repo=empty))

    assert "No active brand voice rules are configured." in message.content


@pytest.mark.asyncio
async def test_apply_caption_confirms_without_writing(make_tool, store):
    message = await invoke(make_tool("apply_caption_to_open_post"), {"post_id": "post-1", "caption": "New"})

    assert message.content == "Caption suggestion ready for post post-1. The client will apply this change."
    assert store.posts["post-1"].caption == "Old caption"


@pytest.mark.asyncio
async def test_apply_caption_to_other_calendar_post_fails(make_tool):
    message = await invoke(make_tool("apply_caption_to_open_post"), {"post_id": "post-x", "caption": "New"})

    assert message.status == "error"
    assert "Forbidden" in message.content


@pytest.mark.asyncio
async def test_open_post_unknown_id_fails(make_tool):
    message = await invoke(make_tool("open_post"), {"post_id": "ghost"})

    assert message.status == "error"
    assert message.content == "Post not found"


@pytest.mark.asyncio
async def test_navigation_and_create_post_messages(make_tool):
    navigate = await invoke(make_tool("navigate_to_calendar"))
    create = await invoke(make_tool("create_post"), {"date": "tomorrow"})

    assert navigate.content == "Navigation requested to calendar. The client will handle this."
    assert create.content == "Post creation requested for tomorrow. The client will open the post editor."
