from hub_agent.domain.context.context_resolver import (
    BRAND_VOICE, CALENDAR, GLOBAL, POST_EDITOR, get_context_keys
)
from hub_agent.domain.context.formatting import format_history, message_text, rich_text_to_plain
from hub_agent.domain.models.agent_state import ContextSnapshot
from langchain_core.messages import AIMessage, HumanMessage


def test_no_snapshot_is_global_only():
    assert get_context_keys(None) == [GLOBAL]


def test_calendar_page():
    assert get_context_keys(ContextSnapshot(page="calendar")) == [GLOBAL, CALENDAR]


def test_post_editor_from_open_post_in_page_state():
    snapshot = ContextSnapshot.model_validate({"page": "calendar", "pageState": {"postId": "post-1"}})

    assert snapshot.open_post_id == "post-1"
    assert get_context_keys(snapshot) == [GLOBAL, CALENDAR, POST_EDITOR]


def test_brand_voice_component():
    assert get_context_keys(ContextSnapshot(component="brandVoice")) == [GLOBAL, BRAND_VOICE]


def test_keys_are_not_duplicated():
    snapshot = ContextSnapshot(page="calendar", component="calendar", post_id="p")
    keys = get_context_keys(snapshot)

    assert keys == [GLOBAL, CALENDAR, POST_EDITOR]
    assert len(keys) == len(set(keys))


def test_rich_text_to_plain_flattens_nested_children():
    nodes = [
        {"type": "paragraph", "children": [{"text": "Hello "}, {"text": "world"}]},
        {"type": "list", "children": [{"type": "item", "children": [{"text": "one"}]}]},
    ]

    assert rich_text_to_plain(nodes) == "Hello world\none"
    assert rich_text_to_plain([]) == ""


def test_message_text_joins_content_blocks():
    message = AIMessage(content=[{"type": "text", "text": "a"}, "b"])
    assert message_text(message) == "ab"


def test_format_history_keeps_trailing_window():
    history = [HumanMessage(content=str(i)) for i in range(6)]
    assert format_history(history, window=2) == "human: 4\nhuman: 5"
    assert format_history(history, window=0) == ""
