"""
Capabilities exposed to the chat model.

Server tools run inside the turn and return data. Client tools are deferred:
they only confirm the request and end the turn so the client can perform the
action (open the editor, apply a caption, navigate) and report back.
"""

from typing import Any, Dict, Optional
from langchain_core.tools import BaseTool, StructuredTool, ToolException
from pydantic import BaseModel, Field
import json
import structlog

from hub_agent.domain.errors import Forbidden, UpstreamError
from hub_agent.domain.models.content import CaptionGenerationRequest, Post
from .tool_registry import ToolDependencies, ToolMode, ToolRegistry

logger = structlog.get_logger(__name__)


class NoArgs(BaseModel):
    """No arguments"""


class GenerateCaptionArgs(BaseModel):
    topic: str = Field(description="The main topic of the post")
    existing_caption: Optional[str] = Field(None, description="An existing caption to refine (optional)")


class GradeCaptionArgs(BaseModel):
    caption: str = Field(description="The caption text to grade against brand voice rules")


class ApplyCaptionArgs(BaseModel):
    post_id: str = Field(description="The ID of the post to update. This should match the Post ID from the \"Current Post\" context in the system message.")
    caption: str = Field(description="The caption text to apply to the post")


class NavigateArgs(BaseModel):
    page: Optional[str] = Field(None, description="The page to navigate to (default: calendar)")
    label: Optional[str] = Field(None, description="The text to display on the button (default: \"Open Calendar\")")


class CreatePostArgs(BaseModel):
    date: str = Field(description="The date for the new post. Can be ISO format (YYYY-MM-DD), \"today\", \"tomorrow\", or a day name (e.g., \"Monday\").")
    label: Optional[str] = Field(None, description="Optional label to display on the button (default: \"Create Post\")")


class OpenPostArgs(BaseModel):
    post_id: str = Field(description="The ID of the post to open")
    label: Optional[str] = Field(None, description="Optional label to display on the button (default: \"Open Post\")")


def summarize_post(post: Post, detailed: bool = False) -> Dict[str, Any]:
    summary: Dict[str, Any] = {
        "id": post.id,
        "caption": post.caption,
        "date": post.date.isoformat(),
        "platform": post.platform,
        "status": post.status,
    }
    if detailed:
        summary["images"] = post.images
        summary["authorName"] = post.author_name
    return summary


async def _require_post(deps: ToolDependencies, post_id: str) -> Post:
    """Load a post through the scoped repository or fail the tool call"""

    try:
        post = await deps.repository.get_post(post_id)
    except Forbidden as e:
        raise ToolException(e.message)

    if post is None:
        raise ToolException("Post not found")
    return post


async def _brand_rules(deps: ToolDependencies):
    try:
        return await deps.repository.get_brand_rules()
    except Forbidden as e:
        raise ToolException(e.message)


def create_get_posts_tool(deps: ToolDependencies) -> BaseTool:
    async def get_posts() -> str:
        try:
            posts = await deps.repository.get_posts()
        except Forbidden as e:
            raise ToolException(e.message)
        return json.dumps([summarize_post(post) for post in posts])

    return StructuredTool.from_function(
        coroutine=get_posts,
        name="get_posts",
        description="Fetches all posts for the current calendar. Returns post IDs, captions, dates, platforms, and statuses.",
        args_schema=NoArgs,
        handle_tool_error=True,
    )


def create_get_current_post_tool(deps: ToolDependencies) -> BaseTool:
    post_id = deps.snapshot.open_post_id if deps.snapshot else None

    async def get_current_post() -> str:
        if not post_id:
            return json.dumps({"error": "No post ID provided"})

        try:
            post = await deps.repository.get_post(post_id)
        except Forbidden as e:
            raise ToolException(e.message)

        if post is None:
            return json.dumps({"error": "Post not found"})
        return json.dumps(summarize_post(post, detailed=True))

    return StructuredTool.from_function(
        coroutine=get_current_post,
        name="get_current_post",
        description="Gets the details of the post the user is currently viewing or editing. Returns the full post information including caption, images, platform, and status.",
        args_schema=NoArgs,
        handle_tool_error=True,
    )


def create_generate_caption_tool(deps: ToolDependencies) -> BaseTool:
    async def generate_caption(topic: str, existing_caption: Optional[str] = None) -> Dict[str, Any]:
        if deps.caption_generator is None:
            raise ToolException("Caption generation is not available")

        rules = await _brand_rules(deps)
        try:
            result = await deps.caption_generator.generate(
                CaptionGenerationRequest(topic=topic, existing_caption=existing_caption),
                rules
            )
        except UpstreamError as e:
            raise ToolException(e.message)

        return {
            "caption": result.caption,
            "score": result.score.overall if result.score else None,
            "suggestions": result.score.suggestions if result.score else [],
        }

    return StructuredTool.from_function(
        coroutine=generate_caption,
        name="generate_caption",
        description="Generates a new post caption or refines an existing one based on brand voice rules. Returns the caption, score, and suggestions.",
        args_schema=GenerateCaptionArgs,
        handle_tool_error=True,
    )


def create_grade_caption_tool(deps: ToolDependencies) -> BaseTool:
    async def grade_caption(caption: str) -> Dict[str, Any]:
        if deps.grader is None:
            raise ToolException("Caption grading is not available")

        rules = await _brand_rules(deps)
        score = await deps.grader.grade(caption, rules)

        return {
            "overall": score.overall,
            "rules": [rule.model_dump(by_alias=True) for rule in score.rules],
            "suggestions": score.suggestions,
            "message": f"Caption scored {score.overall:g}/100. {len(score.suggestions)} suggestion(s) provided.",
        }

    return StructuredTool.from_function(
        coroutine=grade_caption,
        name="grade_caption",
        description="Grades a caption against the brand voice rules. Returns the overall score (0-100), breakdown by rule, and actionable suggestions for improvement. Use this when users ask you to evaluate, grade, or review a caption.",
        args_schema=GradeCaptionArgs,
        handle_tool_error=True,
    )


def create_get_brand_rules_tool(deps: ToolDependencies) -> BaseTool:
    async def get_brand_rules() -> Dict[str, Any]:
        rules = [rule for rule in await _brand_rules(deps) if rule.enabled]

        if not rules:
            return {"message": "No active brand voice rules are configured.", "rules": []}

        return {
            "rules": [{"id": r.id, "title": r.title, "description": r.description} for r in rules],
            "total": len(rules),
        }

    return StructuredTool.from_function(
        coroutine=get_brand_rules,
        name="get_brand_rules",
        description="Gets the active brand voice rules for the current calendar. Use this when you need to reference or explain the brand voice guidelines.",
        args_schema=NoArgs,
        handle_tool_error=True,
    )


def create_apply_caption_tool(deps: ToolDependencies) -> BaseTool:
    async def apply_caption_to_open_post(post_id: str, caption: str) -> str:
        await _require_post(deps, post_id)
        return f"Caption suggestion ready for post {post_id}. The client will apply this change."

    return StructuredTool.from_function(
        coroutine=apply_caption_to_open_post,
        name="apply_caption_to_open_post",
        description=(
            "Applies a generated caption to the currently open post in the post editor. This is a suggestion "
            "that the user can accept or reject. IMPORTANT: Use the Post ID from the \"Current Post\" context "
            "section in the system message. If no post ID is provided in context, you cannot use this tool."
        ),
        args_schema=ApplyCaptionArgs,
        handle_tool_error=True,
    )


def create_navigate_tool(deps: ToolDependencies) -> BaseTool:
    async def navigate_to_calendar(page: Optional[str] = None, label: Optional[str] = None) -> str:
        return f"Navigation requested to {page or 'calendar'}. The client will handle this."

    return StructuredTool.from_function(
        coroutine=navigate_to_calendar,
        name="navigate_to_calendar",
        description="Navigates to the calendar page. Shows a button that the user clicks to navigate.",
        args_schema=NavigateArgs,
        handle_tool_error=True,
    )


def create_create_post_tool(deps: ToolDependencies) -> BaseTool:
    async def create_post(date: str, label: Optional[str] = None) -> str:
        return f"Post creation requested for {date}. The client will open the post editor."

    return StructuredTool.from_function(
        coroutine=create_post,
        name="create_post",
        description=(
            "Creates a new post on a specific date. Opens the post editor modal with a new draft post. "
            "The date should be in ISO format (YYYY-MM-DD) or a relative date like \"today\", \"tomorrow\", "
            "or a day name like \"Monday\"."
        ),
        args_schema=CreatePostArgs,
        handle_tool_error=True,
    )


def create_open_post_tool(deps: ToolDependencies) -> BaseTool:
    async def open_post(post_id: str, label: Optional[str] = None) -> str:
        await _require_post(deps, post_id)
        return f"Open post requested for {post_id}. The client will open the post editor."

    return StructuredTool.from_function(
        coroutine=open_post,
        name="open_post",
        description=(
            "Opens an existing post in the post editor. Use this when the user asks to view, edit, or open "
            "a specific post. You can get post IDs from the get_posts tool."
        ),
        args_schema=OpenPostArgs,
        handle_tool_error=True,
    )


def build_tool_registry() -> ToolRegistry:
    """Registry holding every calendar capability"""

    registry = ToolRegistry()

    registry.register_tool("get_posts", create_get_posts_tool, category="posts")
    registry.register_tool("get_current_post", create_get_current_post_tool, category="posts")
    registry.register_tool("generate_caption", create_generate_caption_tool, category="captions")
    registry.register_tool("grade_caption", create_grade_caption_tool, category="captions")
    registry.register_tool("get_brand_rules", create_get_brand_rules_tool, category="brand")

    registry.register_tool("navigate_to_calendar", create_navigate_tool, mode=ToolMode.CLIENT, category="navigation")
    registry.register_tool("apply_caption_to_open_post", create_apply_caption_tool, mode=ToolMode.CLIENT, category="captions")
    registry.register_tool("create_post", create_create_post_tool, mode=ToolMode.CLIENT, category="posts")
    registry.register_tool("open_post", create_open_post_tool, mode=ToolMode.CLIENT, category="posts")

    logger.info("Tool registry built", tools=list(registry.tools))
    return registry
