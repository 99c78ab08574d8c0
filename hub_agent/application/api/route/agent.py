from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
import structlog

from hub_agent.application.api.schema.requests import (
    ApplySuggestionsRequest, ApplySuggestionsResponse, ChatRequest, ChatResponse, ErrorResponse,
    ExtractBrandRulesRequest, ExtractBrandRulesResponse, GenerateCaptionRequest,
    GradeCaptionRequest
)
from hub_agent.application.container import AgentContainer
from hub_agent.domain.errors import HubAgentError
from hub_agent.domain.models.agent_state import ToolContext
from hub_agent.domain.models.content import BrandScore, CaptionResult

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])


def get_container(request: Request) -> AgentContainer:
    return request.app.state.container


def failure(message: str, error: Exception) -> JSONResponse:
    logger.error(message, error=str(error), error_type=type(error).__name__)
    return JSONResponse(status_code=500, content=ErrorResponse(error=message, details=str(error)).model_dump())


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
async def chat_endpoint(body: ChatRequest, container: AgentContainer = Depends(get_container)):
    """Run one chat turn"""

    container.access.ensure_access(body.user_id, body.calendar_id)

    result = await container.orchestrator.run_chat(
        user_input=body.input,
        tool_context=ToolContext(user_id=body.user_id, calendar_id=body.calendar_id),
        snapshot=body.client_context,
        thread_id=body.thread_id,
        repository=container.repository_for(body.user_id, body.calendar_id)
    )

    return ChatResponse(response=result.response, tool_calls=result.tool_calls, thread_id=result.thread_id)


@router.post("/grade-caption", response_model=BrandScore)
async def grade_caption(body: GradeCaptionRequest, container: AgentContainer = Depends(get_container)):
    """Grade a caption against the calendar's brand rules"""

    rules = await container.repository_for(body.user_id, body.calendar_id).get_brand_rules()
    try:
        return await container.grader.grade(body.caption, rules)
    except HubAgentError:
        raise
    except Exception as e:
        return failure("Failed to grade caption", e)


@router.post("/generate-caption", response_model=CaptionResult)
async def generate_caption(body: GenerateCaptionRequest, container: AgentContainer = Depends(get_container)):
    """Generate or refine a caption with the reflect-refine loop"""

    rules = await container.repository_for(body.user_id, body.calendar_id).get_brand_rules()
    try:
        return await container.caption_generator.generate(body.request, rules)
    except HubAgentError:
        raise
    except Exception as e:
        return failure("Failed to generate caption", e)


@router.post("/apply-suggestions", response_model=ApplySuggestionsResponse)
async def apply_suggestions(body: ApplySuggestionsRequest, container: AgentContainer = Depends(get_container)):
    """Rewrite a caption to include the given suggestions"""

    container.access.ensure_access(body.user_id, body.calendar_id)
    try:
        new_caption = await container.caption_generator.apply_suggestions(body.caption, body.suggestions)
    except HubAgentError:
        raise
    except Exception as e:
        return failure("Failed to apply suggestions", e)

    return ApplySuggestionsResponse(new_caption=new_caption)


@router.post("/extract-brand-rules", response_model=ExtractBrandRulesResponse)
async def extract_brand_rules(body: ExtractBrandRulesRequest, container: AgentContainer = Depends(get_container)):
    """Extract brand voice rules from a guidelines document"""

    try:
        extracted = await container.caption_generator.extract_brand_rules(body.text)
    except HubAgentError:
        raise
    except Exception as e:
        return failure("Failed to extract rules", e)

    return ExtractBrandRulesResponse(rules=extracted.rules)
