from typing import Any, Optional, Sequence
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_core.prompts import PromptTemplate
from langchain_core.runnables import Runnable, RunnableConfig
import time
import structlog

from hub_agent.domain.context.formatting import format_history
from hub_agent.domain.errors import GuardrailFailure
from hub_agent.domain.models.agent_state import GuardrailDecision
from hub_agent.infrastructure.observability.logging import metrics

logger = structlog.get_logger(__name__)

DEFAULT_REFUSAL = "I specialize in social media management and cannot help with that request."

GUARDRAIL_PROMPT = PromptTemplate.from_template(
    """You are the input guardrail for a social media content assistant. The assistant helps users plan, write, grade and schedule social media posts, manage brand voice rules and notes, and use the Social Hub app.

Decide whether the latest user message is within that scope. Greetings, follow-ups to the conversation, and answers to the assistant's questions (for example a date or a topic) are allowed. Requests unrelated to social media content or this app are not allowed.

If the message is not allowed, write a short, polite refusal that explains what you can help with.

<Chat History>
{history}
</Chat History>

<User Message>
{input}
</User Message>
"""
)


class GuardrailValidator:
    """Pre-flight topical check on user input"""

    def __init__(self, chain: Runnable, history_window: int = 4):
        self.chain = chain
        self.history_window = history_window

    @classmethod
    def from_model(cls, model: BaseChatModel, history_window: int = 4) -> "GuardrailValidator":
        return cls(GUARDRAIL_PROMPT | model.with_structured_output(GuardrailDecision), history_window)

    async def validate(
        self,
        user_input: str,
        history: Sequence[BaseMessage] = (),
        config: Optional[RunnableConfig] = None
    ) -> GuardrailDecision:
        """Classify the input; any failure lets the request through"""

        started = time.perf_counter()
        try:
            result: Any = await self.chain.ainvoke(
                {"input": user_input, "history": format_history(history, self.history_window)},
                config
            )
            decision = result if isinstance(result, GuardrailDecision) else GuardrailDecision.model_validate(result)
        except Exception as e:
            failure = GuardrailFailure("Guardrail validation failed", {"error": str(e)})
            logger.error(failure.message, error=str(e), error_type=type(e).__name__)
            metrics.increment_counter("guardrail.failures")
            return GuardrailDecision(is_allowed=True, refusal_message=None)

        metrics.record_latency("guardrail", (time.perf_counter() - started) * 1000)
        if not decision.is_allowed:
            metrics.increment_counter("guardrail.blocked")
            logger.info("Input blocked by guardrail")

        return decision

    @staticmethod
    def refusal_for(decision: GuardrailDecision) -> str:
        return decision.refusal_message or DEFAULT_REFUSAL
