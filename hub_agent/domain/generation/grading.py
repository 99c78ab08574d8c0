from typing import Any, List, Optional, Sequence
from langchain_core.language_models import BaseChatModel
from langchain_core.runnables import Runnable, RunnableConfig
import time
import structlog

from hub_agent.domain.models.content import BrandRule, BrandScore
from hub_agent.infrastructure.observability.logging import metrics
from .prompts import BRAND_GRADER_PROMPT

logger = structlog.get_logger(__name__)

NO_RULES_SUGGESTION = "No active brand rules were provided to grade against."
EMPTY_CAPTION = "(No caption provided)"


def enabled_rules(rules: Sequence[BrandRule]) -> List[BrandRule]:
    return [rule for rule in rules if rule.enabled]


def render_rules_for_grading(rules: Sequence[BrandRule]) -> str:
    """Bulleted rules including ids, so per-rule scores can reference them"""
    return "\n".join(f"- **{rule.title} (ID: {rule.id}):** {rule.description}" for rule in enabled_rules(rules))


def default_score() -> BrandScore:
    """Nominal score used when there is nothing to grade against"""
    return BrandScore(overall=100, rules=[], suggestions=[NO_RULES_SUGGESTION])


class BrandGrader:
    """Grades captions against the enabled brand voice rules"""

    def __init__(self, chain: Runnable):
        self.chain = chain

    @classmethod
    def from_model(cls, model: BaseChatModel) -> "BrandGrader":
        """Grader backed by a structured-output chat model"""
        return cls(BRAND_GRADER_PROMPT | model.with_structured_output(BrandScore))

    async def grade(
        self,
        caption: str,
        rules: Sequence[BrandRule],
        config: Optional[RunnableConfig] = None
    ) -> BrandScore:
        rules_text = render_rules_for_grading(rules)
        if not rules_text:
            return default_score()

        started = time.perf_counter()
        result: Any = await self.chain.ainvoke(
            {"rules": rules_text, "caption": caption or EMPTY_CAPTION},
            config
        )
        metrics.record_latency("brand_grader", (time.perf_counter() - started) * 1000)

        score = result if isinstance(result, BrandScore) else BrandScore.model_validate(result)
        logger.info("Caption graded", overall=score.overall, rule_count=len(score.rules))
        return score
