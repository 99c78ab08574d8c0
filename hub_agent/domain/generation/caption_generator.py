"""
Reflect-refine caption generation.

A draft is produced (or taken from the request), graded against the enabled
brand rules and, when the grade is below ``REFINE_THRESHOLD``, rewritten once
using the grader's feedback. The better of the two drafts is returned.
"""

from typing import Any, List, Optional, Sequence
from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.runnables import Runnable, RunnableConfig
import time
import structlog

from hub_agent.domain.context.formatting import message_text
from hub_agent.domain.models.content import (
    BrandRule, BrandScore, CaptionGenerationRequest, CaptionResult,
    ExtractedBrandRules, GeneratedCaption
)
from hub_agent.infrastructure.observability.logging import metrics
from .grading import BrandGrader, EMPTY_CAPTION, default_score, enabled_rules
from .prompts import (
    APPLY_SUGGESTIONS_PROMPT, BRAND_RULE_EXTRACTION_PROMPT,
    CAPTION_GENERATION_PROMPT, CAPTION_REFINEMENT_PROMPT
)

logger = structlog.get_logger(__name__)

REFINE_THRESHOLD = 85
FAILING_RULE_SCORE = 70
NO_RULES_TEXT = "No specific brand voice rules are currently active."


def render_rules_for_generation(rules: Sequence[BrandRule]) -> str:
    return "\n".join(f"- {rule.title}: {rule.description}" for rule in enabled_rules(rules))


def build_refinement_feedback(score: BrandScore) -> str:
    """Overall score, suggestions and the feedback of failing rules"""

    failing = [rule.feedback for rule in score.rules if rule.score < FAILING_RULE_SCORE]
    return "\n".join([
        f"Overall Score: {score.overall:g}/100.",
        f"Suggestions: {', '.join(score.suggestions)}",
        f"Rules Violated: {', '.join(failing)}",
    ])


def _text(result: Any) -> str:
    return (result if isinstance(result, str) else message_text(result)).strip()


class CaptionGenerator:
    """Caption generation, suggestion application and brand rule extraction"""

    def __init__(
        self,
        generation_chain: Runnable,
        refinement_chain: Runnable,
        grader: BrandGrader,
        suggestions_chain: Optional[Runnable] = None,
        extraction_chain: Optional[Runnable] = None
    ):
        self.generation_chain = generation_chain
        self.refinement_chain = refinement_chain
        self.grader = grader
        self.suggestions_chain = suggestions_chain
        self.extraction_chain = extraction_chain

    @classmethod
    def from_models(cls, creative_model: BaseChatModel, chat_model: BaseChatModel, grader: BrandGrader) -> "CaptionGenerator":
        """Creative model writes drafts; chat model applies suggestions and extracts rules"""

        return cls(
            generation_chain=CAPTION_GENERATION_PROMPT | creative_model | StrOutputParser(),
            refinement_chain=CAPTION_REFINEMENT_PROMPT | creative_model | StrOutputParser(),
            grader=grader,
            suggestions_chain=APPLY_SUGGESTIONS_PROMPT | chat_model | StrOutputParser(),
            extraction_chain=BRAND_RULE_EXTRACTION_PROMPT | chat_model.with_structured_output(ExtractedBrandRules),
        )

    async def generate(
        self,
        request: CaptionGenerationRequest,
        rules: Sequence[BrandRule],
        config: Optional[RunnableConfig] = None
    ) -> CaptionResult:
        """Produce the best caption for a request in at most one refinement pass"""

        started = time.perf_counter()
        active = enabled_rules(rules)
        rules_text = render_rules_for_generation(active) or NO_RULES_TEXT

        if request.existing_caption:
            initial_caption = request.existing_caption
        else:
            initial_caption = _text(await self.generation_chain.ainvoke(
                {"topic": request.topic, "rules": rules_text}, config
            ))

        if not active:
            # Nothing to grade against
            initial = GeneratedCaption(caption=initial_caption, score=default_score())
            return CaptionResult(caption=initial.caption, score=initial.score, drafts=[initial])

        initial = GeneratedCaption(
            caption=initial_caption,
            score=await self.grader.grade(initial_caption, active, config)
        )
        drafts: List[GeneratedCaption] = [initial]
        best = initial

        if initial.score.overall < REFINE_THRESHOLD:
            logger.info("Refining caption", initial_score=initial.score.overall, threshold=REFINE_THRESHOLD)

            refined_caption = _text(await self.refinement_chain.ainvoke(
                {
                    "topic": request.topic,
                    "rules": rules_text,
                    "failed_caption": initial_caption,
                    "feedback": build_refinement_feedback(initial.score),
                },
                config
            ))
            refined = GeneratedCaption(
                caption=refined_caption,
                score=await self.grader.grade(refined_caption, active, config),
                refined=True
            )
            drafts.append(refined)

            # Ties go to the refined draft
            if refined.score.overall >= initial.score.overall:
                best = refined

        metrics.record_latency("caption_generation", (time.perf_counter() - started) * 1000)
        logger.info("Caption generated", overall=best.score.overall, refined=best.refined, drafts=len(drafts))

        return CaptionResult(caption=best.caption, score=best.score, drafts=drafts)

    async def apply_suggestions(
        self,
        caption: str,
        suggestions: Sequence[str],
        config: Optional[RunnableConfig] = None
    ) -> str:
        """Rewrite a caption so it incorporates every suggestion"""

        if self.suggestions_chain is None:
            raise RuntimeError("Suggestion chain is not configured")

        result = await self.suggestions_chain.ainvoke(
            {
                "caption": caption or EMPTY_CAPTION,
                "suggestions": "\n".join(f"- {s}" for s in suggestions),
            },
            config
        )
        return _text(result)

    async def extract_brand_rules(self, text: str, config: Optional[RunnableConfig] = None) -> ExtractedBrandRules:
        """Pull structured brand rules out of a guidelines document"""

        if self.extraction_chain is None:
            raise RuntimeError("Extraction chain is not configured")

        result = await self.extraction_chain.ainvoke({"text": text}, config)
        return result if isinstance(result, ExtractedBrandRules) else ExtractedBrandRules.model_validate(result)
