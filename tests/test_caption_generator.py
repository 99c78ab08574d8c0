"""Tests for reflect-refine caption generation."""
from typing import List

import pytest
from langchain_core.runnables import RunnableLambda

from hub_agent.domain.generation.caption_generator import (
    CaptionGenerator, REFINE_THRESHOLD, build_refinement_feedback, render_rules_for_generation
)
from hub_agent.domain.generation.grading import BrandGrader, NO_RULES_SUGGESTION
from hub_agent.domain.models.content import (
    BrandRule, BrandScore, CaptionGenerationRequest, ExtractedBrandRules, RuleScore
)
from tests.conftest import CALENDAR_ID, score


RULES = [
    BrandRule(id="r1", calendar_id=CALENDAR_ID, title="Friendly tone", description="Sound warm."),
    BrandRule(id="r2", calendar_id=CALENDAR_ID, title="Hashtags", description="Use two hashtags."),
]


def scripted_grader(scores: List[BrandScore], graded: List[str]) -> BrandGrader:
    """Grader returning the given scores in order and recording each caption"""

    def grade(inputs):
        graded.append(inputs["caption"])
        return scores.pop(0)

    return BrandGrader(RunnableLambda(grade))


def build_generator(scores: List[BrandScore], graded: List[str], generated: List[dict], refined: List[dict]) -> CaptionGenerator:
    def generate(inputs):
        generated.append(inputs)
        return "  First draft #a #b  "

    def refine(inputs):
        refined.append(inputs)
        return "Second draft"

    return CaptionGenerator(
        generation_chain=RunnableLambda(generate),
        refinement_chain=RunnableLambda(refine),
        grader=scripted_grader(scores, graded),
    )


class TestGenerate:

    @pytest.mark.asyncio
    async def test_high_score_returns_initial_without_refinement(self):
        graded, generated, refined = [], [], []
        generator = build_generator([score(90)], graded, generated, refined)

        result = await generator.generate(CaptionGenerationRequest(topic="Summer sale"), RULES)

        assert result.caption == "First draft #a #b"
        assert result.score.overall == 90
        assert len(result.drafts) == 1
        assert refined == []
        assert generated[0]["topic"] == "Summer sale"
        assert "- Friendly tone: Sound warm." in generated[0]["rules"]

    @pytest.mark.asyncio
    async def test_threshold_score_is_not_refined(self):
        graded, generated, refined = [], [], []
        generator = build_generator([score(REFINE_THRESHOLD)], graded, generated, refined)

        result = await generator.generate(CaptionGenerationRequest(topic="Launch"), RULES)

        assert refined == []
        assert result.score.overall == REFINE_THRESHOLD

    @pytest.mark.asyncio
    async def test_low_score_refines_exactly_once(self):
        graded, generated, refined = [], [], []
        generator = build_generator([score(60, ["Be warmer"]), score(70)], graded, generated, refined)

        result = await generator.generate(CaptionGenerationRequest(topic="Launch"), RULES)

        assert len(refined) == 1
        assert refined[0]["failed_caption"] == "First draft #a #b"
        assert "Overall Score: 60/100." in refined[0]["feedback"]
        assert "Suggestions: Be warmer" in refined[0]["feedback"]
        assert graded == ["First draft #a #b", "Second draft"]
        assert result.caption == "Second draft"
        assert result.drafts[1].refined is True

    @pytest.mark.asyncio
    async def test_tie_prefers_refined_draft(self):
        graded, generated, refined = [], [], []
        generator = build_generator([score(50), score(50)], graded, generated, refined)

        result = await generator.generate(CaptionGenerationRequest(topic="Launch"), RULES)

        assert result.caption == "Second draft"

    @pytest.mark.asyncio
    async def test_worse_refinement_keeps_initial(self):
        graded, generated, refined = [], [], []
        generator = build_generator([score(70), score(40)], graded, generated, refined)

        result = await generator.generate(CaptionGenerationRequest(topic="Launch"), RULES)

        assert result.caption == "First draft #a #b"
        assert result.score.overall == 70
        assert len(result.drafts) == 2

    @pytest.mark.asyncio
    async def test_existing_caption_skips_generation(self):
        graded, generated, refined = [], [], []
        generator = build_generator([score(95)], graded, generated, refined)

        result = await generator.generate(
            CaptionGenerationRequest(topic="Launch", existing_caption="Mine already"),
            RULES
        )

        assert generated == []
        assert graded == ["Mine already"]
        assert result.caption == "Mine already"

    @pytest.mark.asyncio
    async def test_no_enabled_rules_returns_default_score(self):
        graded, generated, refined = [], [], []
        generator = build_generator([], graded, generated, refined)
        disabled = [RULES[0].model_copy(update={"enabled": False})]

        result = await generator.generate(CaptionGenerationRequest(topic="Launch"), disabled)

        assert graded == []
        assert refined == []
        assert result.score.overall == 100
        assert result.score.suggestions == [NO_RULES_SUGGESTION]
        assert "No specific brand voice rules" in generated[0]["rules"]


class TestHelpers:

    def test_refinement_feedback_lists_failing_rules_only(self):
        graded = BrandScore(
            overall=72.5,
            rules=[
                RuleScore(rule_id="r1", score=40, feedback="Too cold"),
                RuleScore(rule_id="r2", score=90, feedback="Fine"),
            ],
            suggestions=["Add warmth", "Shorten"],
        )

        feedback = build_refinement_feedback(graded)

        assert feedback.splitlines() == [
            "Overall Score: 72.5/100.",
            "Suggestions: Add warmth, Shorten",
            "Rules Violated: Too cold",
        ]

    def test_generation_rules_skip_disabled(self):
        rules = RULES + [BrandRule(id="r3", calendar_id=CALENDAR_ID, title="Off", description="x", enabled=False)]
        assert "Off" not in render_rules_for_generation(rules)


class TestAuxiliary:

    @pytest.mark.asyncio
    async def test_apply_suggestions_renders_bullets(self):
        seen = []

        def rewrite(inputs):
            seen.append(inputs)
            return " Better caption \n"

        generator = CaptionGenerator(
            generation_chain=RunnableLambda(lambda _: ""),
            refinement_chain=RunnableLambda(lambda _: ""),
            grader=BrandGrader(RunnableLambda(lambda _: score(100))),
            suggestions_chain=RunnableLambda(rewrite),
        )

        result = await generator.apply_suggestions("Old", ["Add emoji", "Mention July"])

        assert result == "Better caption"
        assert seen[0]["suggestions"] == "- Add emoji\n- Mention July"

    @pytest.mark.asyncio
    async def test_extract_brand_rules_validates_output(self, caption_generator):
        result = await caption_generator.extract_brand_rules("Keep posts short.")

        assert isinstance(result, ExtractedBrandRules)
        assert result.rules[0].title == "Be brief"

    @pytest.mark.asyncio
    async def test_missing_chains_raise(self):
        generator = CaptionGenerator(
            generation_chain=RunnableLambda(lambda _: ""),
            refinement_chain=RunnableLambda(lambda _: ""),
            grader=BrandGrader(RunnableLambda(lambda _: score(100))),
        )

        with pytest.raises(RuntimeError):
            await generator.apply_suggestions("x", ["y"])
        with pytest.raises(RuntimeError):
            await generator.extract_brand_rules("x")
