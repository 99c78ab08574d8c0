"""Tests for the input guardrail."""
import pytest
from langchain_core.messages import AIMessage, HumanMessage
from langchain_core.runnables import RunnableLambda

from hub_agent.domain.guardrail.guardrail_validator import DEFAULT_REFUSAL, GuardrailValidator
from hub_agent.domain.models.agent_state import GuardrailDecision
from tests.conftest import ScriptedChatModel


@pytest.mark.asyncio
async def test_blocked_input_returns_refusal():
    validator = GuardrailValidator(RunnableLambda(
        lambda _: GuardrailDecision(is_allowed=False, refusal_message="I only help with social media.")
    ))

    decision = await validator.validate("What's the capital of France?")

    assert decision.is_allowed is False
    assert GuardrailValidator.refusal_for(decision) == "I only help with social media."


@pytest.mark.asyncio
async def test_refusal_falls_back_to_default():
    decision = GuardrailDecision(is_allowed=False)
    assert GuardrailValidator.refusal_for(decision) == DEFAULT_REFUSAL


@pytest.mark.asyncio
async def test_allowed_input_from_structured_model():
    model = ScriptedChatModel(structured={"GuardrailDecision": GuardrailDecision(is_allowed=True)})

    decision = await GuardrailValidator.from_model(model).validate("Write a caption about coffee")

    assert decision.is_allowed is True


@pytest.mark.asyncio
async def test_validator_failure_lets_request_through():
    def explode(_):
        raise RuntimeError("model unavailable")

    decision = await GuardrailValidator(RunnableLambda(explode)).validate("anything")

    assert decision.is_allowed is True
    assert decision.refusal_message is None


@pytest.mark.asyncio
async def test_history_window_limits_messages_sent():
    seen = []

    def record(inputs):
        seen.append(inputs)
        return {"is_allowed": True}

    history = [HumanMessage(content="first"), AIMessage(content="second"), HumanMessage(content="third")]
    validator = GuardrailValidator(RunnableLambda(record), history_window=2)

    decision = await validator.validate("tomorrow", history)

    assert decision.is_allowed is True
    assert seen[0]["input"] == "tomorrow"
    assert seen[0]["history"] == "ai: second\nhuman: third"
