from __future__ import annotations

import json
from typing import Any

import pytest
from langchain_core.messages import AIMessage

from conftest import FIVE_TIPS, DummyLLM
from wellness.config import Settings
from wellness.models.tip import GeneratedTip, TipDetail
from wellness.services import tip_provider as provider_module
from wellness.services.errors import GenerationError
from wellness.services.tip_provider import (
    GENERATE_TIPS,
    PROMPTS,
    TIP_DETAIL,
    LangChainTipProvider,
    LocalTipResponder,
    PromptSpec,
    create_llm_factory,
)
from wellness.services.tips import TipService


class _RecordingFactory:
    def __init__(self, responses: dict[str, str]) -> None:
        self.responses = responses
        self.specs: list[PromptSpec] = []
        self.models: dict[str, DummyLLM] = {}

    def __call__(self, spec: PromptSpec) -> DummyLLM:
        self.specs.append(spec)
        model = DummyLLM(self.responses[spec.prompt_id])
        self.models[spec.prompt_id] = model
        return model


class _ExplodingLLM:
    def invoke(self, input: Any, **_: Any) -> AIMessage:
        raise TimeoutError("deadline exceeded")


def _service(responses: dict[str, str]) -> tuple[TipService, _RecordingFactory]:
    factory = _RecordingFactory(responses)
    return TipService(provider=LangChainTipProvider(llm_factory=factory)), factory


def test_generate_tips_returns_items_unchanged_in_order(five_tips_json: str) -> None:
    service, _ = _service({GENERATE_TIPS: five_tips_json})

    tips = service.generate_tips(34, "female", "fitness")

    assert tips == [GeneratedTip(**item) for item in FIVE_TIPS]
    assert [tip.as_dict() for tip in tips] == FIVE_TIPS


def test_generate_tips_prompt_carries_demographics(five_tips_json: str) -> None:
    service, factory = _service({GENERATE_TIPS: five_tips_json})

    service.generate_tips(34.0, "female", "better sleep")

    system_message, human_message = factory.models[GENERATE_TIPS].calls[-1]
    assert "wellness coach" in system_message.content
    assert "a female of 34 years old" in human_message.content
    assert "primary goal of better sleep" in human_message.content
    assert "exactly 5 distinct" in human_message.content


def test_prompts_use_their_own_temperature_and_schema(five_tips_json: str) -> None:
    detail = json.dumps({"explanation_long": "Why and how.", "steps": ["1. Start."]})
    service, factory = _service({GENERATE_TIPS: five_tips_json, TIP_DETAIL: detail})

    service.generate_tips(34, "female", "fitness")
    service.generate_tip_detail(34, "female", "fitness", "Walk After Dinner")
    service.generate_tips(35, "female", "fitness")

    temperatures = {spec.prompt_id: spec.temperature for spec in factory.specs}
    assert temperatures == {GENERATE_TIPS: 0.7, TIP_DETAIL: 0.3}
    assert len(factory.specs) == 2, "Models are created once per prompt"
    assert factory.specs[0].response_schema["type"] == "array"
    assert factory.specs[1].response_schema["required"] == ["explanation_long", "steps"]


def test_generate_tip_detail_parses_object() -> None:
    payload = {
        "explanation_long": "Walking after dinner helps glucose control.\n\nIt is easy to start.",
        "steps": [f"{index}. Step" for index in range(1, 6)],
    }
    service, factory = _service({TIP_DETAIL: json.dumps(payload)})

    detail = service.generate_tip_detail(40, "male", "heart health", "Walk After Dinner")

    assert detail == TipDetail(**payload)
    _, human_message = factory.models[TIP_DETAIL].calls[-1]
    assert "has selected the tip: 'Walk After Dinner'" in human_message.content
    assert "aiming for heart health" in human_message.content


@pytest.mark.parametrize(
    "response",
    [
        "not-json",
        "",
        "```json\n[]\n```",
        json.dumps({"tip_id": 1, "title": "Single", "icon_keyword": "one"}),
        json.dumps([{"tip_id": 1, "title": "Missing icon"}]),
        json.dumps([{"tip_id": 1, "title": 7, "icon_keyword": "seven"}]),
        json.dumps(FIVE_TIPS[:2] + [{"tip_id": "three", "title": "Bad", "icon_keyword": "x"}]),
        json.dumps([{"tip_id": "1", "title": "Quoted id", "icon_keyword": "one"}]),
        json.dumps([{"tip_id": True, "title": "Boolean id", "icon_keyword": "two"}]),
        json.dumps([{"tip_id": 1.5, "title": "Fractional id", "icon_keyword": "three"}]),
    ],
)
def test_generate_tips_malformed_output_raises_generation_error(response: str) -> None:
    service, _ = _service({GENERATE_TIPS: response})

    with pytest.raises(GenerationError):
        service.generate_tips(34, "female", "fitness")


def test_tip_detail_schema_mismatch_raises_generation_error() -> None:
    service, _ = _service({TIP_DETAIL: json.dumps({"explanation_long": "Only text"})})

    with pytest.raises(GenerationError, match="expected schema"):
        service.generate_tip_detail(34, "female", "fitness", "Walk")


def test_non_json_output_is_reported_as_invalid_json() -> None:
    service, _ = _service({TIP_DETAIL: "Sure! Here are your steps."})

    with pytest.raises(GenerationError, match="not valid JSON"):
        service.generate_tip_detail(34, "female", "fitness", "Walk")


def test_mistyped_tip_ids_are_rejected_not_coerced() -> None:
    response = json.dumps(
        [
            {"tip_id": "1", "title": "Drink More Water", "icon_keyword": "water"},
            {"tip_id": True, "title": "Walk After Dinner", "icon_keyword": "walk"},
        ]
    )
    service, _ = _service({GENERATE_TIPS: response})

    with pytest.raises(GenerationError, match="expected schema"):
        service.generate_tips(34, "female", "fitness")


def test_detail_steps_must_be_strings() -> None:
    service, _ = _service({TIP_DETAIL: json.dumps({"explanation_long": "Why.", "steps": ["1. Start.", 2]})})

    with pytest.raises(GenerationError):
        service.generate_tip_detail(34, "female", "fitness", "Walk")


def test_provider_failures_surface_as_generation_error() -> None:
    provider = LangChainTipProvider(llm_factory=lambda spec: _ExplodingLLM())

    with pytest.raises(GenerationError) as excinfo:
        provider.invoke(GENERATE_TIPS, {"age": 30, "gender": "male", "goal": "focus"})

    assert isinstance(excinfo.value.__cause__, TimeoutError)


def test_model_construction_failures_surface_as_generation_error() -> None:
    def _factory(spec: PromptSpec) -> Any:
        raise RuntimeError("missing credentials")

    provider = LangChainTipProvider(llm_factory=_factory)

    with pytest.raises(GenerationError):
        provider.invoke(TIP_DETAIL, {"age": 30, "gender": "male", "goal": "focus", "tip_title": "Read"})


def test_unknown_prompt_is_rejected() -> None:
    provider = LangChainTipProvider(llm_factory=lambda spec: DummyLLM("[]"))

    with pytest.raises(GenerationError, match="Unknown prompt"):
        provider.invoke("tips.unknown", {})


def test_list_content_parts_are_joined(five_tips_json: str) -> None:
    class _PartsLLM:
        def invoke(self, input: Any, **_: Any) -> AIMessage:
            half = len(five_tips_json) // 2
            return AIMessage(content=[{"type": "text", "text": five_tips_json[:half]}, five_tips_json[half:]])

    provider = LangChainTipProvider(llm_factory=lambda spec: _PartsLLM())

    tips = provider.invoke(GENERATE_TIPS, {"age": 30, "gender": "male", "goal": "focus"})

    assert len(tips) == 5


def test_local_responder_round_trips_through_both_prompts() -> None:
    service = TipService(provider=LangChainTipProvider(llm_factory=lambda spec: LocalTipResponder(spec.prompt_id)))

    tips = service.generate_tips(28, "female", "stress relief")
    detail = service.generate_tip_detail(28, "female", "stress relief", tips[2].title)

    assert [tip.tip_id for tip in tips] == [1, 2, 3, 4, 5]
    assert tips[2].title in detail.explanation_long
    assert "stress relief" in detail.explanation_long
    assert len(detail.steps) == 5


def test_create_llm_factory_local_provider() -> None:
    factory = create_llm_factory(Settings(llm_provider="local", storage="memory"))

    model = factory(PROMPTS[TIP_DETAIL])

    assert isinstance(model, LocalTipResponder)
    assert model.prompt_id == TIP_DETAIL


def test_create_llm_factory_configures_gemini_client(monkeypatch: pytest.MonkeyPatch) -> None:
    import sys
    from types import ModuleType

    captured_kwargs: dict[str, Any] = {}

    class _StubGeminiClient:
        def __init__(self, **kwargs: Any) -> None:
            captured_kwargs.update(kwargs)

    fake_module = ModuleType("langchain_google_genai")
    fake_module.ChatGoogleGenerativeAI = _StubGeminiClient  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "langchain_google_genai", fake_module)

    factory = create_llm_factory(Settings(gemini_api_key="secret", gemini_model="gemini-test", llm_timeout=12.0))
    model = factory(PROMPTS[GENERATE_TIPS])

    assert isinstance(model, _StubGeminiClient)
    assert captured_kwargs["model"] == "gemini-test"
    assert captured_kwargs["google_api_key"] == "secret"
    assert captured_kwargs["temperature"] == 0.7
    assert captured_kwargs["timeout"] == 12.0
    assert captured_kwargs["response_mime_type"] == "application/json"
    assert captured_kwargs["response_schema"] is provider_module.GENERATE_TIPS_SCHEMA


def test_create_llm_factory_logs_missing_api_key(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level("ERROR", logger=provider_module.logger.name):
        create_llm_factory(Settings(gemini_api_key=""))

    assert any("Missing GEMINI_API_KEY" in record.getMessage() for record in caplog.records)
