"""Schema-constrained prompts sent to the generative-language provider."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
import json
import logging
import re
from typing import TYPE_CHECKING, Any, Final, Protocol

from jinja2 import StrictUndefined, Template
from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.prompts import ChatPromptTemplate
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from wellness.models.tip import GeneratedTip, TipDetail
from wellness.services.errors import GenerationError

if TYPE_CHECKING:  # pragma: no cover - for static type checking only
    from wellness.config import Settings

logger = logging.getLogger(__name__)

GENERATE_TIPS: Final[str] = "tips.generate"
TIP_DETAIL: Final[str] = "tips.detail"


class SupportsInvoke(Protocol):
    """Protocol describing the subset of LangChain interfaces we rely on."""

    def invoke(self, input: Any, **kwargs: Any) -> BaseMessage | str:
        """Invoke the underlying language model."""


class TipProvider(Protocol):
    """Narrow provider contract: a prompt id plus parameters in, a validated struct out."""

    def invoke(self, prompt_id: str, parameters: Mapping[str, Any]) -> Any:
        """Return the parsed result or raise ``GenerationError``."""


TIP_SYSTEM_PROMPT = (
    "You are an engaging, highly-personalized wellness coach. "
    "Keep advice practical, safe and beginner-friendly, and always answer with JSON only."
)

GENERATE_TIPS_PROMPT = Template(
    "Generate exactly 5 distinct, actionable health tips for a user who is a {{ gender }} "
    "of {{ age }} years old, with the primary goal of {{ goal }}. For each tip, provide a "
    "concise title (max 5 words) and a single keyword suitable for fetching a related icon "
    "(e.g., 'sleep', 'water', 'weights'). Ensure the titles are engaging and fit a scrollable card.",
    undefined=StrictUndefined,
)

TIP_DETAIL_PROMPT = Template(
    "The user, a {{ gender }} of {{ age }} years old aiming for {{ goal }}, has selected the tip: "
    "'{{ tip_title }}'. Provide a longer explanation (2-3 detailed paragraphs) on the 'why' and "
    "'how' of this tip, followed by 5 clear, numbered, step-by-step instructions the user can "
    "immediately implement today. Focus on practical, beginner-friendly advice.",
    undefined=StrictUndefined,
)

GENERATE_TIPS_SCHEMA: Final[dict[str, Any]] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "tip_id": {
                "type": "integer",
                "description": "A unique, sequential ID (1 to 5) for this set of tips.",
            },
            "title": {
                "type": "string",
                "description": "A concise, engaging title for the card (5 words max).",
            },
            "icon_keyword": {
                "type": "string",
                "description": "A single noun or verb to represent the tip visually (e.g., 'run', 'apple', 'book').",
            },
        },
        "required": ["tip_id", "title", "icon_keyword"],
    },
}

TIP_DETAIL_SCHEMA: Final[dict[str, Any]] = {
    "type": "object",
    "properties": {
        "explanation_long": {
            "type": "string",
            "description": "The detailed explanation of the tip (2-3 paragraphs).",
        },
        "steps": {
            "type": "array",
            "description": "An array of 5 clear, numbered, actionable instructions.",
            "items": {"type": "string"},
        },
    },
    "required": ["explanation_long", "steps"],
}


@dataclass(slots=True)
class PromptSpec:
    """One fixed prompt: its template, sampling temperature and expected JSON shape."""

    prompt_id: str
    template: Template
    temperature: float
    response_schema: dict[str, Any]
    result_type: Any
    _adapter: TypeAdapter = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._adapter = TypeAdapter(self.result_type)

    def render(self, parameters: Mapping[str, Any]) -> str:
        values = dict(parameters)
        if "age" in values:
            values["age"] = _format_age(values["age"])
        return self.template.render(**values).strip()

    def parse(self, content: str) -> Any:
        """Validate ``content`` against the schema; malformed output is never repaired."""

        text = content.strip()
        if not text:
            raise GenerationError(f"Model returned an empty response for {self.prompt_id}")
        try:
            # Strict: "1" or true is not an integer id.
            return self._adapter.validate_json(text, strict=True)
        except PydanticValidationError as exc:
            if any(error["type"] == "json_invalid" for error in exc.errors()):
                raise GenerationError(f"Model response for {self.prompt_id} was not valid JSON") from exc
            raise GenerationError(
                f"Model response for {self.prompt_id} did not match the expected schema"
            ) from exc


PROMPTS: Final[Mapping[str, PromptSpec]] = {
    GENERATE_TIPS: PromptSpec(
        prompt_id=GENERATE_TIPS,
        template=GENERATE_TIPS_PROMPT,
        temperature=0.7,
        response_schema=GENERATE_TIPS_SCHEMA,
        result_type=list[GeneratedTip],
    ),
    TIP_DETAIL: PromptSpec(
        prompt_id=TIP_DETAIL,
        template=TIP_DETAIL_PROMPT,
        temperature=0.3,
        response_schema=TIP_DETAIL_SCHEMA,
        result_type=TipDetail,
    ),
}

LLMFactory = Callable[[PromptSpec], SupportsInvoke]


def _default_prompt() -> ChatPromptTemplate:
    return ChatPromptTemplate.from_messages(
        [
            ("system", TIP_SYSTEM_PROMPT),
            ("human", "{tip_prompt}"),
        ]
    )


@dataclass(slots=True)
class LangChainTipProvider:
    """Run the fixed prompts through LangChain chat models, one model per prompt."""

    llm_factory: LLMFactory
    prompts: Mapping[str, PromptSpec] = field(default_factory=lambda: dict(PROMPTS))
    prompt: ChatPromptTemplate = field(default_factory=_default_prompt)
    _models: dict[str, SupportsInvoke] = field(init=False, default_factory=dict, repr=False)

    def invoke(self, prompt_id: str, parameters: Mapping[str, Any]) -> Any:
        spec = self.prompts.get(prompt_id)
        if spec is None:
            raise GenerationError(f"Unknown prompt: {prompt_id}")

        messages = self.prompt.format_messages(tip_prompt=spec.render(parameters))
        try:
            response = self._model_for(spec).invoke(messages)
        except Exception as exc:
            logger.exception(
                "Language model request failed",
                extra={"event": "llm.error", "prompt_id": prompt_id},
            )
            raise GenerationError(f"Language model request failed for {prompt_id}") from exc

        return spec.parse(self._extract_content(response))

    def _model_for(self, spec: PromptSpec) -> SupportsInvoke:
        model = self._models.get(spec.prompt_id)
        if model is None:
            model = self.llm_factory(spec)
            self._models[spec.prompt_id] = model
        return model

    @staticmethod
    def _extract_content(response: BaseMessage | str | None) -> str:
        if response is None:
            return ""
        if isinstance(response, str):
            return response
        content = getattr(response, "content", None)
        if isinstance(content, list):
            parts = []
            for part in content:
                if isinstance(part, dict):
                    parts.append(str(part.get("text", "")))
                else:
                    parts.append(str(part))
            return "".join(parts)
        return str(content) if content else ""


class LocalTipResponder:
    """Deterministic responder that fabricates schema-conforming JSON for offline use."""

    _TIPS: Final[tuple[tuple[str, str], ...]] = (
        ("Drink Water Before Meals", "water"),
        ("Take a Brisk Walk", "walk"),
        ("Protect Your Sleep Window", "sleep"),
        ("Add Protein at Breakfast", "egg"),
        ("Pause for Deep Breaths", "breath"),
    )

    def __init__(self, prompt_id: str) -> None:
        self.prompt_id = prompt_id

    def invoke(self, input: Any, **kwargs: Any) -> AIMessage:
        if isinstance(input, list) and input:
            final_message = input[-1]
            content = getattr(final_message, "content", str(final_message))
        else:
            content = str(input)

        if self.prompt_id == GENERATE_TIPS:
            payload: Any = [
                {"tip_id": index, "title": title, "icon_keyword": keyword}
                for index, (title, keyword) in enumerate(self._TIPS, start=1)
            ]
        else:
            payload = self._build_detail(str(content))
        return AIMessage(content=json.dumps(payload, ensure_ascii=False))

    @staticmethod
    def _build_detail(prompt: str) -> dict[str, Any]:
        tip_match = re.search(r"selected the tip: '(.+?)'\.", prompt)
        goal_match = re.search(r"aiming for (.+?), has selected", prompt)
        tip_title = tip_match.group(1) if tip_match else "this tip"
        goal = goal_match.group(1) if goal_match else "your goal"
        return {
            "explanation_long": (
                f"{tip_title} is a small, repeatable habit that supports {goal}.\n\n"
                "Start with an easy version today and build consistency before intensity."
            ),
            "steps": [
                f"1. Decide when today you will practise '{tip_title}'.",
                "2. Prepare anything you need in advance.",
                "3. Do the smallest version of the habit.",
                "4. Note how you felt afterwards.",
                "5. Repeat tomorrow at the same time.",
            ],
        }


def create_llm_factory(settings: "Settings") -> LLMFactory:
    """Return a factory building one chat client per prompt for the configured provider."""

    provider = settings.llm_provider

    if provider == "local":
        return lambda spec: LocalTipResponder(spec.prompt_id)

    if provider == "ollama":

        def _ollama(spec: PromptSpec) -> SupportsInvoke:
            from langchain_ollama import ChatOllama

            return ChatOllama(
                model=settings.ollama_model,
                temperature=spec.temperature,
                format=spec.response_schema,
            )

        return _ollama

    if not settings.gemini_api_key:
        logger.error("Missing GEMINI_API_KEY in environment", extra={"event": "llm.config_missing"})

    def _gemini(spec: PromptSpec) -> SupportsInvoke:
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=settings.gemini_model,
            google_api_key=settings.gemini_api_key or None,
            temperature=spec.temperature,
            timeout=settings.llm_timeout,
            response_mime_type="application/json",
            response_schema=spec.response_schema,
        )

    return _gemini


def _format_age(age: Any) -> Any:
    if isinstance(age, float) and age.is_integer():
        return int(age)
    return age


__all__ = [
    "GENERATE_TIPS",
    "LangChainTipProvider",
    "LocalTipResponder",
    "PROMPTS",
    "PromptSpec",
    "TIP_DETAIL",
    "TipProvider",
    "create_llm_factory",
]
