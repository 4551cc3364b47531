"""Shared fixtures and helpers for the test suite."""

from __future__ import annotations

import json
from typing import Any, Sequence

import pytest
from langchain_core.messages import AIMessage

from wellness.models.profile import SavedTip
from wellness.services.repository import InMemoryProfileRepository


class DummyLLM:
    """Simple fake LLM that returns a fixed AIMessage payload."""

    def __init__(self, response: str) -> None:
        self._response = response
        self.calls: list[Sequence[Any]] = []

    def invoke(self, input: Any, **_: Any) -> AIMessage:
        self.calls.append(input if isinstance(input, list) else [input])
        return AIMessage(content=self._response)


def build_tip(suffix: str = "") -> SavedTip:
    return SavedTip(
        title=f"Hydrate Before Meals{suffix}",
        icon_keyword="water",
        explanation_long="Drinking water before meals supports satiety.\n\nIt also builds a habit.",
        steps=["1. Fill a glass.", "2. Drink it slowly."],
    )


def tip_payload(suffix: str = "") -> dict[str, Any]:
    return build_tip(suffix).as_dict()


FIVE_TIPS: list[dict[str, Any]] = [
    {"tip_id": 1, "title": "Drink More Water", "icon_keyword": "water"},
    {"tip_id": 2, "title": "Walk After Dinner", "icon_keyword": "walk"},
    {"tip_id": 3, "title": "Sleep Eight Hours", "icon_keyword": "sleep"},
    {"tip_id": 4, "title": "Lift Twice Weekly", "icon_keyword": "weights"},
    {"tip_id": 5, "title": "Eat More Greens", "icon_keyword": "salad"},
]


@pytest.fixture()
def repository() -> InMemoryProfileRepository:
    return InMemoryProfileRepository()


@pytest.fixture()
def five_tips_json() -> str:
    return json.dumps(FIVE_TIPS)
