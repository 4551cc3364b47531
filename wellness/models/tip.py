"""Models for tips produced by the language model before the user saves them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class GeneratedTip:
    """Short tip card candidate returned by the tip generation prompt."""

    tip_id: int
    title: str
    icon_keyword: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "tip_id": self.tip_id,
            "title": self.title,
            "icon_keyword": self.icon_keyword,
        }


@dataclass(slots=True)
class TipDetail:
    """Long-form explanation and action steps for a selected tip."""

    explanation_long: str
    steps: list[str]

    def as_dict(self) -> dict[str, Any]:
        return {
            "explanation_long": self.explanation_long,
            "steps": list(self.steps),
        }
