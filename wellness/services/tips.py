"""Tip generation service built on the schema-constrained provider."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from wellness.models.tip import GeneratedTip, TipDetail
from wellness.services.tip_provider import GENERATE_TIPS, TIP_DETAIL, TipProvider

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TipService:
    """Produce tip cards and tip details for a user's demographic context.

    Each operation is exactly one provider call. The number of tips and steps is
    part of the prompt contract and is not enforced here.
    """

    provider: TipProvider

    def generate_tips(self, age: int | float, gender: str, goal: str) -> list[GeneratedTip]:
        """Return the tip cards produced for ``goal``, in provider order."""

        tips = self.provider.invoke(GENERATE_TIPS, {"age": age, "gender": gender, "goal": goal})
        logger.info(
            "Generated tips",
            extra={"event": "tips.generated", "count": len(tips)},
        )
        return list(tips)

    def generate_tip_detail(self, age: int | float, gender: str, goal: str, tip_title: str) -> TipDetail:
        """Return the long explanation and action steps for ``tip_title``."""

        detail = self.provider.invoke(
            TIP_DETAIL,
            {"age": age, "gender": gender, "goal": goal, "tip_title": tip_title},
        )
        logger.info(
            "Generated tip detail",
            extra={"event": "tips.detail_generated", "steps": len(detail.steps)},
        )
        return detail
