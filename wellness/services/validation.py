"""Structural validation of raw request payloads.

Every public function takes the untyped JSON value received by the HTTP layer
and either returns a fully populated request model or raises
:class:`~wellness.services.errors.ValidationError` naming the offending fields.
Validation only checks presence and primitive types; it never decides whether a
goal or gender value is meaningful.
"""
from __future__ import annotations

import math
from typing import Any, Mapping, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from wellness.models.profile import SavedTip
from wellness.services.errors import ValidationError

_ModelT = TypeVar("_ModelT", bound=BaseModel)


def _require_text(value: str | None) -> str | None:
    if value is not None and not value.strip():
        raise ValueError("must not be empty")
    return value


class _Request(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class ProfileRequest(_Request):
    """Payload accepted by the profile creation endpoint."""

    age: int | float
    gender: StrictStr
    goal: StrictStr | None = None

    @field_validator("age", mode="before")
    @classmethod
    def _ensure_number(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("age must be a number")
        try:
            finite = math.isfinite(value)
        except OverflowError:
            raise ValueError("age must be a finite number") from None
        if not finite or value <= 0:
            raise ValueError("age must be a positive number")
        return value

    @field_validator("gender", "goal")
    @classmethod
    def _ensure_text(cls, value: str | None) -> str | None:
        return _require_text(value)


class TipRequest(ProfileRequest):
    """Demographic context shared by both generation prompts."""

    goal: StrictStr


class TipDetailRequest(TipRequest):
    tip_title: StrictStr

    @field_validator("tip_title")
    @classmethod
    def _ensure_title(cls, value: str) -> str:
        return _require_text(value) or value


class TipPayload(_Request):
    """A tip the client asks to keep, complete with its detail."""

    title: StrictStr
    icon_keyword: StrictStr
    explanation_long: StrictStr
    steps: list[StrictStr] = Field(min_length=1)

    @field_validator("title", "icon_keyword", "explanation_long")
    @classmethod
    def _ensure_text(cls, value: str) -> str:
        return _require_text(value) or value

    @field_validator("steps")
    @classmethod
    def _ensure_steps(cls, value: list[str]) -> list[str]:
        if any(not step.strip() for step in value):
            raise ValueError("steps must not contain empty entries")
        return value

    def to_saved_tip(self) -> SavedTip:
        return SavedTip(
            title=self.title,
            icon_keyword=self.icon_keyword,
            explanation_long=self.explanation_long,
            steps=list(self.steps),
        )


class SaveTipRequest(_Request):
    user_id: StrictStr = Field(alias="userId")
    goal_name: StrictStr | None = Field(default=None, alias="goalName")
    tip: TipPayload

    @field_validator("user_id", "goal_name")
    @classmethod
    def _ensure_text(cls, value: str | None) -> str | None:
        return _require_text(value)


def validate_create_profile(raw: Any) -> ProfileRequest:
    return _validate(ProfileRequest, raw)


def validate_generate_tips(raw: Any) -> TipRequest:
    return _validate(TipRequest, raw)


def validate_tip_detail(raw: Any) -> TipDetailRequest:
    return _validate(TipDetailRequest, raw)


def validate_save_tip(raw: Any) -> SaveTipRequest:
    return _validate(SaveTipRequest, raw)


def validate_user_id(raw: Any) -> str:
    """Validate the ``userId`` path parameter of the saved tips lookup."""

    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError.for_fields(["userId"])
    return raw


def _validate(model: type[_ModelT], raw: Any) -> _ModelT:
    if not isinstance(raw, Mapping):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValidationError.for_fields(_error_fields(exc)) from exc


def _error_fields(exc: PydanticValidationError) -> list[str]:
    """Collapse pydantic error locations into dotted field paths, first seen first."""

    fields: list[str] = []
    for error in exc.errors():
        parts: list[str] = []
        for part in error.get("loc", ()):
            if not isinstance(part, str):
                break
            parts.append(part)
        path = ".".join(parts) or "body"
        if path not in fields:
            fields.append(path)
    return fields


__all__ = [
    "ProfileRequest",
    "SaveTipRequest",
    "TipDetailRequest",
    "TipPayload",
    "TipRequest",
    "validate_create_profile",
    "validate_generate_tips",
    "validate_save_tip",
    "validate_tip_detail",
    "validate_user_id",
]
