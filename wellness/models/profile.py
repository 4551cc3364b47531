"""Domain models for user profiles stored in the document store."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Mapping, Sequence


def _default_datetime() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> datetime | None:
    """Coerce a string/date/datetime value into a timezone-aware UTC datetime."""

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _text_value(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str) or not isinstance(value, Sequence):
        return []
    return [item for item in value if isinstance(item, str)]


def _snapshot_data(snapshot: Any) -> dict[str, Any]:
    if snapshot is None:
        return {}

    to_dict = getattr(snapshot, "to_dict", None)
    if callable(to_dict):
        return to_dict() or {}

    if isinstance(snapshot, Mapping):
        return dict(snapshot)

    return {}


def _snapshot_id(snapshot: Any) -> str | None:
    if snapshot is None:
        return None

    identifier = getattr(snapshot, "id", None)
    if identifier is not None:
        return str(identifier)

    if isinstance(snapshot, Mapping):
        candidate = snapshot.get("id")
        if candidate is not None:
            return str(candidate)

    return None


@dataclass(slots=True)
class SavedTip:
    """A fully detailed tip the user chose to keep under one of their goals."""

    title: str
    icon_keyword: str
    explanation_long: str
    steps: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "icon_keyword": self.icon_keyword,
            "explanation_long": self.explanation_long,
            "steps": list(self.steps),
        }

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> "SavedTip":
        return cls(
            title=_text_value(data.get("title")),
            icon_keyword=_text_value(data.get("icon_keyword")),
            explanation_long=_text_value(data.get("explanation_long")),
            steps=_string_list(data.get("steps")),
        )


@dataclass(slots=True)
class Goal:
    """A named category under which saved tips accumulate."""

    name: str
    saved_tasks: list[SavedTip] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "saved_tasks": [task.as_dict() for task in self.saved_tasks],
        }

    @classmethod
    def from_document(cls, data: Mapping[str, Any]) -> "Goal":
        raw_tasks = data.get("saved_tasks")
        tasks = raw_tasks if isinstance(raw_tasks, Sequence) and not isinstance(raw_tasks, str) else []
        return cls(
            name=_text_value(data.get("name")),
            saved_tasks=[SavedTip.from_document(task) for task in tasks if isinstance(task, Mapping)],
        )


@dataclass(slots=True)
class User:
    """Representation of a profile stored in the ``users`` collection."""

    age: int | float
    gender: str
    goals: list[Goal] = field(default_factory=list)
    created_at: datetime = field(default_factory=_default_datetime)
    updated_at: datetime = field(default_factory=_default_datetime)
    id: str | None = None

    def find_goal(self, name: str) -> Goal | None:
        """Return the goal whose name matches ``name`` exactly."""

        return next((goal for goal in self.goals if goal.name == name), None)

    def touch(self) -> None:
        self.updated_at = _default_datetime()

    def to_document(self) -> dict[str, Any]:
        return {
            "age": self.age,
            "gender": self.gender,
            "goals": [goal.as_dict() for goal in self.goals],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_document(cls, snapshot: Any) -> "User":
        data = _snapshot_data(snapshot)
        doc_id = _snapshot_id(snapshot)

        age = data.get("age")
        raw_goals = data.get("goals")
        goals = raw_goals if isinstance(raw_goals, Sequence) and not isinstance(raw_goals, str) else []
        created = _parse_datetime(data.get("created_at")) or _default_datetime()
        updated = _parse_datetime(data.get("updated_at")) or created

        return cls(
            age=age if isinstance(age, (int, float)) and not isinstance(age, bool) else 0,
            gender=_text_value(data.get("gender")),
            goals=[Goal.from_document(goal) for goal in goals if isinstance(goal, Mapping)],
            created_at=created,
            updated_at=updated,
            id=doc_id,
        )
