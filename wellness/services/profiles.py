"""Profile and goal orchestration on top of the profile repository."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from wellness.models.profile import Goal, SavedTip, User
from wellness.services.errors import NotFoundError, ValidationError
from wellness.services.repository import ProfileRepository

logger = logging.getLogger(__name__)


def file_tip(user: User, tip: SavedTip, goal_name: str | None = None) -> str:
    """Append ``tip`` to the goal named ``goal_name``, creating the goal when missing.

    Without ``goal_name`` the tip goes to the user's first goal, the one chosen
    when the profile was created. Names match exactly; no trimming or case folding.
    Returns the goal name used.
    """

    if goal_name is None:
        if not user.goals:
            raise ValidationError(
                "goalName is required when the profile has no goals",
                fields=["goalName"],
            )
        goal_name = user.goals[0].name

    goal = user.find_goal(goal_name)
    if goal is None:
        goal = Goal(name=goal_name)
        user.goals.append(goal)
    goal.saved_tasks.append(tip)
    return goal_name


@dataclass(slots=True)
class ProfileService:
    """Create profiles and file saved tips under their goals."""

    repository: ProfileRepository

    def create_profile(self, age: int | float, gender: str, goal: str | None = None) -> str:
        goals = [Goal(name=goal)] if goal is not None else []
        user = self.repository.create_user(User(age=age, gender=gender, goals=goals))
        logger.info("Profile created", extra={"event": "profile.created", "goals": len(goals)})
        return user.id or ""

    def save_tip(self, user_id: str, tip: SavedTip, goal_name: str | None = None) -> str:
        """Persist ``tip`` for ``user_id`` and return the goal it was filed under.

        The read-modify-write runs inside the repository's atomic update, so a
        tip is either fully appended or not stored at all.
        """

        used = self.repository.update_user(user_id, lambda user: file_tip(user, tip, goal_name))
        logger.info("Tip saved", extra={"event": "tips.saved", "goal": used})
        return used

    def get_saved_tips(self, user_id: str) -> list[Goal]:
        user = self.repository.get_user(user_id)
        if user is None:
            raise NotFoundError(user_id)
        return user.goals
