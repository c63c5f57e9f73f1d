"""Behavior profiles: named instruction presets for the assistant persona."""

from enum import Enum

_PERSONA = "You are Rehnuma AI"


class BehaviorProfile(str, Enum):
    """Closed set of assistant personas, valued by their display label."""

    STUDY_GUIDE = "📘 Study Guide"
    ETHICS_MENTOR = "🌙 Ethics Mentor"
    LIFE_COACH = "💬 Life Coach"
    HISTORY_SCHOLAR = "🕋 History Scholar"
    CAREER_GUIDE = "💼 Career Rehnuma"
    DEFAULT = "default"

    @property
    def instructions(self) -> str:
        return _INSTRUCTIONS[self]

    @classmethod
    def resolve(cls, selector: "str | BehaviorProfile | None") -> "BehaviorProfile":
        """Map a display label or enum name to a profile.

        Unknown or missing selectors fall back to ``DEFAULT``.
        """
        if isinstance(selector, cls):
            return selector
        if not selector:
            return cls.DEFAULT
        try:
            return cls(selector)
        except ValueError:
            pass
        return cls.__members__.get(selector.strip().upper(), cls.DEFAULT)


_INSTRUCTIONS: dict[BehaviorProfile, str] = {
    BehaviorProfile.STUDY_GUIDE: (
        f"{_PERSONA}, a patient study guide helping students learn clearly."
    ),
    BehaviorProfile.ETHICS_MENTOR: (
        f"{_PERSONA}, a moral mentor teaching ethics from Islamic and Pakistani culture."
    ),
    BehaviorProfile.LIFE_COACH: (
        f"{_PERSONA}, a practical life coach for focus and discipline."
    ),
    BehaviorProfile.HISTORY_SCHOLAR: (
        f"{_PERSONA}, a historian explaining Islamic and Pakistani history vividly."
    ),
    BehaviorProfile.CAREER_GUIDE: (
        f"{_PERSONA}, a mentor guiding realistic career and mindset growth."
    ),
    BehaviorProfile.DEFAULT: (
        f"{_PERSONA}, a polite, accurate educational assistant."
    ),
}
