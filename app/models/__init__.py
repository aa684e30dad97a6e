from .activity import Activity, Pillar, CueType
from .activity_completion import ActivityCompletion, Source
from .daily_score import DailyScore
from .streak import Streak, PillarKey
from .habit_stack import HabitStack, StackCompletion
from .achievement import Achievement
from .quote import Quote
from .auto_trigger import AutoTrigger, AutoTriggerType

__all__ = [
    "Activity",
    "Pillar",
    "CueType",
    "ActivityCompletion",
    "Source",
    "DailyScore",
    "Streak",
    "PillarKey",
    "HabitStack",
    "StackCompletion",
    "Achievement",
    "Quote",
    "AutoTrigger",
    "AutoTriggerType",
]
