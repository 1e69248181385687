from app.models.fixture import Fixture
from app.models.group import GroupPair, TournamentGroup
from app.models.pair import Pair
from app.models.schedule_event import ScheduleEvent
from app.models.tournament import Tournament

__all__ = [
    "Tournament",
    "Pair",
    "TournamentGroup",
    "GroupPair",
    "Fixture",
    "ScheduleEvent",
]
