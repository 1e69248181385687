# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from app.models.fixture import Fixture  # noqa: F401
from app.models.group import GroupPair, TournamentGroup  # noqa: F401
from app.models.pair import Pair  # noqa: F401
from app.models.schedule_event import ScheduleEvent  # noqa: F401
from app.models.tournament import Tournament  # noqa: F401
