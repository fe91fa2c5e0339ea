"""ORM models exposed for metadata discovery."""
from habitflow.db.models.adaptation_event import AdaptationEventRecord
from habitflow.db.models.agent_action_log import AgentActionLog
from habitflow.db.models.habit import Habit
from habitflow.db.models.user import User

__all__ = [
    "AdaptationEventRecord",
    "AgentActionLog",
    "Habit",
    "User",
]
