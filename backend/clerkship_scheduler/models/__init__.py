from clerkship_scheduler.models.activity_log import ActivityLog  # noqa: F401
from clerkship_scheduler.models.blackout_date import BlackoutDate  # noqa: F401
from clerkship_scheduler.models.clerkship import Clerkship  # noqa: F401
from clerkship_scheduler.models.preceptor import Preceptor, PreceptorAvailability  # noqa: F401
from clerkship_scheduler.models.schedule_assignment import (  # noqa: F401
    DEFAULT_ASSIGNMENT_STATUS,
    ScheduleAssignment,
)
from clerkship_scheduler.models.student import Student  # noqa: F401
from clerkship_scheduler.models.team import PreceptorTeam, PreceptorTeamMember  # noqa: F401
