from qualis.models.audit import AuditEvent  # noqa: F401
from qualis.models.care_home import (  # noqa: F401
    CareHome,
    CareHomeType,
    Client,
    ClientType,
    Gender,
    Handover,
    ShiftType,
)
from qualis.models.care_plan import (  # noqa: F401
    CarePlan,
    CarePlanReview,
    CarePlanReviewStatus,
    CarePlanTask,
    CarePlanTaskStatus,
    CarePlanVersion,
    CarePlanVersionStatus,
    Priority,
)
from qualis.models.incident import (  # noqa: F401
    Incident,
    IncidentAction,
    IncidentActionStatus,
    IncidentFollowup,
    IncidentSeverity,
    IncidentStatus,
)
from qualis.models.notification import (  # noqa: F401
    NotificationChannel,
    NotificationQueueEntry,
    NotificationStatus,
)
from qualis.models.profile import ManagerCareHome, Profile, UserRole  # noqa: F401
