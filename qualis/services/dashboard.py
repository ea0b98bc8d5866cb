import logging
from datetime import datetime, time, timedelta, timezone

from sqlalchemy.orm import Session

from qualis.models.care_home import CareHome, Client
from qualis.models.care_plan import CarePlan, CarePlanReview, CarePlanReviewStatus
from qualis.models.incident import Incident, IncidentSeverity, IncidentStatus
from qualis.services.access import AccessScope
from qualis.services.dates import as_utc, utcnow

logger = logging.getLogger(__name__)

UPCOMING_REVIEW_DAYS = 14
_OPEN_INCIDENT = (IncidentStatus.open, IncidentStatus.investigating)
_ATTENTION_SEVERITY = (IncidentSeverity.high, IncidentSeverity.critical)
_CLOSED_REVIEW = (CarePlanReviewStatus.completed, CarePlanReviewStatus.cancelled)


class Dashboard:
    @staticmethod
    def metrics(db: Session, scope: AccessScope, now: datetime | None = None) -> dict:
        scope.require("dashboard:read")
        now = as_utc(now or utcnow())
        today = now.date()
        month_start = datetime.combine(today.replace(day=1), time.min, tzinfo=timezone.utc)

        homes = (
            scope.apply(db.query(CareHome), CareHome.id)
            .filter(CareHome.is_active.is_(True))
            .all()
        )
        occupancy = sum(
            home.current_occupancy / home.capacity for home in homes if home.capacity
        )
        average_occupancy = round(occupancy / len(homes) * 100) if homes else 0

        clients = scope.apply(db.query(Client), Client.care_home_id).filter(
            Client.is_active.is_(True)
        )
        total_clients = clients.count()
        new_clients = clients.filter(Client.created_at >= month_start).count()

        incidents = scope.apply(db.query(Incident), Incident.care_home_id).filter(
            Incident.status.in_(_OPEN_INCIDENT)
        )
        open_incidents = incidents.count()
        attention_incidents = incidents.filter(
            Incident.severity.in_(_ATTENTION_SEVERITY)
        ).count()

        reviews = (
            db.query(CarePlanReview)
            .join(CarePlan, CarePlanReview.care_plan_id == CarePlan.id)
            .join(Client, CarePlan.client_id == Client.id)
            .filter(CarePlanReview.status.notin_(_CLOSED_REVIEW))
        )
        reviews = scope.apply(reviews, Client.care_home_id)
        overdue_reviews = reviews.filter(CarePlanReview.scheduled_for < today).count()
        upcoming_reviews = reviews.filter(
            CarePlanReview.scheduled_for >= today,
            CarePlanReview.scheduled_for <= today + timedelta(days=UPCOMING_REVIEW_DAYS),
        ).count()

        return {
            "care_home_count": len(homes),
            "average_occupancy": average_occupancy,
            "total_clients": total_clients,
            "new_clients_this_month": new_clients,
            "open_incidents": open_incidents,
            "attention_incidents": attention_incidents,
            "overdue_reviews": overdue_reviews,
            "upcoming_reviews": upcoming_reviews,
        }


dashboard = Dashboard()
