import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from qualis.models.care_home import Client
from qualis.models.care_plan import (
    CarePlan,
    CarePlanReview,
    CarePlanReviewStatus,
    CarePlanTask,
    CarePlanTaskStatus,
    CarePlanVersion,
    CarePlanVersionStatus,
    Priority,
)
from qualis.models.profile import Profile
from qualis.schemas.care_plan import (
    CarePlanCreate,
    CarePlanReviewCreate,
    CarePlanTaskCreate,
    CarePlanUpdate,
    CarePlanVersionCreate,
)
from qualis.services.access import AccessScope
from qualis.services.clients import load_client
from qualis.services.common import apply_search, coerce_uuid, paginate, parse_enum
from qualis.services.dates import (
    DateUrgency,
    classify_by_date,
    due_cutoff,
    upcoming_range,
    utcnow,
)
from qualis.services.lifecycle import (
    LifecycleEntity,
    ensure_transition,
    precondition_failed,
)
from qualis.services.workflow_events import EventType, publish_event

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {
    Priority.urgent: 0,
    Priority.high: 1,
    Priority.medium: 2,
    Priority.low: 3,
}
_CLOSED_REVIEW = (CarePlanReviewStatus.completed, CarePlanReviewStatus.cancelled)
_CLOSED_TASK = (CarePlanTaskStatus.completed, CarePlanTaskStatus.cancelled)


def _conflict() -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={
            "code": "conflict",
            "message": "Care plan versions changed concurrently, please retry",
            "details": {"retryable": True},
        },
    )


def load_care_plan(
    db: Session, scope: AccessScope, care_plan_id, not_found: str = "Care plan not found"
) -> CarePlan:
    plan = db.get(CarePlan, coerce_uuid(care_plan_id))
    if not plan or not scope.allows(plan.client.care_home_id):
        raise HTTPException(status_code=404, detail=not_found)
    return plan


def load_version(db: Session, scope: AccessScope, version_id) -> CarePlanVersion:
    version = db.get(CarePlanVersion, coerce_uuid(version_id))
    if not version:
        raise HTTPException(status_code=404, detail="Care plan version not found")
    load_care_plan(db, scope, version.care_plan_id, "Care plan version not found")
    return version


def review_urgency(review: CarePlanReview, now: datetime | None = None) -> DateUrgency:
    if review.status in _CLOSED_REVIEW:
        return DateUrgency.normal
    return classify_by_date(review.scheduled_for, now)


def review_view(review: CarePlanReview, now: datetime | None = None) -> dict:
    return {
        "id": review.id,
        "care_plan_id": review.care_plan_id,
        "scheduled_for": review.scheduled_for,
        "status": review.status,
        "notes": review.notes,
        "created_by": review.created_by,
        "completed_at": review.completed_at,
        "created_at": review.created_at,
        "updated_at": review.updated_at,
        "urgency": review_urgency(review, now),
    }


def _plan_summary(plan: CarePlan, now: datetime | None = None) -> dict:
    return {
        "id": plan.id,
        "client_id": plan.client_id,
        "created_by": plan.created_by,
        "title": plan.title,
        "description": plan.description,
        "goals": plan.goals,
        "interventions": plan.interventions,
        "start_date": plan.start_date,
        "end_date": plan.end_date,
        "review_date": plan.review_date,
        "is_active": plan.is_active,
        "created_at": plan.created_at,
        "updated_at": plan.updated_at,
        "client_name": plan.client.full_name,
        "care_home_id": plan.client.care_home_id,
        "review_urgency": classify_by_date(plan.review_date, now),
    }


def _validate_dates(start_date, end_date) -> None:
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot precede start_date")


# ---------------------------------------------------------------------------
# CarePlans
# ---------------------------------------------------------------------------


class CarePlans:
    @staticmethod
    def create(db: Session, scope: AccessScope, payload: CarePlanCreate) -> CarePlan:
        scope.require("care_plans:write")
        load_client(db, scope, payload.client_id)
        _validate_dates(payload.start_date, payload.end_date)
        plan = CarePlan(**payload.model_dump(), created_by=scope.actor_id)
        db.add(plan)
        db.flush()
        db.refresh(plan)
        logger.info("Created care plan %s for client %s", plan.id, plan.client_id)
        publish_event(db, EventType.care_plan_created, plan, scope.actor_id)
        return plan

    @staticmethod
    def get(db: Session, scope: AccessScope, care_plan_id: str) -> CarePlan:
        scope.require("care_plans:read")
        return load_care_plan(db, scope, care_plan_id)

    @staticmethod
    def detail(
        db: Session, scope: AccessScope, care_plan_id: str, now: datetime | None = None
    ) -> dict:
        plan = CarePlans.get(db, scope, care_plan_id)
        versions = (
            db.query(CarePlanVersion)
            .filter(CarePlanVersion.care_plan_id == plan.id)
            .order_by(CarePlanVersion.version_number.desc())
            .all()
        )
        active = next((v for v in versions if v.is_active), None)
        tasks = []
        if active is not None:
            tasks = (
                db.query(CarePlanTask)
                .filter(CarePlanTask.care_plan_version_id == active.id)
                .order_by(CarePlanTask.created_at.asc())
                .all()
            )
        reviews = (
            db.query(CarePlanReview)
            .filter(CarePlanReview.care_plan_id == plan.id)
            .order_by(CarePlanReview.scheduled_for.asc())
            .all()
        )
        data = _plan_summary(plan, now)
        data.pop("review_urgency")
        data["active_version_id"] = active.id if active else None
        data["versions"] = versions
        data["tasks"] = tasks
        data["reviews"] = [review_view(review, now) for review in reviews]
        return data

    @staticmethod
    def list(
        db: Session,
        scope: AccessScope,
        search: str | None = None,
        status: str | None = "active",
        review: str | None = None,
        care_home_id: str | None = None,
        client_id: str | None = None,
        page: int = 1,
        limit: int = 12,
        now: datetime | None = None,
    ) -> dict:
        scope.require("care_plans:read")
        query = db.query(CarePlan).join(Client, CarePlan.client_id == Client.id)
        query = scope.apply(query, Client.care_home_id)
        if status == "active":
            query = query.filter(CarePlan.is_active.is_(True))
        elif status == "inactive":
            query = query.filter(CarePlan.is_active.is_(False))
        elif status not in (None, "all"):
            raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
        if review == "due":
            query = query.filter(CarePlan.review_date <= due_cutoff(now))
        elif review == "upcoming":
            start, end = upcoming_range(now)
            query = query.filter(
                CarePlan.review_date > start, CarePlan.review_date <= end
            )
        elif review not in (None, "all"):
            raise HTTPException(status_code=400, detail=f"Invalid review filter: {review}")
        if care_home_id and care_home_id != "all":
            query = query.filter(Client.care_home_id == coerce_uuid(care_home_id))
        if client_id:
            query = query.filter(CarePlan.client_id == coerce_uuid(client_id))
        query = apply_search(
            query, search, [CarePlan.title, Client.first_name, Client.last_name]
        )
        query = query.order_by(CarePlan.created_at.desc())
        result = paginate(query, page, limit)
        result["items"] = [_plan_summary(plan, now) for plan in result["items"]]
        return result

    @staticmethod
    def update(
        db: Session, scope: AccessScope, care_plan_id: str, payload: CarePlanUpdate
    ) -> CarePlan:
        scope.require("care_plans:write")
        plan = load_care_plan(db, scope, care_plan_id)
        data = payload.model_dump(exclude_unset=True)
        for key in ("title", "start_date", "is_active"):
            if key in data and data[key] is None:
                data.pop(key)
        _validate_dates(
            data.get("start_date", plan.start_date), data.get("end_date", plan.end_date)
        )
        for key, value in data.items():
            setattr(plan, key, value)
        db.flush()
        db.refresh(plan)
        logger.info("Updated care plan %s", plan.id)
        return plan


# ---------------------------------------------------------------------------
# CarePlanVersions
# ---------------------------------------------------------------------------


class CarePlanVersions:
    @staticmethod
    def _lock_plan(db: Session, care_plan_id) -> None:
        # Serialises version numbering and activation per plan on PostgreSQL.
        db.execute(
            select(CarePlan.id).where(CarePlan.id == care_plan_id).with_for_update()
        )

    @staticmethod
    def _archive_active(db: Session, care_plan_id, keep_id=None, now=None) -> int:
        query = db.query(CarePlanVersion).filter(
            CarePlanVersion.care_plan_id == care_plan_id,
            CarePlanVersion.is_active.is_(True),
        )
        if keep_id is not None:
            query = query.filter(CarePlanVersion.id != keep_id)
        return query.update(
            {
                CarePlanVersion.status: CarePlanVersionStatus.archived,
                CarePlanVersion.is_active: False,
                CarePlanVersion.updated_at: now or utcnow(),
            },
            synchronize_session="fetch",
        )

    @staticmethod
    def create(
        db: Session,
        scope: AccessScope,
        care_plan_id: str,
        payload: CarePlanVersionCreate,
    ) -> CarePlanVersion:
        """Add the next numbered version, optionally publishing it at once."""
        scope.require("care_plans:write")
        plan = load_care_plan(db, scope, care_plan_id)
        CarePlanVersions._lock_plan(db, plan.id)
        latest = db.scalar(
            select(func.max(CarePlanVersion.version_number)).where(
                CarePlanVersion.care_plan_id == plan.id
            )
        )
        now = utcnow()
        make_active = payload.make_active
        try:
            if make_active:
                archived = CarePlanVersions._archive_active(db, plan.id, now=now)
                if archived:
                    logger.info("Archived %d versions of care plan %s", archived, plan.id)
            version = CarePlanVersion(
                care_plan_id=plan.id,
                version_number=(latest or 0) + 1,
                status=(
                    CarePlanVersionStatus.active
                    if make_active
                    else CarePlanVersionStatus.draft
                ),
                is_active=make_active,
                title=payload.title,
                summary=payload.summary,
                effective_from=payload.effective_from,
                created_by=scope.actor_id,
                approved_by=scope.actor_id if make_active else None,
                approved_at=now if make_active else None,
            )
            db.add(version)
            db.flush()
        except IntegrityError:
            db.rollback()
            raise _conflict()
        db.refresh(version)
        logger.info(
            "Created version %d (%s) of care plan %s",
            version.version_number,
            version.status.value,
            plan.id,
        )
        return version

    @staticmethod
    def activate(db: Session, scope: AccessScope, version_id: str) -> CarePlanVersion:
        scope.require("care_plans:write")
        version = load_version(db, scope, version_id)
        if not ensure_transition(
            LifecycleEntity.care_plan_version,
            version.status,
            CarePlanVersionStatus.active,
        ):
            return version
        now = utcnow()
        try:
            CarePlanVersions._lock_plan(db, version.care_plan_id)
            CarePlanVersions._archive_active(
                db, version.care_plan_id, keep_id=version.id, now=now
            )
            version.status = CarePlanVersionStatus.active
            version.is_active = True
            version.approved_by = scope.actor_id
            version.approved_at = now
            db.flush()
        except IntegrityError:
            db.rollback()
            raise _conflict()
        db.refresh(version)
        logger.info("Activated care plan version %s", version.id)
        return version

    @staticmethod
    def archive(db: Session, scope: AccessScope, version_id: str) -> CarePlanVersion:
        scope.require("care_plans:write")
        version = load_version(db, scope, version_id)
        if not ensure_transition(
            LifecycleEntity.care_plan_version,
            version.status,
            CarePlanVersionStatus.archived,
        ):
            return version
        version.status = CarePlanVersionStatus.archived
        version.is_active = False
        db.flush()
        db.refresh(version)
        logger.info("Archived care plan version %s", version.id)
        return version


# ---------------------------------------------------------------------------
# CarePlanTasks
# ---------------------------------------------------------------------------


class CarePlanTasks:
    @staticmethod
    def create(
        db: Session, scope: AccessScope, version_id: str, payload: CarePlanTaskCreate
    ) -> CarePlanTask:
        scope.require("care_plans:write")
        version = load_version(db, scope, version_id)
        if not version.is_active:
            raise precondition_failed("Care plan has no active version")
        priority = parse_enum(Priority, payload.priority or "medium", "priority")
        if payload.assigned_to and not db.get(Profile, payload.assigned_to):
            raise HTTPException(status_code=404, detail="Assignee not found")
        task = CarePlanTask(
            care_plan_version_id=version.id,
            title=payload.title,
            description=payload.description,
            priority=priority,
            status=CarePlanTaskStatus.pending,
            due_date=payload.due_date,
            assigned_to=payload.assigned_to,
            created_by=scope.actor_id,
        )
        db.add(task)
        db.flush()
        db.refresh(task)
        logger.info("Created task %s on version %s", task.id, version.id)
        return task

    @staticmethod
    def update_status(
        db: Session, scope: AccessScope, task_id: str, status: str
    ) -> CarePlanTask:
        scope.require("care_plan_tasks:update_status")
        task = db.get(CarePlanTask, coerce_uuid(task_id))
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")
        load_care_plan(db, scope, task.version.care_plan_id, "Task not found")
        target = parse_enum(CarePlanTaskStatus, status)
        if not ensure_transition(LifecycleEntity.care_plan_task, task.status, target):
            return task
        task.status = target
        task.completed_at = utcnow() if target == CarePlanTaskStatus.completed else None
        db.flush()
        db.refresh(task)
        logger.info("Task %s moved to %s", task.id, target.value)
        return task

    @staticmethod
    def list_for_assignee(
        db: Session,
        scope: AccessScope,
        include_closed: bool = False,
        now: datetime | None = None,
    ) -> list[dict]:
        """Tasks assigned to the actor on currently active versions."""
        scope.require("care_plans:read")
        query = (
            db.query(CarePlanTask)
            .join(CarePlanVersion, CarePlanTask.care_plan_version_id == CarePlanVersion.id)
            .join(CarePlan, CarePlanVersion.care_plan_id == CarePlan.id)
            .join(Client, CarePlan.client_id == Client.id)
            .filter(
                CarePlanTask.assigned_to == scope.actor_id,
                CarePlanVersion.is_active.is_(True),
            )
        )
        query = scope.apply(query, Client.care_home_id)
        if not include_closed:
            query = query.filter(CarePlanTask.status.notin_(_CLOSED_TASK))
        tasks = sorted(
            query.all(),
            key=lambda t: (
                PRIORITY_ORDER.get(t.priority, len(PRIORITY_ORDER)),
                t.due_date is None,
                t.due_date or datetime.max.date(),
            ),
        )
        items = []
        for task in tasks:
            plan = task.version.care_plan
            items.append(
                {
                    "id": task.id,
                    "care_plan_version_id": task.care_plan_version_id,
                    "title": task.title,
                    "description": task.description,
                    "priority": task.priority,
                    "status": task.status,
                    "due_date": task.due_date,
                    "assigned_to": task.assigned_to,
                    "created_by": task.created_by,
                    "completed_at": task.completed_at,
                    "created_at": task.created_at,
                    "updated_at": task.updated_at,
                    "care_plan_id": plan.id,
                    "care_plan_title": plan.title,
                    "client_id": plan.client_id,
                    "client_name": plan.client.full_name,
                    "due_urgency": (
                        DateUrgency.normal
                        if task.status in _CLOSED_TASK
                        else classify_by_date(task.due_date, now)
                    ),
                }
            )
        return items


# ---------------------------------------------------------------------------
# CarePlanReviews
# ---------------------------------------------------------------------------


class CarePlanReviews:
    @staticmethod
    def schedule(
        db: Session, scope: AccessScope, care_plan_id: str, payload: CarePlanReviewCreate
    ) -> CarePlanReview:
        scope.require("care_plans:write")
        plan = load_care_plan(db, scope, care_plan_id)
        review = CarePlanReview(
            care_plan_id=plan.id,
            scheduled_for=payload.scheduled_for,
            notes=payload.notes,
            status=CarePlanReviewStatus.scheduled,
            created_by=scope.actor_id,
        )
        db.add(review)
        db.flush()
        db.refresh(review)
        logger.info("Scheduled review %s for care plan %s", review.id, plan.id)
        return review

    @staticmethod
    def update_status(
        db: Session,
        scope: AccessScope,
        review_id: str,
        status: str,
        notes: str | None = None,
    ) -> CarePlanReview:
        scope.require("care_plans:write")
        review = db.get(CarePlanReview, coerce_uuid(review_id))
        if not review:
            raise HTTPException(status_code=404, detail="Review not found")
        load_care_plan(db, scope, review.care_plan_id, "Review not found")
        target = parse_enum(CarePlanReviewStatus, status)
        if not ensure_transition(LifecycleEntity.care_plan_review, review.status, target):
            return review
        review.status = target
        if notes is not None:
            review.notes = notes
        if target == CarePlanReviewStatus.completed:
            review.completed_at = utcnow()
        db.flush()
        db.refresh(review)
        logger.info("Review %s moved to %s", review.id, target.value)
        return review

    @staticmethod
    def complete(
        db: Session, scope: AccessScope, review_id: str, notes: str | None = None
    ) -> CarePlanReview:
        return CarePlanReviews.update_status(
            db, scope, review_id, CarePlanReviewStatus.completed.value, notes
        )


care_plans = CarePlans()
care_plan_versions = CarePlanVersions()
care_plan_tasks = CarePlanTasks()
care_plan_reviews = CarePlanReviews()
