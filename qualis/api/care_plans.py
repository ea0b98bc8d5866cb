from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from qualis.api.deps import get_db, get_scope
from qualis.schemas.care_plan import (
    CarePlanCreate,
    CarePlanDetail,
    CarePlanListItem,
    CarePlanRead,
    CarePlanReviewCreate,
    CarePlanReviewRead,
    CarePlanReviewStatusUpdate,
    CarePlanTaskCreate,
    CarePlanTaskRead,
    CarePlanUpdate,
    CarePlanVersionCreate,
    CarePlanVersionRead,
    CarerTaskRead,
)
from qualis.schemas.common import ListResponse, StatusUpdate
from qualis.services import care_plans as care_plan_service
from qualis.services.access import AccessScope
from qualis.services.inflight import mutation_guard

router = APIRouter(tags=["care-plans"])


# ---------------------------------------------------------------------------
# Care plans
# ---------------------------------------------------------------------------


@router.post(
    "/care-plans", response_model=CarePlanRead, status_code=status.HTTP_201_CREATED
)
def create_care_plan(
    payload: CarePlanCreate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> CarePlanRead:
    with mutation_guard.hold(scope.actor_id, "care_plans.create", payload.client_id):
        plan = care_plan_service.care_plans.create(db, scope, payload)
        db.commit()
    return plan


@router.get("/care-plans", response_model=ListResponse[CarePlanListItem])
def list_care_plans(
    search: str | None = None,
    status: str = Query(default="active", pattern="^(active|inactive|all)$"),
    review: str | None = Query(default=None, pattern="^(due|upcoming|all)$"),
    care_home_id: str | None = None,
    client_id: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=200),
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    return care_plan_service.care_plans.list(
        db, scope, search, status, review, care_home_id, client_id, page, limit
    )


@router.get("/care-plans/{care_plan_id}", response_model=CarePlanDetail)
def get_care_plan(
    care_plan_id: str,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    return care_plan_service.care_plans.detail(db, scope, care_plan_id)


@router.patch("/care-plans/{care_plan_id}", response_model=CarePlanRead)
def update_care_plan(
    care_plan_id: str,
    payload: CarePlanUpdate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> CarePlanRead:
    return care_plan_service.care_plans.update(db, scope, care_plan_id, payload)


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------


@router.post(
    "/care-plans/{care_plan_id}/versions",
    response_model=CarePlanVersionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_care_plan_version(
    care_plan_id: str,
    payload: CarePlanVersionCreate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> CarePlanVersionRead:
    with mutation_guard.hold(scope.actor_id, "care_plan_versions.create", care_plan_id):
        version = care_plan_service.care_plan_versions.create(
            db, scope, care_plan_id, payload
        )
        db.commit()
    return version


@router.post(
    "/care-plan-versions/{version_id}/activate", response_model=CarePlanVersionRead
)
def activate_care_plan_version(
    version_id: str,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> CarePlanVersionRead:
    with mutation_guard.hold(scope.actor_id, "care_plan_versions.activate", version_id):
        version = care_plan_service.care_plan_versions.activate(db, scope, version_id)
        db.commit()
    return version


@router.post(
    "/care-plan-versions/{version_id}/archive", response_model=CarePlanVersionRead
)
def archive_care_plan_version(
    version_id: str,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> CarePlanVersionRead:
    return care_plan_service.care_plan_versions.archive(db, scope, version_id)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@router.post(
    "/care-plan-versions/{version_id}/tasks",
    response_model=CarePlanTaskRead,
    status_code=status.HTTP_201_CREATED,
)
def create_care_plan_task(
    version_id: str,
    payload: CarePlanTaskCreate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> CarePlanTaskRead:
    with mutation_guard.hold(scope.actor_id, "care_plan_tasks.create", version_id):
        task = care_plan_service.care_plan_tasks.create(db, scope, version_id, payload)
        db.commit()
    return task


@router.get("/care-plan-tasks/mine", response_model=list[CarerTaskRead])
def list_my_tasks(
    include_closed: bool = False,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> list[dict]:
    return care_plan_service.care_plan_tasks.list_for_assignee(
        db, scope, include_closed
    )


@router.patch("/care-plan-tasks/{task_id}/status", response_model=CarePlanTaskRead)
def update_care_plan_task_status(
    task_id: str,
    payload: StatusUpdate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> CarePlanTaskRead:
    return care_plan_service.care_plan_tasks.update_status(
        db, scope, task_id, payload.status
    )


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


@router.post(
    "/care-plans/{care_plan_id}/reviews",
    response_model=CarePlanReviewRead,
    status_code=status.HTTP_201_CREATED,
)
def schedule_care_plan_review(
    care_plan_id: str,
    payload: CarePlanReviewCreate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    with mutation_guard.hold(scope.actor_id, "care_plan_reviews.create", care_plan_id):
        review = care_plan_service.care_plan_reviews.schedule(
            db, scope, care_plan_id, payload
        )
        db.commit()
    return care_plan_service.review_view(review)


@router.patch(
    "/care-plan-reviews/{review_id}/status", response_model=CarePlanReviewRead
)
def update_care_plan_review_status(
    review_id: str,
    payload: CarePlanReviewStatusUpdate,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    review = care_plan_service.care_plan_reviews.update_status(
        db, scope, review_id, payload.status, payload.notes
    )
    return care_plan_service.review_view(review)


@router.post(
    "/care-plan-reviews/{review_id}/complete", response_model=CarePlanReviewRead
)
def complete_care_plan_review(
    review_id: str,
    scope: AccessScope = Depends(get_scope),
    db: Session = Depends(get_db),
) -> dict:
    review = care_plan_service.care_plan_reviews.complete(db, scope, review_id)
    return care_plan_service.review_view(review)
