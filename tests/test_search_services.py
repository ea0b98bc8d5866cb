from datetime import date, timedelta

import pytest
from fastapi import HTTPException

from qualis.models.care_home import CareHome, Client
from qualis.models.care_plan import CarePlanReview, CarePlanReviewStatus
from qualis.services.dashboard import dashboard
from qualis.services.dates import utcnow
from qualis.services.inflight import MutationGuard
from qualis.services.search import search_service


class TestSearch:
    def test_short_term_returns_nothing(self, db_session, owner_scope, resident):
        assert search_service.search(db_session, owner_scope, "a") == []
        assert search_service.search(db_session, owner_scope, None) == []

    def test_matches_across_types(self, db_session, owner_scope, resident, care_plan):
        results = search_service.search(db_session, owner_scope, "lovelace")
        assert [(r["type"], r["title"]) for r in results] == [
            ("client", "Ada Lovelace")
        ]
        assert results[0]["href"] == f"/clients/{resident.id}"
        assert results[0]["subtitle"] == "Room 12"

        plans = search_service.search(db_session, owner_scope, "mobility")
        assert plans[0]["type"] == "care_plan"
        assert plans[0]["subtitle"] == "Ada Lovelace"

    def test_results_are_scoped(
        self, db_session, manager_scope, resident, other_resident
    ):
        assert search_service.search(db_session, manager_scope, "hidden") == []
        homes = search_service.search(db_session, manager_scope, "oak")
        assert homes == []

    def test_result_cap(self, db_session, owner_scope, care_home):
        for i in range(8):
            db_session.add(
                Client(
                    care_home_id=care_home.id,
                    first_name=f"Sam{i}",
                    last_name="Smith",
                    date_of_birth=date(1950, 1, 1),
                )
            )
            db_session.add(CareHome(name=f"Smithfield {i}"))
        db_session.commit()
        results = search_service.search(db_session, owner_scope, "smith")
        assert len([r for r in results if r["type"] == "client"]) == 6
        assert len(results) == 12


class TestDashboard:
    def test_metrics_for_manager(
        self, db_session, manager_scope, resident, other_resident, incident, care_plan
    ):
        today = utcnow().date()
        for offset, status in (
            (-3, CarePlanReviewStatus.scheduled),
            (5, CarePlanReviewStatus.scheduled),
            (40, CarePlanReviewStatus.scheduled),
            (-10, CarePlanReviewStatus.completed),
        ):
            db_session.add(
                CarePlanReview(
                    care_plan_id=care_plan.id,
                    scheduled_for=today + timedelta(days=offset),
                    status=status,
                    created_by=care_plan.created_by,
                )
            )
        db_session.commit()

        metrics = dashboard.metrics(db_session, manager_scope)
        assert metrics["care_home_count"] == 1
        assert metrics["average_occupancy"] == 75
        assert metrics["total_clients"] == 1
        assert metrics["new_clients_this_month"] == 1
        assert metrics["open_incidents"] == 1
        assert metrics["attention_incidents"] == 1
        assert metrics["overdue_reviews"] == 1
        assert metrics["upcoming_reviews"] == 1

    def test_carer_has_no_dashboard(self, db_session, carer_scope):
        with pytest.raises(HTTPException) as exc:
            dashboard.metrics(db_session, carer_scope)
        assert exc.value.status_code == 403


class TestMutationGuard:
    def test_rejects_duplicate_while_held(self):
        guard = MutationGuard()
        with guard.hold("actor", "clients.create", "home-1"):
            with pytest.raises(HTTPException) as exc:
                with guard.hold("actor", "clients.create", "home-1"):
                    pass
            assert exc.value.status_code == 409
            assert exc.value.detail["code"] == "mutation_in_progress"
        with guard.hold("actor", "clients.create", "home-1"):
            pass

    def test_independent_keys_do_not_block(self):
        guard = MutationGuard()
        with guard.hold("actor", "clients.create", "home-1"):
            with guard.hold("actor", "clients.create", "home-2"):
                pass
            with guard.hold("someone-else", "clients.create", "home-1"):
                pass

    def test_released_after_error(self):
        guard = MutationGuard()
        with pytest.raises(ValueError):
            with guard.hold("actor", "incidents.create"):
                raise ValueError("boom")
        with guard.hold("actor", "incidents.create"):
            pass
