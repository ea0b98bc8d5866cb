import logging

from sqlalchemy.orm import Session

from qualis.models.care_home import CareHome, Client
from qualis.models.care_plan import CarePlan
from qualis.services.access import AccessScope
from qualis.services.common import apply_search

logger = logging.getLogger(__name__)

MIN_TERM_LENGTH = 2
PER_TYPE_LIMIT = 6
MAX_RESULTS = 15


class SearchService:
    @staticmethod
    def search(db: Session, scope: AccessScope, q: str | None) -> list[dict]:
        """Quick lookup across clients, care homes and care plans.

        Each entity type is filtered through the actor's scope before the
        results are merged, so hidden rows never surface here either.
        """
        term = (q or "").strip()
        if len(term) < MIN_TERM_LENGTH:
            return []

        results: list[dict] = []
        if scope.can("clients:read"):
            query = scope.apply(db.query(Client), Client.care_home_id)
            query = apply_search(query, term, [Client.first_name, Client.last_name])
            for client in query.order_by(Client.last_name.asc()).limit(PER_TYPE_LIMIT):
                results.append(
                    {
                        "id": client.id,
                        "type": "client",
                        "title": client.full_name,
                        "subtitle": (
                            f"Room {client.room_number}" if client.room_number else None
                        ),
                        "href": f"/clients/{client.id}",
                    }
                )
        if scope.can("care_homes:read"):
            query = scope.apply(db.query(CareHome), CareHome.id)
            query = apply_search(query, term, [CareHome.name])
            for home in query.order_by(CareHome.name.asc()).limit(PER_TYPE_LIMIT):
                results.append(
                    {
                        "id": home.id,
                        "type": "care_home",
                        "title": home.name,
                        "subtitle": home.postcode,
                        "href": f"/care-homes/{home.id}",
                    }
                )
        if scope.can("care_plans:read"):
            query = db.query(CarePlan).join(Client, CarePlan.client_id == Client.id)
            query = scope.apply(query, Client.care_home_id)
            query = apply_search(query, term, [CarePlan.title])
            for plan in query.order_by(CarePlan.created_at.desc()).limit(PER_TYPE_LIMIT):
                results.append(
                    {
                        "id": plan.id,
                        "type": "care_plan",
                        "title": plan.title,
                        "subtitle": plan.client.full_name,
                        "href": f"/care-plans/{plan.id}",
                    }
                )
        logger.debug("Search %r returned %d results", term, len(results))
        return results[:MAX_RESULTS]


search_service = SearchService()
