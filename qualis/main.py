from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from qualis.api.care_homes import router as care_homes_router
from qualis.api.care_plans import router as care_plans_router
from qualis.api.clients import router as clients_router
from qualis.api.documents import router as documents_router
from qualis.api.handovers import router as handovers_router
from qualis.api.incidents import router as incidents_router
from qualis.api.notifications import router as notifications_router
from qualis.api.profile import router as profile_router
from qualis.api.search import router as search_router
from qualis.api.users import router as users_router
from qualis.config import settings
from qualis.errors import register_error_handlers
from qualis.logging import configure_logging
from qualis.observability import ObservabilityMiddleware

app = FastAPI(title=f"{settings.brand_name} API")

configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(profile_router)
_include_api_router(users_router)
_include_api_router(care_homes_router)
_include_api_router(clients_router)
_include_api_router(care_plans_router)
_include_api_router(incidents_router)
_include_api_router(handovers_router)
_include_api_router(notifications_router)
_include_api_router(documents_router)
_include_api_router(search_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
