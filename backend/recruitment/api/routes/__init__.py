from fastapi import APIRouter

from recruitment.api.routes import events, health, monitor, timelines

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(timelines.router, prefix="/timelines", tags=["timelines"])
api_router.include_router(events.router, prefix="/events", tags=["events"])
api_router.include_router(monitor.router, prefix="/monitor", tags=["monitor"])
