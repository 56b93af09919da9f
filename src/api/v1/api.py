from fastapi import APIRouter

from .ask import router as ask_router
from .health import router as health_router
from .observers import router as observers_router


# All routes are public.
api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(ask_router)
api_router.include_router(observers_router)
