"""Routers aggregating all route modules."""

from fastapi import APIRouter

from medisage.api.routes import chat, completion, files, health

# Probes live at the root, everything else under /api
health_router = APIRouter()
health_router.include_router(health.router)

api_router = APIRouter()
api_router.include_router(completion.router)
api_router.include_router(chat.router)
api_router.include_router(files.router)
