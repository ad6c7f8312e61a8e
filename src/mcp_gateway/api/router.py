"""
Router principal de l'API.
"""
from fastapi import APIRouter

from .routes import health, tools, prompt

# Router principal
api_router = APIRouter()

api_router.include_router(health.router, prefix="", tags=["health"])
api_router.include_router(tools.router, prefix="", tags=["tools"])
api_router.include_router(prompt.router, prefix="", tags=["prompt"])
