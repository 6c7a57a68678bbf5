from fastapi import APIRouter

from render_proxy.api import health, render, submit

api_router = APIRouter()

api_router.include_router(render.router, tags=["Render"])
api_router.include_router(submit.router, tags=["Submit"])
api_router.include_router(health.router, tags=["Health"])
