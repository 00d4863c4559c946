from fastapi import APIRouter

from agent_chat.api.routers.agents import router as agents_router
from agent_chat.api.routers.threads import router as threads_router

api_router = APIRouter()
api_router.include_router(agents_router)
api_router.include_router(threads_router)
