from fastapi import APIRouter

from skinmod_manager.routers.conflicts import router as conflicts_router
from skinmod_manager.routers.mods import router as mods_router
from skinmod_manager.routers.status import router as status_router
from skinmod_manager.routers.updates import router as updates_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(mods_router)
api_router.include_router(conflicts_router)
api_router.include_router(updates_router)
api_router.include_router(status_router)
