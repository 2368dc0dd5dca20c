from fastapi import APIRouter, Depends

from skinmod_manager.routers.deps import get_checker, get_engine
from skinmod_manager.schemas.status import RegistryStatus
from skinmod_manager.services.conflicts.engine import ConflictEngine
from skinmod_manager.services.status_service import build_status
from skinmod_manager.services.update_checker import UpdateChecker

router = APIRouter(prefix="/status", tags=["status"])


@router.get("", response_model=RegistryStatus)
def registry_status(
    engine: ConflictEngine = Depends(get_engine),
    checker: UpdateChecker = Depends(get_checker),
) -> RegistryStatus:
    state = engine.registry.snapshot()
    return build_status(state, engine.resolve(state), checking=checker.in_flight())
