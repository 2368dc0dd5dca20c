import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from skinmod_manager.errors import ResultCode
from skinmod_manager.registry.types import CheckFailed, Mod
from skinmod_manager.routers.deps import get_checker, get_mod_or_404
from skinmod_manager.schemas.updates import (
    CancelResult,
    CheckAllResult,
    CheckOneResult,
    UpdateStateOut,
)
from skinmod_manager.services.update_checker import UpdateChecker
from skinmod_manager.services.update_service import (
    check_all_result,
    list_update_status,
    update_state_out,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/updates", tags=["updates"])


@router.get("", response_model=list[UpdateStateOut])
def list_updates(
    with_origin_only: bool = False,
    checker: UpdateChecker = Depends(get_checker),
) -> list[UpdateStateOut]:
    return list_update_status(checker, with_origin_only=with_origin_only)


@router.post("/check", response_model=CheckAllResult)
async def check_all_updates(
    force: bool = False,
    checker: UpdateChecker = Depends(get_checker),
) -> CheckAllResult:
    """Check every due mod; individual failures are reported per mod."""
    report = await checker.check_all(force=force)
    return check_all_result(checker, report)


@router.post("/cancel", response_model=CancelResult)
def cancel_update_checks(checker: UpdateChecker = Depends(get_checker)) -> CancelResult:
    return CancelResult(cancelled=checker.cancel())


@router.post(
    "/{ref}/check",
    response_model=CheckOneResult,
    responses={502: {"model": CheckOneResult}},
)
async def check_one_update(
    force: bool = False,
    mod: Mod = Depends(get_mod_or_404),
    checker: UpdateChecker = Depends(get_checker),
) -> CheckOneResult | JSONResponse:
    state = await checker.check_one(mod.id, force=force)
    current = checker.registry.snapshot().get_mod(mod.id) or mod
    out = update_state_out(current, state, checker)
    if isinstance(state, CheckFailed):
        body = CheckOneResult(result=ResultCode.network_error, update=out)
        return JSONResponse(status_code=502, content=body.model_dump(mode="json"))
    return CheckOneResult(result=ResultCode.success, update=out)
