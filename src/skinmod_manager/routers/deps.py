from fastapi import Depends, Request

from skinmod_manager.registry.registry import ModRegistry
from skinmod_manager.registry.types import Mod
from skinmod_manager.services.conflicts.engine import ConflictEngine
from skinmod_manager.services.update_checker import UpdateChecker


def get_registry(request: Request) -> ModRegistry:
    return request.app.state.registry


def get_engine(request: Request) -> ConflictEngine:
    return request.app.state.engine


def get_checker(request: Request) -> UpdateChecker:
    return request.app.state.checker


def get_mod_or_404(ref: str, registry: ModRegistry = Depends(get_registry)) -> Mod:
    """Resolve ``{ref}`` (id or exact name); NotFoundError maps to 404."""
    return registry.find_mod(ref)
