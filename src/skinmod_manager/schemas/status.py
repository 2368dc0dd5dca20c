from pydantic import BaseModel

from skinmod_manager.registry.types import UpdateStatus


class ModStatusLine(BaseModel):
    id: int
    name: str
    version: str
    enabled: bool
    priority: int
    claim_count: int
    owned_paths: int
    ambiguous_paths: int
    update_status: UpdateStatus


class RegistryStatus(BaseModel):
    mods_installed: int
    mods_enabled: int
    total_claims: int
    claimed_paths: int
    contested_paths: int
    ambiguous_paths: int
    overrides: int
    update_states: dict[UpdateStatus, int]
    checking: int
    mods: list[ModStatusLine]
