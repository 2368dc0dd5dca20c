"""Error taxonomy shared by the registry, the conflict engine and the HTTP layer.

Every failure a caller can observe maps to a :class:`ResultCode`. Update-check
failures never surface as exceptions to ``check_all`` callers; they are
recorded as ``CheckFailed`` state instead (see ``origins.base``).
"""

from __future__ import annotations

from enum import StrEnum


class ResultCode(StrEnum):
    """Outcome code reported to callers of the public operations."""

    success = "success"
    not_found = "not_found"
    ambiguous = "ambiguous"
    network_error = "network_error"
    invalid_input = "invalid_input"


class ModManagerError(Exception):
    result_code: ResultCode = ResultCode.invalid_input


class NotFoundError(ModManagerError):
    """Unknown mod or path reference."""

    result_code = ResultCode.not_found


class NoSuchClaimError(NotFoundError):
    def __init__(self, path: str, mod_id: int) -> None:
        self.path = path
        self.mod_id = mod_id
        super().__init__(f"Mod {mod_id} has no claim on '{path}'")


class InvalidInputError(ModManagerError):
    """Malformed manifest, path or override target."""

    result_code = ResultCode.invalid_input


class DuplicateFileClaimError(ModManagerError):
    """Raised by eager validation when a manifest claims paths already owned."""

    result_code = ResultCode.invalid_input

    def __init__(self, clashes: dict[str, list[int]]) -> None:
        self.clashes = clashes
        paths = ", ".join(sorted(clashes)[:5])
        more = f" (+{len(clashes) - 5} more)" if len(clashes) > 5 else ""
        super().__init__(f"Paths already claimed by enabled mods: {paths}{more}")
