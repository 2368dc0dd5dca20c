"""Normalisation of engine-relative asset paths.

Manifests come from extractors running on Windows and Linux alike, so the same
asset slot may arrive as ``fighter\\mario\\c00\\body.nutexb`` or
``/fighter/mario/c00/body.nutexb``.  Every path is reduced to one canonical
form before it is stored or compared.
"""

import re

from skinmod_manager.errors import InvalidInputError

_REPEATED_SLASH_RE = re.compile(r"/{2,}")


def normalize_target_path(path: str) -> str:
    """Return the canonical form of an engine-relative asset path.

    Backslashes become ``/``, repeated slashes and ``.`` segments collapse and
    a leading ``/`` is dropped.  Case is preserved.  Raises
    :class:`InvalidInputError` for empty paths and paths escaping the asset
    root via ``..``.
    """
    if not isinstance(path, str):
        raise InvalidInputError(f"Target path must be a string, got {type(path).__name__}")

    unified = _REPEATED_SLASH_RE.sub("/", path.strip().replace("\\", "/"))
    segments = [s for s in unified.split("/") if s not in ("", ".")]
    if not segments:
        raise InvalidInputError(f"Empty target path: {path!r}")
    if ".." in segments:
        raise InvalidInputError(f"Target path escapes the asset root: {path!r}")
    return "/".join(segments)
