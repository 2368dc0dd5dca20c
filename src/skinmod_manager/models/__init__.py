from skinmod_manager.models.meta import RegistryMeta
from skinmod_manager.models.mod import FileClaimRecord, ModRecord
from skinmod_manager.models.override import ManualOverrideRecord
from skinmod_manager.models.update import UpdateStateRecord

__all__ = [
    "FileClaimRecord",
    "ManualOverrideRecord",
    "ModRecord",
    "RegistryMeta",
    "UpdateStateRecord",
]
