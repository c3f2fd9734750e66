"""Access provisioning engine."""

from .access import AccessEngine, principal_name_for_grant
from .identity import IdentityManager, newest_access_key
from .policy_editor import EditOutcome, PolicyEditor, reread_conflict_check

__all__ = [
    "AccessEngine",
    "principal_name_for_grant",
    "IdentityManager",
    "newest_access_key",
    "EditOutcome",
    "PolicyEditor",
    "reread_conflict_check",
]
