"""
Configurable business policies.

Read through these helpers (not settings directly) so tests can flip a
policy with override_settings.
"""
from typing import List

from django.conf import settings


def unit_delete_blocked_by_notes() -> bool:
    """Whether an existing note on a housing unit blocks its deletion."""
    return getattr(settings, 'UNIT_DELETE_BLOCKED_BY_NOTES', False)


def note_edit_restricted_to_author() -> bool:
    return getattr(settings, 'NOTE_EDIT_RESTRICTED_TO_AUTHOR', True)


def note_elevated_roles() -> List[str]:
    """Roles allowed to edit and read any note regardless of author."""
    return list(getattr(settings, 'NOTE_ELEVATED_ROLES', ['admin']))


def lease_expiry_warning_days() -> int:
    return int(getattr(settings, 'LEASE_EXPIRY_WARNING_DAYS', 30))
