"""
Notes on housing units and occupiers.

Visibility: private notes are shown only to their author and to elevated
roles. Editing and deleting follow NOTE_EDIT_RESTRICTED_TO_AUTHOR.
"""
import logging
from datetime import timedelta
from typing import List, Optional
from uuid import UUID

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.core import policies
from apps.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from apps.governance.audit_service import AuditAction, queue_action, snapshot
from apps.identity.permissions import Permissions
from apps.registry.models import HousingUnit
from apps.tenancy.models import Occupier
from .dtos import NoteIn, NoteUpdate
from .models import Note, NotePriority

logger = logging.getLogger(__name__)


def is_elevated(actor) -> bool:
    return actor.is_system or actor.role in policies.note_elevated_roles()


def can_modify(note: Note, actor) -> bool:
    if not policies.note_edit_restricted_to_author():
        return True
    return is_elevated(actor) or note.author_id == actor.user_id


def visible_notes(actor):
    queryset = Note.objects.select_related('author')
    if not is_elevated(actor):
        queryset = queryset.filter(Q(is_private=False) | Q(author_id=actor.user_id))
    return queryset


def list_notes(
    actor,
    search: Optional[str] = None,
    housing_unit_id: Optional[UUID] = None,
    occupier_id: Optional[UUID] = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
) -> List[Note]:
    actor.require(Permissions.NOTES_VIEW)
    queryset = visible_notes(actor)

    if search:
        queryset = queryset.filter(Q(title__icontains=search) | Q(body__icontains=search))
    if housing_unit_id:
        queryset = queryset.filter(housing_unit_id=housing_unit_id)
    if occupier_id:
        queryset = queryset.filter(occupier_id=occupier_id)
    if category:
        queryset = queryset.filter(category=category)
    if priority:
        queryset = queryset.filter(priority=priority)

    return list(queryset)


def get_note(note_id: UUID, actor) -> Note:
    actor.require(Permissions.NOTES_VIEW)
    try:
        note = Note.objects.select_related('author').get(id=note_id)
    except Note.DoesNotExist:
        raise NotFoundError("Note not found")

    if note.is_private and note.author_id != actor.user_id and not is_elevated(actor):
        raise AuthorizationError("You do not have permission to view this private note")
    return note


def _check_references(housing_unit_id: Optional[UUID], occupier_id: Optional[UUID]) -> None:
    errors = {}
    if housing_unit_id and not HousingUnit.objects.live().filter(id=housing_unit_id).exists():
        errors['housing_unit_id'] = ["Housing unit not found"]
    if occupier_id and not Occupier.objects.live().filter(id=occupier_id).exists():
        errors['occupier_id'] = ["Occupier not found"]
    if errors:
        raise ValidationError("Referenced record does not exist", errors=errors)


def create_note(payload: NoteIn, *, actor) -> Note:
    actor.require(Permissions.NOTES_CREATE)
    data = payload.dict()
    _check_references(data.get('housing_unit_id'), data.get('occupier_id'))

    with transaction.atomic():
        note = Note.objects.create(author_id=actor.user_id, **data)
        queue_action(
            actor=actor,
            action=AuditAction.CREATE,
            subject_type="Note",
            subject_id=note.id,
            description=f"Created note: {note.title}",
            after=snapshot(note),
        )

    logger.info(f"Note {note.id} created by {actor.username}")
    return note


def _lock_for_change(note_id: UUID, actor, verb: str) -> Note:
    try:
        note = Note.objects.select_for_update().get(id=note_id)
    except Note.DoesNotExist:
        raise NotFoundError("Note not found")
    if not can_modify(note, actor):
        raise AuthorizationError(f"You do not have permission to {verb} this note")
    return note


def update_note(note_id: UUID, payload: NoteUpdate, *, actor) -> Note:
    actor.require(Permissions.NOTES_EDIT)
    data = payload.dict(exclude_unset=True)

    with transaction.atomic():
        note = _lock_for_change(note_id, actor, "edit")
        _check_references(data.get('housing_unit_id'), data.get('occupier_id'))

        before = snapshot(note)
        for attr, value in data.items():
            # Unit and occupier may be cleared with an explicit null
            if value is None and attr not in ('housing_unit_id', 'occupier_id'):
                continue
            setattr(note, attr, value)
        note.save()

        queue_action(
            actor=actor,
            action=AuditAction.UPDATE,
            subject_type="Note",
            subject_id=note.id,
            description=f"Updated note: {note.title}",
            before=before,
            after=snapshot(note),
        )
    return note


def delete_note(note_id: UUID, *, actor) -> None:
    actor.require(Permissions.NOTES_DELETE)

    with transaction.atomic():
        note = _lock_for_change(note_id, actor, "delete")
        before = snapshot(note)
        note.delete()
        queue_action(
            actor=actor,
            action=AuditAction.DELETE,
            subject_type="Note",
            subject_id=note_id,
            description=f"Deleted note: {before['title']}",
            before=before,
        )


def note_statistics(actor) -> dict:
    notes = visible_notes(actor)
    return {
        "total": notes.count(),
        "recent": notes.filter(created_at__gte=timezone.now() - timedelta(days=30)).count(),
        "high_priority": notes.filter(priority__in=[NotePriority.HIGH, NotePriority.URGENT]).count(),
        "my_notes": notes.filter(author_id=actor.user_id).count(),
    }
