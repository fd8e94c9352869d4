from typing import List, Optional
from uuid import UUID
from django.http import HttpRequest
from ninja import Router

from apps.identity.decorators import get_actor, has_permission
from apps.identity.permissions import Permissions
from .dtos import NoteIn, NoteOut, NoteStatistics, NoteUpdate
from .models import Note
from . import services

router = Router(tags=["Notes"])


def _serialize_note(note: Note) -> NoteOut:
    return NoteOut(
        id=note.id,
        author_id=note.author_id,
        author_username=note.author.username if note.author_id else None,
        housing_unit_id=note.housing_unit_id,
        occupier_id=note.occupier_id,
        scope=note.scope,
        title=note.title,
        body=note.body,
        category=note.category,
        priority=note.priority,
        is_private=note.is_private,
        attachment_path=note.attachment_path,
        attachment_name=note.attachment_name,
        created_at=note.created_at,
        updated_at=note.updated_at,
    )


@router.get("", response=List[NoteOut], auth=None)
@has_permission(Permissions.NOTES_VIEW)
def list_notes(
    request: HttpRequest,
    search: Optional[str] = None,
    housing_unit: Optional[UUID] = None,
    occupier: Optional[UUID] = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
):
    """
    List notes visible to the current user, newest first.
    Private notes of other users are hidden unless the user holds an elevated role.
    """
    notes = services.list_notes(
        get_actor(request),
        search=search,
        housing_unit_id=housing_unit,
        occupier_id=occupier,
        category=category,
        priority=priority,
    )
    return [_serialize_note(note) for note in notes]


@router.get("/statistics", response=NoteStatistics, auth=None)
@has_permission(Permissions.NOTES_VIEW)
def note_statistics(request: HttpRequest):
    return services.note_statistics(get_actor(request))


@router.get("/{note_id}", response=NoteOut, auth=None)
@has_permission(Permissions.NOTES_VIEW)
def get_note(request: HttpRequest, note_id: UUID):
    return _serialize_note(services.get_note(note_id, get_actor(request)))


@router.post("", response={201: NoteOut}, auth=None)
@has_permission(Permissions.NOTES_CREATE)
def create_note(request: HttpRequest, payload: NoteIn):
    note = services.create_note(payload, actor=get_actor(request))
    return 201, _serialize_note(note)


@router.put("/{note_id}", response=NoteOut, auth=None)
@has_permission(Permissions.NOTES_EDIT)
def update_note(request: HttpRequest, note_id: UUID, payload: NoteUpdate):
    return _serialize_note(services.update_note(note_id, payload, actor=get_actor(request)))


@router.delete("/{note_id}", response={204: None}, auth=None)
@has_permission(Permissions.NOTES_DELETE)
def delete_note(request: HttpRequest, note_id: UUID):
    services.delete_note(note_id, actor=get_actor(request))
    return 204, None
