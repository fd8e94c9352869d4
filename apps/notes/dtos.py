from datetime import datetime
from typing import Optional
from uuid import UUID

from ninja import Schema
from pydantic import Field

from .models import NoteCategory, NotePriority


class NoteOut(Schema):
    id: UUID
    author_id: Optional[UUID] = None
    author_username: Optional[str] = None
    housing_unit_id: Optional[UUID] = None
    occupier_id: Optional[UUID] = None
    scope: str
    title: str
    body: str
    category: str
    priority: str
    is_private: bool
    attachment_path: str
    attachment_name: str
    created_at: datetime
    updated_at: datetime


class NoteIn(Schema):
    title: str = Field(min_length=1, max_length=255)
    body: str = Field(min_length=1)
    category: NoteCategory = NoteCategory.GENERAL
    priority: NotePriority = NotePriority.MEDIUM
    housing_unit_id: Optional[UUID] = None
    occupier_id: Optional[UUID] = None
    is_private: bool = False
    attachment_path: str = Field(default="", max_length=500)
    attachment_name: str = Field(default="", max_length=255)


class NoteUpdate(Schema):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    body: Optional[str] = Field(default=None, min_length=1)
    category: Optional[NoteCategory] = None
    priority: Optional[NotePriority] = None
    housing_unit_id: Optional[UUID] = None
    occupier_id: Optional[UUID] = None
    is_private: Optional[bool] = None
    attachment_path: Optional[str] = Field(default=None, max_length=500)
    attachment_name: Optional[str] = Field(default=None, max_length=255)


class NoteStatistics(Schema):
    total: int
    recent: int
    high_priority: int
    my_notes: int
