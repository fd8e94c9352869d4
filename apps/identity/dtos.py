"""DTOs for Identity app."""
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID
from typing import Optional, List

from ninja import Schema
from pydantic import Field


@dataclass(frozen=True)
class UserDTO:
    id: UUID
    username: str
    email: str
    first_name: str
    last_name: str
    role: Optional[str]
    is_active: bool
    last_login: Optional[datetime]
    permissions: List[str]


class UserOut(Schema):
    id: UUID
    username: str
    email: str
    first_name: str
    last_name: str
    role: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    permissions: List[str] = []


class UserCreate(Schema):
    username: str = Field(min_length=1, max_length=150)
    email: str
    password: str = Field(min_length=8)
    first_name: str = ""
    last_name: str = ""
    role: str = "viewer"
    phone: Optional[str] = None


class UserUpdate(Schema):
    email: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=8)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None
    is_active: Optional[bool] = None


class RoleOut(Schema):
    id: UUID
    name: str
    description: str
    permissions: List[str]


class ProfileUpdate(Schema):
    """Fields a user may change on their own account."""
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=8)
    current_password: Optional[str] = None
