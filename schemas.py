"""
Database Schemas for Civic Connect

Each document model represents a MongoDB collection
(User -> "users", Issue -> "issues"). Request models reject unknown fields;
response models are what the API returns.
"""

import re
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError

Category = Literal[
    'Garbage Collection',
    'Pothole',
    'Water Leakage',
    'Street Light',
    'Road Damage',
    'Drainage Problem',
    'Park Maintenance',
    'Traffic Signal',
    'Noise Complaint',
    'Other',
]
Status = Literal['Pending', 'In Progress', 'Resolved', 'Rejected']
Priority = Literal['Low', 'Medium', 'High', 'Critical']
Gender = Literal['Male', 'Female', 'Other']

MAX_DESCRIPTION_LENGTH = 500
DEFAULT_ASSIGNEE = "Municipal Authority"
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]+$")


def parse_model(model, data: dict):
    """Validate `data` against `model`, raising our ValidationError on failure."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(describe_errors(e.errors()))


def describe_errors(errors) -> str:
    """Turn pydantic error dicts into one readable sentence."""
    parts = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        msg = err.get("msg", "invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        parts.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"


# ---------- Documents ----------

class User(BaseModel):
    email: EmailStr = Field(..., description="Login email, stored lowercased")
    passwordHash: str = Field(..., description="bcrypt hash")
    username: str = Field(..., description="Unique handle")
    fullName: str = ''
    gender: str = Field('', description="Male, Female, Other or blank")
    address: str = ''
    phone: str = ''


class ImageInfo(BaseModel):
    filename: str = Field(..., description="Stored file name")
    originalName: str = Field(..., description="Name the client uploaded")
    path: str = Field(..., description="URL path the image is served from")
    size: int = Field(..., ge=0, description="Size in bytes")


class Issue(BaseModel):
    category: Category
    description: str
    address: str = ''
    latitude: float
    longitude: float
    images: List[ImageInfo] = Field(default_factory=list)
    status: Status = 'Pending'
    priority: Priority = 'Medium'
    upvotes: int = Field(0, ge=0)
    assignedTo: str = DEFAULT_ASSIGNEE


# ---------- Requests ----------

class RegisterRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(..., min_length=6)
    username: Optional[str] = Field(None, min_length=1, max_length=50)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v):
        return v.strip() if isinstance(v, str) else v


class UserInfoUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    fullName: str = Field(..., min_length=1)
    gender: Gender
    address: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        if not PHONE_PATTERN.match(v):
            raise ValueError("Please enter a valid phone number")
        return v


class IssueCreate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    category: Category
    description: str = Field(..., min_length=1, max_length=MAX_DESCRIPTION_LENGTH)
    address: str = ''
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    @field_validator("address", mode="before")
    @classmethod
    def blank_address(cls, v):
        return '' if v is None else v


class IssueFilter(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: Optional[Category] = None
    status: Optional[Status] = None

    def to_query(self) -> dict:
        return {k: v for k, v in self.model_dump().items() if v is not None}


# ---------- Responses ----------

class UserSummary(BaseModel):
    id: str
    email: str
    username: str
    createdAt: datetime


class Profile(UserSummary):
    fullName: str = ''
    gender: str = ''
    address: str = ''
    phone: str = ''
    updatedAt: Optional[datetime] = None


class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserSummary


class IssueOut(BaseModel):
    id: str
    category: str
    description: str
    address: str
    latitude: float
    longitude: float
    images: List[ImageInfo]
    reportedBy: str
    status: str
    priority: str
    upvotes: int
    hasUpvoted: bool = False
    assignedTo: str
    createdAt: datetime
    updatedAt: datetime


class IssuePage(BaseModel):
    issues: List[IssueOut]
    totalPages: int
    currentPage: int
    total: int


class UpvoteResult(BaseModel):
    upvotes: int
    hasUpvoted: bool
