from __future__ import annotations

import enum
import re
from datetime import date, datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# BASE SCHEMAS
# ============================================================================


class Problem(BaseModel):
    """RFC 7807 Problem Details for HTTP APIs."""

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: str | None = None
    errors: dict[str, list[str]] | None = None


Visibility = Literal["Public", "Unlisted", "Private"]
ReactionType = Literal["like", "dislike"]

VIDEO_CATEGORIES = [
    "All",
    "Music",
    "Gaming",
    "Education",
    "Sports",
    "News",
    "Entertainment",
    "Technology",
    "Travel",
    "Comedy",
]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class NotificationType(str, enum.Enum):
    NEW_VIDEO = "NEW_VIDEO"
    MENTION = "MENTION"


class RelatedEntityType(str, enum.Enum):
    """What a notification's ``related_entity_id`` points at."""

    VIDEO = "video"
    COMMENT = "comment"
    USER = "user"


# ============================================================================
# USER SCHEMAS
# ============================================================================


class UserPublic(BaseModel):
    """Public user profile."""

    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    banner_url: str | None = None
    description: str | None = None
    links: list[Any] = Field(default_factory=list)
    is_creator: bool = False
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class UserPrivate(UserPublic):
    """The authenticated user's own view of their account."""

    email: str
    is_admin: bool = False
    gender: str | None = None
    dob: date | None = None
    has_password: bool = False
    github_linked: bool = False


class UserProfile(UserPublic):
    """Channel page: profile, watcher count and public videos."""

    watcher_count: int = 0
    videos: list[VideoSummary] = Field(default_factory=list)


class WatchStatus(BaseModel):
    is_watching: bool


class WatchResult(BaseModel):
    watched_id: int
    is_watching: bool
    watcher_count: int


# ============================================================================
# AUTH SCHEMAS
# ============================================================================


class RegisterRequest(BaseModel):
    """Local account registration."""

    username: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6, max_length=100)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not _EMAIL_RE.match(value):
            raise ValueError("Invalid email address")
        return value


class LoginRequest(BaseModel):
    """User login request - email and password."""

    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=100)


class TokenResponse(BaseModel):
    """Bearer token plus the account it was issued for."""

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserPrivate


class AuthStatus(BaseModel):
    is_authenticated: bool
    user: UserPrivate | None = None


# ============================================================================
# VIDEO SCHEMAS
# ============================================================================


class VideoSummary(BaseModel):
    """Catalog card."""

    id: int
    user_id: int
    title: str
    description: str | None = None
    video_url: str
    thumbnail_url: str | None = None
    duration: int | None = None
    views: int = 0
    visibility: Visibility = "Public"
    category: str = "All"
    created_at: datetime
    username: str | None = None
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


class VideoDetail(VideoSummary):
    """Full video with uploader fields and reaction counts."""

    restrictions: str = "None"
    file_size: int | None = None
    width: int | None = None
    height: int | None = None
    format: str | None = None
    display_name: str | None = None
    likes: int = 0
    dislikes: int = 0


class StudioVideo(VideoSummary):
    engagement: int = 0  # Comment count
    likes: int = 0


class VideoUpdate(BaseModel):
    """Partial update of a video's metadata."""

    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=5000)
    visibility: Visibility | None = None
    restrictions: str | None = Field(None, max_length=50)
    category: str | None = Field(None, max_length=50)


class VideoSuggestion(BaseModel):
    id: int
    title: str

    model_config = ConfigDict(from_attributes=True)


class ViewCount(BaseModel):
    video_id: int
    views: int


class PlaybackUrl(BaseModel):
    video_id: int
    url: str
    views: int


class ReactionCounts(BaseModel):
    """Counts after a toggle, plus the caller's resulting reaction."""

    video_id: int
    likes: int
    dislikes: int
    reaction: ReactionType | None = None


class MyReaction(BaseModel):
    video_id: int
    reaction: ReactionType | None = None


# ============================================================================
# COMMENT SCHEMAS
# ============================================================================


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000)
    parent_id: int | None = None

    @field_validator("text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Comment text must not be blank")
        return value


class CommentUpdate(CommentCreate):
    parent_id: None = None


class CommentOut(BaseModel):
    """Comment denormalized with its author's name and avatar."""

    id: int
    video_id: int
    user_id: int
    parent_id: int | None = None
    text: str
    created_at: datetime
    author: str | None = None
    author_avatar_url: str | None = None


class CommentNode(CommentOut):
    replies: list[CommentNode] = Field(default_factory=list)


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================


class VideoRef(BaseModel):
    kind: Literal["video"] = "video"
    id: int
    title: str
    thumbnail_url: str | None = None


class CommentRef(BaseModel):
    kind: Literal["comment"] = "comment"
    id: int
    video_id: int
    text: str


class UserRef(BaseModel):
    kind: Literal["user"] = "user"
    id: int
    username: str
    avatar_url: str | None = None


RelatedRef = Annotated[Union[VideoRef, CommentRef, UserRef], Field(discriminator="kind")]


class NotificationOut(BaseModel):
    """Notification with its referent resolved (``related`` is None when it is gone)."""

    id: int
    user_id: int
    sender_id: int | None = None
    type: str
    message: str
    is_read: bool
    created_at: datetime
    related_entity_id: int | None = None
    related_entity_type: RelatedEntityType | None = None
    related: RelatedRef | None = None


class UnreadCount(BaseModel):
    unread_count: int


class MarkedRead(BaseModel):
    updated: int


# ============================================================================
# ADMIN SCHEMAS
# ============================================================================


class AdminUser(BaseModel):
    id: int
    username: str
    email: str
    is_admin: bool
    is_creator: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AdminVideo(BaseModel):
    id: int
    user_id: int
    username: str | None = None
    title: str
    views: int
    visibility: str
    created_at: datetime


class AdminComment(BaseModel):
    id: int
    user_id: int
    username: str | None = None
    video_id: int
    text: str
    created_at: datetime


class AuditLogEntry(BaseModel):
    id: int
    actor_id: int | None = None
    action: str
    target_type: str | None = None
    target_id: str | None = None
    note: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DeleteResult(BaseModel):
    deleted: bool = True
    id: int


# ============================================================================
# SYSTEM SCHEMAS
# ============================================================================


class HealthResponse(BaseModel):
    status: str = "ok"
    uptime_s: float


class ConfigResponse(BaseModel):
    """Public limits clients need before uploading."""

    video_upload_size_limit_bytes: int
    image_upload_size_limit_bytes: int
    categories: list[str]
    visibilities: list[str]


UserProfile.model_rebuild()
CommentNode.model_rebuild()
