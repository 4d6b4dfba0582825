from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    PrimaryKeyConstraint,
    String,
    Text,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy.orm import relationship

from .db import Base


# ============================================================================
# CORE ENTITIES
# ============================================================================


class User(Base):
    """User account with credentials, profile fields and role flags."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=True)  # NULL for GitHub-only accounts
    github_id = Column(String(64), unique=True, nullable=True, index=True)

    # Profile
    avatar_url = Column(String(500), nullable=True)
    banner_url = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    links = Column(JSON, nullable=False, default=list, server_default="[]")
    display_name = Column(String(50), nullable=True)
    gender = Column(String(20), nullable=True)
    dob = Column(Date, nullable=True)

    # Roles
    is_creator = Column(Boolean, nullable=False, default=False, server_default=false())
    is_admin = Column(Boolean, nullable=False, default=False, server_default=false())

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    # Relationships
    videos = relationship(
        "Video", back_populates="owner", passive_deletes=True, order_by="Video.created_at.desc()"
    )
    comments = relationship("Comment", back_populates="author", passive_deletes=True)


class Video(Base):
    """Video whose media asset lives at the external media host."""

    __tablename__ = "videos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Hosted asset
    video_url = Column(String(500), nullable=False)
    thumbnail_url = Column(String(500), nullable=True)
    asset_id = Column(String(255), nullable=True)  # Media host public id

    # Media metadata captured at upload time
    file_size = Column(Integer, nullable=True)
    duration = Column(Integer, nullable=True)  # Seconds, rounded
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    format = Column(String(20), nullable=True)

    # Classification
    visibility = Column(String(50), nullable=False, default="Public", server_default="Public")
    restrictions = Column(String(50), nullable=False, default="None", server_default="None")
    category = Column(String(50), nullable=False, default="All", server_default="All", index=True)

    views = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    # Relationships
    owner = relationship("User", back_populates="videos")
    comments = relationship("Comment", back_populates="video", passive_deletes=True)

    __table_args__ = (Index("ix_videos_user_created", user_id, created_at.desc()),)


# ============================================================================
# SOCIAL FEATURES
# ============================================================================


class VideoReaction(Base):
    """Like or dislike of a video; at most one per (user, video)."""

    __tablename__ = "video_reactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    video_id = Column(
        Integer, ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(20), nullable=False)  # "like" or "dislike"

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    __table_args__ = (
        UniqueConstraint("user_id", "video_id", name="uq_video_reactions_user_video"),
        Index("ix_video_reactions_video_type", video_id, type),
    )


class Comment(Base):
    """Comment on a video; replies point at their immediate parent."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    video_id = Column(
        Integer, ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parent_id = Column(
        Integer, ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True
    )
    text = Column(Text, nullable=False)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    # Relationships
    author = relationship("User", back_populates="comments")
    video = relationship("Video", back_populates="comments")

    __table_args__ = (Index("ix_comments_video_created", video_id, created_at.desc()),)


class Watcher(Base):
    """Directed follow edge: watcher -> watched."""

    __tablename__ = "watchers"

    watcher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    watched_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    __table_args__ = (
        PrimaryKeyConstraint("watcher_id", "watched_id", name="pk_watchers"),
    )


class Notification(Base):
    """Notification for a recipient; the referent is a loose (type, id) pair."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    type = Column(String(50), nullable=False)  # NEW_VIDEO, MENTION, ...
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False, server_default=false())

    # No foreign key: the referenced table depends on related_entity_type
    related_entity_id = Column(Integer, nullable=True)
    related_entity_type = Column(String(50), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )

    __table_args__ = (
        Index("ix_notifications_user_created", user_id, created_at.desc()),
        Index("ix_notifications_user_unread", user_id, is_read),
    )


class AuditLog(Base):
    """Audit log for admin actions."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    action = Column(String(100), nullable=False, index=True)
    target_type = Column(String(20), nullable=True)
    target_id = Column(String(50), nullable=True, index=True)
    note = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
