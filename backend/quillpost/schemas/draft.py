"""
Quillpost Backend — Pydantic Domain & API Schemas
==================================================

What:  Pydantic models for the live Document, immutable DraftSnapshots,
       and the request/response contracts of the drafts and convert routes.
How:   FastAPI uses these models to validate request bodies and serialize
       responses; the auto-save controller and the local store use the same
       models so server and local snapshots merge into one VersionList.
Who:   Routes, DraftService, LocalDraftStore, DraftApiClient, AutoSaveController.

Field naming:
    Python attributes are snake_case. JSON payloads accept both snake_case
    and the camelCase aliases (postId, coverImageUrl, createdAt) the editor
    surface sends.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from quillpost.services.format_converter import ContentFormat


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SnapshotOrigin(str, Enum):
    """Where a DraftSnapshot was persisted."""
    SERVER = "server"
    LOCAL = "local"


class CurrentUser(BaseModel):
    """The acting user as reported by the identity provider."""
    id: str = Field(min_length=1, max_length=64)
    name: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# Domain Models
# ══════════════════════════════════════════════════════════════════════════


class Document(BaseModel):
    """
    The live, in-progress editor content for one post (or new-post draft).

    Owned by the editing session; mutated only by user edits or recovery.
    `content` holds an HTML string, a structured tree dict, or Markdown text
    depending on `content_format`.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content: Union[str, Dict[str, Any]] = ""
    content_format: ContentFormat = ContentFormat.HTML
    title: str = ""
    excerpt: str = ""
    cover_image_url: str = ""
    tags: str = ""
    post_id: Optional[str] = None

    def serialized_content(self) -> str:
        """Content as stored in a snapshot (structured trees become JSON text)."""
        if isinstance(self.content, dict):
            return json.dumps(self.content, ensure_ascii=False)
        return self.content

    def restore_content(self, stored: str) -> Union[str, Dict[str, Any]]:
        """Inverse of serialized_content() for this document's format."""
        if self.content_format is ContentFormat.JSON and stored:
            return json.loads(stored)
        return stored


class DraftSnapshot(BaseModel):
    """
    An immutable point-in-time capture of a Document.

    Created on every successful save (server row or local ring-buffer entry);
    never mutated, only superseded or explicitly deleted.
    """
    model_config = ConfigDict(
        frozen=True,
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str
    post_id: Optional[str] = None
    user_id: Optional[str] = None
    content: str = ""
    title: Optional[str] = None
    excerpt: Optional[str] = None
    cover_image_url: Optional[str] = None
    tags: Optional[str] = None
    created_at: datetime
    origin: SnapshotOrigin = SnapshotOrigin.SERVER

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @property
    def preview(self) -> str:
        """First 150 characters of content, for version pickers."""
        if len(self.content) > 150:
            return self.content[:150] + "..."
        return self.content


# ══════════════════════════════════════════════════════════════════════════
# Request / Response Models
# ══════════════════════════════════════════════════════════════════════════


class DraftCreate(Document):
    """Body of POST /api/drafts — the Document being snapshotted."""


class DraftListResponse(BaseModel):
    """Response of GET /api/drafts: newest first."""
    drafts: List[DraftSnapshot] = Field(description="Snapshots, newest first")
    count: int = Field(description="Number of snapshots returned")


class DeleteResponse(BaseModel):
    deleted: bool = Field(description="True when the snapshot was removed")


class ConvertRequest(BaseModel):
    """Body of POST /api/convert."""
    content: Union[str, Dict[str, Any]] = Field(description="Source content")
    from_format: str = Field(description="html, json or markdown")
    to_format: str = Field(description="html, json or markdown")


class ConvertResponse(BaseModel):
    content: Union[str, Dict[str, Any]] = Field(description="Converted content")
    format: ContentFormat = Field(description="Format of the returned content")
    word_count: int = Field(description="Words in the converted content")
    reading_time: int = Field(description="Estimated reading time in minutes")


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "draft with ID 'abc' was not found",
            "details": null,
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
