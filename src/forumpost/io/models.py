"""Pydantic views of the Discord channel objects the provider reads."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

CHANNEL_FLAG_PINNED = 1 << 1


class ThreadMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    archived: bool = False
    auto_archive_duration: int = 10080
    locked: bool = False


class Channel(BaseModel):
    """Subset of the Discord channel object used for forum threads."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    parent_id: Optional[str] = None
    owner_id: Optional[str] = None
    flags: int = 0
    applied_tags: List[str] = Field(default_factory=list)
    thread_metadata: Optional[ThreadMetadata] = None

    @property
    def pinned(self) -> bool:
        return bool(self.flags & CHANNEL_FLAG_PINNED)


__all__ = ["CHANNEL_FLAG_PINNED", "Channel", "ThreadMetadata"]
