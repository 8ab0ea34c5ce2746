"""Forum post (thread in a forum channel) resource handlers.

Each handler maps a declarative :class:`ForumPostSpec` onto Discord channel
calls. Every remote call goes through the rate-limit retry helpers; a 404
on read or delete means the post no longer exists.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Literal, Optional, Protocol, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from forumpost.config.loader import ConfigError, read_structured_file
from forumpost.io.models import CHANNEL_FLAG_PINNED, Channel
from forumpost.util.retry import (
    DEFAULT_RETRY_POLICY,
    CancellationToken,
    OperationCancelledError,
    RetryPolicy,
    execute_with_retry,
    execute_with_retry_no_result,
)
from forumpost.util.typing import SupportsRESTError

logger = logging.getLogger(__name__)

REPLACEMENT_FIELDS = ("channel_id", "message")


class ResourceError(RuntimeError):
    """Raised when a forum post operation cannot be completed."""


class ForumPostSpec(BaseModel):
    """Desired state of a forum post."""

    model_config = ConfigDict(extra="forbid")

    channel_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    message: str = Field(min_length=1)
    auto_archive_duration: Literal[60, 1440, 4320, 10080] = 10080
    applied_tags: List[str] = Field(default_factory=list)
    pinned: bool = False


class ForumPostState(ForumPostSpec):
    """Observed state of a forum post, including computed attributes."""

    model_config = ConfigDict(extra="forbid")

    id: str
    thread_id: str
    owner_id: Optional[str] = None


class ChannelAPI(Protocol):
    def forum_thread_start(
        self,
        channel_id: str,
        *,
        name: str,
        message: str,
        auto_archive_duration: int,
        applied_tags: Sequence[str] = (),
    ) -> Channel: ...

    def channel(self, channel_id: str) -> Channel: ...

    def channel_edit(self, channel_id: str, **fields: object) -> Channel: ...

    def channel_delete(self, channel_id: str) -> Optional[Channel]: ...


def load_post_definition(path: Path) -> ForumPostSpec:
    """Load a forum post definition from a YAML/TOML/JSON file."""

    payload = read_structured_file(path)
    try:
        return ForumPostSpec.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid forum post definition in {path}: {exc}") from exc


def is_not_found(error: BaseException) -> bool:
    if not isinstance(error, SupportsRESTError) or error.response is None:
        return False
    return error.response.status_code == 404


class ForumPostResource:
    """Create, read, update and delete forum posts.

    ``cancel_token`` is checked before each attempt and interrupts the waits
    between rate-limited attempts. It does not abort an HTTP request already
    in flight; that request ends on its own or at the client timeout.
    """

    def __init__(
        self,
        client: ChannelAPI,
        *,
        cancel_token: CancellationToken | None = None,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    ) -> None:
        self.client = client
        self.cancel_token = cancel_token or CancellationToken()
        self.policy = policy

    def create(self, spec: ForumPostSpec) -> ForumPostState:
        try:
            thread = execute_with_retry(
                lambda: self.client.forum_thread_start(
                    spec.channel_id,
                    name=spec.name,
                    message=spec.message,
                    auto_archive_duration=spec.auto_archive_duration,
                    applied_tags=spec.applied_tags,
                ),
                cancel_token=self.cancel_token,
                policy=self.policy,
            )
        except OperationCancelledError:
            raise
        except Exception as exc:
            raise ResourceError(f"Failed to create forum post: {exc}") from exc

        logger.info("Created forum post %s in channel %s", thread.id, spec.channel_id)

        if spec.pinned:
            try:
                execute_with_retry_no_result(
                    lambda: self.client.channel_edit(thread.id, flags=CHANNEL_FLAG_PINNED),
                    cancel_token=self.cancel_token,
                    policy=self.policy,
                )
            except OperationCancelledError:
                raise
            except Exception as exc:
                raise ResourceError(f"Failed to pin forum post: {exc}") from exc

        state = self.read(
            thread.id, message=spec.message, auto_archive_duration=spec.auto_archive_duration
        )
        if state is None:
            raise ResourceError(f"Forum post {thread.id} disappeared right after creation")
        return state

    def read(
        self,
        post_id: str,
        *,
        message: str = "",
        auto_archive_duration: int = 10080,
    ) -> ForumPostState | None:
        """Return the current state, or None when the post no longer exists.

        The opening message is not part of the channel object, so the caller
        passes the last known ``message`` through. ``auto_archive_duration``
        is kept when the channel comes back without thread metadata.
        """
        try:
            thread = execute_with_retry(
                lambda: self.client.channel(post_id),
                cancel_token=self.cancel_token,
                policy=self.policy,
            )
        except OperationCancelledError:
            raise
        except Exception as exc:
            if is_not_found(exc):
                logger.warning("Forum post %s not found; treating as removed", post_id)
                return None
            raise ResourceError(f"Failed to fetch forum post {post_id}: {exc}") from exc

        return _state_from_channel(
            thread, message=message, auto_archive_duration=auto_archive_duration
        )

    def update(self, state: ForumPostState, spec: ForumPostSpec) -> ForumPostState:
        for field in REPLACEMENT_FIELDS:
            current = getattr(state, field)
            # empty means unknown, e.g. the message of an imported post
            if current and current != getattr(spec, field):
                raise ResourceError(
                    f"Changing {field} of forum post {state.id} requires replacing it"
                )

        edit: dict[str, object] = {}
        if state.name != spec.name:
            edit["name"] = spec.name
        if state.auto_archive_duration != spec.auto_archive_duration:
            edit["auto_archive_duration"] = spec.auto_archive_duration
        if list(state.applied_tags) != list(spec.applied_tags):
            edit["applied_tags"] = list(spec.applied_tags)
        if state.pinned != spec.pinned:
            edit["flags"] = CHANNEL_FLAG_PINNED if spec.pinned else 0

        if edit:
            try:
                execute_with_retry_no_result(
                    lambda: self.client.channel_edit(state.id, **edit),
                    cancel_token=self.cancel_token,
                    policy=self.policy,
                )
            except OperationCancelledError:
                raise
            except Exception as exc:
                raise ResourceError(f"Failed to update forum post: {exc}") from exc
            logger.info("Updated forum post %s fields=%s", state.id, sorted(edit))

        refreshed = self.read(
            state.id, message=spec.message, auto_archive_duration=spec.auto_archive_duration
        )
        if refreshed is None:
            raise ResourceError(f"Forum post {state.id} no longer exists")
        return refreshed

    def delete(self, post_id: str) -> None:
        try:
            execute_with_retry(
                lambda: self.client.channel_delete(post_id),
                cancel_token=self.cancel_token,
                policy=self.policy,
            )
        except OperationCancelledError:
            raise
        except Exception as exc:
            if is_not_found(exc):
                logger.warning("Forum post %s already deleted", post_id)
                return
            raise ResourceError(f"Failed to delete forum post: {exc}") from exc
        logger.info("Deleted forum post %s", post_id)

    def import_state(self, post_id: str) -> ForumPostState:
        state = self.read(post_id)
        if state is None:
            raise ResourceError(f"Cannot import forum post {post_id}: it does not exist")
        return state


def _state_from_channel(
    thread: Channel, *, message: str, auto_archive_duration: int
) -> ForumPostState:
    auto_archive = auto_archive_duration
    if thread.thread_metadata is not None:
        auto_archive = thread.thread_metadata.auto_archive_duration
    # remote values are trusted as-is; message may be unknown after an import
    return ForumPostState.model_construct(
        id=thread.id,
        thread_id=thread.id,
        owner_id=thread.owner_id,
        channel_id=thread.parent_id or "",
        name=thread.name,
        message=message,
        auto_archive_duration=auto_archive,
        applied_tags=list(thread.applied_tags),
        pinned=thread.pinned,
    )


__all__ = [
    "ChannelAPI",
    "ForumPostResource",
    "ForumPostSpec",
    "ForumPostState",
    "REPLACEMENT_FIELDS",
    "ResourceError",
    "is_not_found",
    "load_post_definition",
]
