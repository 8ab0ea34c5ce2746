from __future__ import annotations

import io
import json
import logging
from typing import Any, Mapping, Optional, Sequence

import requests
from requests.structures import CaseInsensitiveDict

from forumpost.io.client import RESTError
from forumpost.io.models import Channel, ThreadMetadata
from forumpost.util.logging import LOGGER_NAME
from forumpost.util.retry import CancellationToken

FORUM_CHANNEL_ID = "111"
THREAD_ID = "222"
OWNER_ID = "333"


def make_response(
    status_code: int,
    *,
    headers: Mapping[str, str] | None = None,
    body: bytes | str | Mapping[str, Any] | None = None,
    reason: str = "",
) -> requests.Response:
    """Build a real ``requests.Response`` whose body is an unread stream."""

    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response.headers = CaseInsensitiveDict(headers or {})
    if isinstance(body, Mapping):
        body = json.dumps(body)
    if isinstance(body, str):
        body = body.encode("utf-8")
    response.raw = io.BytesIO(body or b"")
    return response


def make_rest_error(
    status_code: int,
    *,
    headers: Mapping[str, str] | None = None,
    body: bytes | str | Mapping[str, Any] | None = None,
) -> RESTError:
    """Build a RESTError the way the client does, with the body pre-read."""

    return RESTError.from_response(make_response(status_code, headers=headers, body=body))


def rate_limited(retry_after: float | None = None) -> RESTError:
    body = None
    if retry_after is not None:
        body = {"message": "You are being rate limited.", "retry_after": retry_after, "global": False}
    return make_rest_error(429, body=body)


class RecordingToken(CancellationToken):
    """Token whose waits return immediately and are recorded in seconds."""

    def __init__(self, *, cancel_on_wait: int | None = None) -> None:
        super().__init__()
        self.waits: list[float] = []
        self._cancel_on_wait = cancel_on_wait

    def wait(self, seconds: float) -> bool:
        self.waits.append(seconds)
        if self._cancel_on_wait is not None and len(self.waits) >= self._cancel_on_wait:
            self.cancel()
        return self.cancelled


def make_channel(
    *,
    channel_id: str = THREAD_ID,
    name: str = "Release notes",
    parent_id: str = FORUM_CHANNEL_ID,
    flags: int = 0,
    applied_tags: Sequence[str] = (),
    auto_archive_duration: int = 10080,
) -> Channel:
    return Channel(
        id=channel_id,
        name=name,
        parent_id=parent_id,
        owner_id=OWNER_ID,
        flags=flags,
        applied_tags=list(applied_tags),
        thread_metadata=ThreadMetadata(auto_archive_duration=auto_archive_duration),
    )


class FakeChannelClient:
    """In-memory stand-in for DiscordClient.

    ``failures`` maps a method name to a list of exceptions raised, in order,
    before that method starts succeeding.
    """

    def __init__(self, failures: Optional[dict[str, list[Exception]]] = None) -> None:
        self.failures = failures or {}
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.channels: dict[str, Channel] = {}

    def _record(self, method: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((method, args, kwargs))
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)

    def calls_to(self, method: str) -> list[tuple[tuple[Any, ...], dict[str, Any]]]:
        return [(args, kwargs) for name, args, kwargs in self.calls if name == method]

    def forum_thread_start(
        self,
        channel_id: str,
        *,
        name: str,
        message: str,
        auto_archive_duration: int,
        applied_tags: Sequence[str] = (),
    ) -> Channel:
        self._record(
            "forum_thread_start",
            channel_id,
            name=name,
            message=message,
            auto_archive_duration=auto_archive_duration,
            applied_tags=list(applied_tags),
        )
        channel = make_channel(
            name=name,
            parent_id=channel_id,
            applied_tags=applied_tags,
            auto_archive_duration=auto_archive_duration,
        )
        self.channels[channel.id] = channel
        return channel

    def channel(self, channel_id: str) -> Channel:
        self._record("channel", channel_id)
        if channel_id not in self.channels:
            raise make_rest_error(404, body={"message": "Unknown Channel", "code": 10003})
        return self.channels[channel_id]

    def channel_edit(self, channel_id: str, **fields: Any) -> Channel:
        self._record("channel_edit", channel_id, **fields)
        if channel_id not in self.channels:
            raise make_rest_error(404, body={"message": "Unknown Channel", "code": 10003})
        changes = dict(fields)
        archive = changes.pop("auto_archive_duration", None)
        if archive is not None:
            changes["thread_metadata"] = ThreadMetadata(auto_archive_duration=archive)
        updated = self.channels[channel_id].model_copy(update=changes)
        self.channels[channel_id] = updated
        return updated

    def channel_delete(self, channel_id: str) -> Optional[Channel]:
        self._record("channel_delete", channel_id)
        if channel_id not in self.channels:
            raise make_rest_error(404, body={"message": "Unknown Channel", "code": 10003})
        return self.channels.pop(channel_id)


def reset_logger() -> None:
    """Drop handlers configure_logging attached to the forumpost logger."""

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
