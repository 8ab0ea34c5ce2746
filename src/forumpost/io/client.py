"""Thin Discord REST client for forum threads.

The client maps each endpoint onto one HTTP request and raises
:class:`RESTError` for any non-2xx answer. It never retries; callers wrap
its methods with :func:`forumpost.util.retry.execute_with_retry`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Optional

import requests

from forumpost.config.loader import ConfigError
from forumpost.io.models import Channel

if TYPE_CHECKING:
    from forumpost.config.models import ProviderConfig

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://discord.com/api/v10"


class RESTError(requests.HTTPError):
    """Non-2xx Discord response with its body already read."""

    def __init__(self, message: str, *, response: requests.Response, response_body: bytes | None = None) -> None:
        super().__init__(message, response=response)
        self.response_body = response_body

    @classmethod
    def from_response(cls, response: requests.Response) -> "RESTError":
        body = response.content
        text = body.decode("utf-8", errors="replace") if body else ""
        message = f"HTTP {response.status_code} {response.reason or ''}".rstrip()
        if text:
            message = f"{message}, {text}"
        return cls(message, response=response, response_body=body)

    @property
    def status_code(self) -> int:
        return self.response.status_code


class DiscordClient:
    """Bot-authenticated access to the channel endpoints."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float | None = 30,
        user_agent: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        if not token.strip():
            raise ConfigError("A Discord bot token is required.")
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bot {token.strip()}"})
        if user_agent:
            self.session.headers["User-Agent"] = user_agent

    @classmethod
    def from_config(cls, config: "ProviderConfig", *, session: requests.Session | None = None) -> "DiscordClient":
        return cls(
            config.api.token,
            base_url=config.api.base_url,
            timeout_seconds=config.api.timeout_seconds,
            user_agent=config.api.user_agent,
            session=session,
        )

    def forum_thread_start(
        self,
        channel_id: str,
        *,
        name: str,
        message: str,
        auto_archive_duration: int,
        applied_tags: Sequence[str] = (),
    ) -> Channel:
        """Start a thread in a forum channel with its opening message."""
        payload: dict[str, Any] = {
            "name": name,
            "auto_archive_duration": auto_archive_duration,
            "message": {"content": message},
        }
        if applied_tags:
            payload["applied_tags"] = list(applied_tags)
        return self._channel_request("POST", f"/channels/{channel_id}/threads", json=payload)

    def channel(self, channel_id: str) -> Channel:
        return self._channel_request("GET", f"/channels/{channel_id}")

    def channel_edit(self, channel_id: str, **fields: Any) -> Channel:
        """PATCH only the given fields (name, auto_archive_duration, applied_tags, flags)."""
        return self._channel_request("PATCH", f"/channels/{channel_id}", json=fields)

    def channel_delete(self, channel_id: str) -> Optional[Channel]:
        payload = self._request("DELETE", f"/channels/{channel_id}")
        if payload is None:
            return None
        return Channel.model_validate(payload)

    def _channel_request(self, method: str, path: str, *, json: Mapping[str, Any] | None = None) -> Channel:
        return Channel.model_validate(self._request(method, path, json=json))

    def _request(self, method: str, path: str, *, json: Mapping[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)
        response = self.session.request(method, url, json=json, timeout=self.timeout_seconds)
        if response.status_code >= 400:
            logger.debug("%s %s -> %s", method, url, response.status_code)
            raise RESTError.from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()


__all__ = ["DEFAULT_BASE_URL", "DiscordClient", "RESTError"]
