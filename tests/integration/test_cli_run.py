from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace

import pytest
from typer.testing import CliRunner

from forumpost import cli
from forumpost.config import load_config
from tests.helpers import THREAD_ID, FakeChannelClient, make_channel, rate_limited, reset_logger

POST_YAML = "channel_id: '111'\nname: Release notes\nmessage: v1 is out\npinned: true\n"


@pytest.fixture(autouse=True)
def _clean_logger():
    reset_logger()
    yield
    reset_logger()


@pytest.fixture
def provider(monkeypatch, tmp_path: Path) -> SimpleNamespace:
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    state_root = tmp_path / "state"
    cfg = load_config(
        overrides={
            "api.token": "test-token",
            "runtime.state_root": str(state_root),
            "runtime.log_level": "ERROR",
            "retry.max_retries": 2,
            "retry.default_retry_after_seconds": 0.01,
            "retry.retry_after_buffer_seconds": 0,
        }
    )
    client = FakeChannelClient()
    monkeypatch.setattr(cli, "load_config", lambda path=None: cfg)
    monkeypatch.setattr(cli, "DiscordClient", SimpleNamespace(from_config=lambda config: client))
    return SimpleNamespace(client=client, state_root=state_root, tmp_path=tmp_path)


def _records(state_root: Path, step: str) -> list[dict[str, object]]:
    return [json.loads(path.read_text(encoding="utf-8")) for path in sorted((state_root / "runs").glob(f"{step}_*.json"))]


def test_cli_create_prints_state_and_records_run(provider) -> None:
    definition = provider.tmp_path / "post.yaml"
    definition.write_text(POST_YAML, encoding="utf-8")

    result = CliRunner().invoke(cli.app, ["create", str(definition)])

    assert result.exit_code == 0, result.output
    state = json.loads(result.stdout)
    assert state["id"] == THREAD_ID
    assert state["pinned"] is True
    assert state["message"] == "v1 is out"

    records = _records(provider.state_root, "create")
    assert len(records) == 1
    assert records[0]["status"] == "ok"
    assert records[0]["state"]["thread_id"] == THREAD_ID


def test_cli_create_reports_exhausted_rate_limits(provider) -> None:
    provider.client.failures["forum_thread_start"] = [rate_limited(), rate_limited()]
    definition = provider.tmp_path / "post.yaml"
    definition.write_text(POST_YAML, encoding="utf-8")

    result = CliRunner().invoke(cli.app, ["create", str(definition)])

    assert result.exit_code == 1
    assert "Failed to create forum post" in result.output
    assert "max retries (2) exceeded" in result.output
    assert len(provider.client.calls_to("forum_thread_start")) == 2
    assert _records(provider.state_root, "create")[0]["status"] == "failed"


def test_cli_create_rejects_invalid_definition(provider) -> None:
    definition = provider.tmp_path / "post.yaml"
    definition.write_text("channel_id: '111'\nname: x\nmessage: y\nauto_archive_duration: 5\n", encoding="utf-8")

    result = CliRunner().invoke(cli.app, ["create", str(definition)])

    assert result.exit_code == 1
    assert provider.client.calls == []


def test_cli_read_missing_post_prints_null(provider) -> None:
    result = CliRunner().invoke(cli.app, ["read", "999"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) is None


def test_cli_update_applies_changes(provider) -> None:
    provider.client.channels[THREAD_ID] = make_channel()
    definition = provider.tmp_path / "post.yaml"
    definition.write_text(POST_YAML.replace("Release notes", "Release notes v2"), encoding="utf-8")

    result = CliRunner().invoke(cli.app, ["update", THREAD_ID, str(definition)])

    assert result.exit_code == 0, result.output
    state = json.loads(result.stdout)
    assert state["name"] == "Release notes v2"
    assert state["pinned"] is True
    assert provider.client.calls_to("channel_edit") == [
        ((THREAD_ID,), {"name": "Release notes v2", "flags": 2})
    ]


def test_cli_delete_missing_post_succeeds(provider) -> None:
    result = CliRunner().invoke(cli.app, ["delete", "999"])

    assert result.exit_code == 0, result.output
    assert "Deleted 999" in result.stdout
    assert _records(provider.state_root, "delete")[0]["post_id"] == "999"


def test_cli_import_existing_post(provider) -> None:
    provider.client.channels[THREAD_ID] = make_channel(applied_tags=["5"])

    result = CliRunner().invoke(cli.app, ["import", THREAD_ID])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["applied_tags"] == ["5"]


def test_cli_import_missing_post_fails(provider) -> None:
    result = CliRunner().invoke(cli.app, ["import", "999"])

    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_cli_missing_token(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    cfg = load_config(overrides={"runtime.state_root": str(tmp_path / "state"), "runtime.log_level": "ERROR"})
    monkeypatch.setattr(cli, "load_config", lambda path=None: cfg)

    result = CliRunner().invoke(cli.app, ["read", THREAD_ID])

    assert result.exit_code == 1
    assert "token" in result.output


def test_cli_dump_config(tmp_path: Path) -> None:
    dest = tmp_path / "forumpost.yaml"

    result = CliRunner().invoke(cli.app, ["dump-config", str(dest)])

    assert result.exit_code == 0, result.output
    assert dest.exists()
