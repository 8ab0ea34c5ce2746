"""Command-line entry points for managing Discord forum posts."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Optional, TypeVar

import typer

from forumpost.config import ConfigError, ProviderConfig, dump_example_config, load_config
from forumpost.io.client import DiscordClient
from forumpost.resources.forum_post import (
    ForumPostResource,
    ForumPostState,
    ResourceError,
    load_post_definition,
)
from forumpost.util.logging import configure_logging
from forumpost.util.manifest import write_run_record
from forumpost.util.paths import state_root_from_config
from forumpost.util.retry import CancellationToken, OperationCancelledError

T = TypeVar("T")

app = typer.Typer(add_completion=False, help="Discord forum post provider CLI")

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to a YAML/TOML/JSON config file")


def _load(config_path: Optional[Path]) -> tuple[ProviderConfig, logging.Logger]:
    try:
        cfg = load_config(config_path)
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    logger = configure_logging(level=cfg.runtime.log_level, log_path=cfg.runtime.log_path)
    return cfg, logger


def _resource(cfg: ProviderConfig, token: CancellationToken) -> ForumPostResource:
    client = DiscordClient.from_config(cfg)
    return ForumPostResource(client, cancel_token=token, policy=cfg.retry.to_policy())


def _run(step: str, cfg: ProviderConfig, action: Callable[[ForumPostResource], T]) -> T:
    """Run ``action`` against a fresh resource, mapping failures to exit codes."""

    token = CancellationToken()
    try:
        return action(_resource(cfg, token))
    except KeyboardInterrupt as exc:
        token.cancel()
        typer.echo("Cancelled.", err=True)
        raise typer.Exit(code=130) from exc
    except OperationCancelledError as exc:
        typer.echo(f"Cancelled: {exc}", err=True)
        raise typer.Exit(code=130) from exc
    except (ConfigError, ResourceError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        write_run_record(step, {"status": "failed", "error": str(exc)}, root=state_root_from_config(cfg.runtime.state_root))
        raise typer.Exit(code=1) from exc


def _emit(step: str, cfg: ProviderConfig, state: ForumPostState | None, **extra: object) -> None:
    payload = state.model_dump(mode="json") if state is not None else None
    typer.echo(json.dumps(payload, indent=2))
    write_run_record(
        step,
        {"status": "ok", "state": payload, **extra},
        root=state_root_from_config(cfg.runtime.state_root),
    )


@app.command()
def create(
    definition: Path = typer.Argument(..., help="Forum post definition file"),
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Create a forum post from a definition file."""

    cfg, logger = _load(config)
    try:
        spec = load_post_definition(definition)
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    state = _run("create", cfg, lambda resource: resource.create(spec))
    logger.info("Forum post %s ready", state.id)
    _emit("create", cfg, state)


@app.command()
def read(
    post_id: str = typer.Argument(..., help="Thread ID of the forum post"),
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Print the current state of a forum post (null when it is gone)."""

    cfg, _ = _load(config)
    state = _run("read", cfg, lambda resource: resource.read(post_id))
    _emit("read", cfg, state, post_id=post_id)


@app.command()
def update(
    post_id: str = typer.Argument(..., help="Thread ID of the forum post"),
    definition: Path = typer.Argument(..., help="Forum post definition file"),
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Bring an existing forum post in line with a definition file."""

    cfg, _ = _load(config)
    try:
        spec = load_post_definition(definition)
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    def _apply(resource: ForumPostResource) -> ForumPostState:
        current = resource.import_state(post_id)
        return resource.update(current, spec)

    state = _run("update", cfg, _apply)
    _emit("update", cfg, state)


@app.command()
def delete(
    post_id: str = typer.Argument(..., help="Thread ID of the forum post"),
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Delete a forum post; a missing post counts as deleted."""

    cfg, _ = _load(config)
    _run("delete", cfg, lambda resource: resource.delete(post_id))
    typer.echo(f"Deleted {post_id}")
    write_run_record(
        "delete",
        {"status": "ok", "post_id": post_id},
        root=state_root_from_config(cfg.runtime.state_root),
    )


@app.command("import")
def import_post(
    post_id: str = typer.Argument(..., help="Thread ID of the forum post"),
    config: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Import an existing forum post by ID."""

    cfg, _ = _load(config)
    state = _run("import", cfg, lambda resource: resource.import_state(post_id))
    _emit("import", cfg, state)


@app.command()
def dump_config(dest: Path = typer.Argument(..., help="Destination YAML or JSON file")) -> None:
    """Write the default configuration to DEST."""

    try:
        dump_example_config(dest)
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Wrote {dest}")


def main() -> None:
    app()


__all__ = ["main", "app"]
