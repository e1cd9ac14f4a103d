#!/usr/bin/env python3

from __future__ import annotations
import asyncio
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from logstream.client import ReconnectingLogClient
from logstream.config import ClientConfig, load_config
from logstream.errors import ConfigError
from logstream.log import configure_root_logging, get_logger
from logstream.records import format_record

app = typer.Typer(help="Stream JSON log messages from a WebSocket endpoint")
console = Console(highlight=False, emoji=False)
logger = get_logger(__name__)


def _load(config_path: Optional[Path], **overrides: Any) -> ClientConfig:
    try:
        return load_config(config_path, **overrides)
    except ConfigError as e:
        console.print(f"[red]Configuration error[/]: {escape(str(e))}")
        raise typer.Exit(code=2)


@app.command()
def tail(
    url: Optional[str] = typer.Option(None, help="WebSocket URL of the log endpoint"),
    delay: Optional[float] = typer.Option(None, help="Seconds to wait before reconnecting"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
    strict: Optional[bool] = typer.Option(None, "--strict/--lenient", help="Abort on malformed JSON instead of skipping it"),
    insecure: bool = typer.Option(False, "--insecure", help="Do not verify the server TLS certificate"),
    max_attempts: Optional[int] = typer.Option(None, help="Stop after this many connection attempts"),
    max_size: Optional[int] = typer.Option(None, help="Largest accepted message in bytes"),
    pretty: bool = typer.Option(False, "--pretty/--compact", help="Pretty-print each record"),
    log_level: Optional[str] = typer.Option(None, help="DEBUG, INFO, WARNING or ERROR"),
):
    """Print every log record received, reconnecting whenever the connection drops."""
    if log_level:
        try:
            configure_root_logging(log_level)
        except ValueError as e:
            raise typer.BadParameter(str(e), param_hint="--log-level")

    cfg = _load(
        config,
        url=url,
        reconnect_delay=delay,
        strict_json=strict,
        verify_tls=False if insecure else None,
        max_attempts=max_attempts,
        max_size=max_size,
    )

    def show_record(value: Any) -> None:
        if pretty:
            console.print_json(format_record(value))
        else:
            console.print(format_record(value), markup=False, soft_wrap=True)

    def show_notice(text: str) -> None:
        console.print(text, markup=False)

    client = ReconnectingLogClient(cfg, on_record=show_record, on_notice=show_notice)

    async def main_loop() -> None:
        try:
            await client.run()
        finally:
            client.stop()

    try:
        asyncio.run(main_loop())
    except KeyboardInterrupt:
        logger.info("Interrupted after %d attempts", client.attempts)


@app.command("show-config")
def show_config(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
):
    """Print the effective configuration."""
    cfg = _load(config)
    table = Table(title="logstream configuration")
    table.add_column("Option")
    table.add_column("Value")
    for key, value in cfg.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
