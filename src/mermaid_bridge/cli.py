"""Typer CLI application: configuration inspection, request validation, stdio server."""

from __future__ import annotations

import importlib
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import orjson
import typer

import mermaid_bridge
from mermaid_bridge.config import (
    CONFIG_FILENAME,
    Config,
    ConfigError,
    load_global_config,
    load_global_config_from_dir,
    read_query_config,
    resolve_config,
)
from mermaid_bridge.engine.dispatcher import (
    error_envelope,
    exit_code_for,
    print_response,
    success_envelope,
)
from mermaid_bridge.io.fileops import read_json_safe
from mermaid_bridge.observe.events import Timer

_MAIN_HELP = """\
Bridge between an embedding page and a draw.io editor: turns `generateMermaid`
messages into diagram cells.

**Every command** returns a JSON envelope:
`{"ok": bool, "command": "...", "result": {...}, "errors": [...], "metrics": {"duration_ms": N}}`

**Configuration** is read from `mermaid-bridge.yaml` (host-global) and `--query`
(request-scoped, e.g. `"parseTimeout=5000&debugMode=true"`), over built-in defaults.

**Exit codes:** 0=success, 10=validation, 50=io, 90=internal
"""

_CONFIG_EPILOG = """\
**Examples:**

`mermaid-bridge config show`: defaults merged with ./mermaid-bridge.yaml

`mermaid-bridge config show --config conf/bridge.yaml --query "allowedOrigins=https://a.example,https://b.example"`
"""

app = typer.Typer(
    name="mermaid-bridge",
    help=_MAIN_HELP,
    no_args_is_help=True,
    rich_markup_mode="markdown",
)

config_app = typer.Typer(
    name="config", help="Inspect the resolved configuration.",
    epilog=_CONFIG_EPILOG,
    no_args_is_help=True, rich_markup_mode="markdown",
)

app.add_typer(config_app)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(mermaid_bridge.__version__)
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool, typer.Option("--version", "-V", help="Print version and exit.", is_eager=True)
    ] = False,
) -> None:
    if version:
        _version_callback(True)


# Type aliases for common options
ConfigPath = Annotated[
    Optional[str],
    typer.Option("--config", "-c", help=f"Path to a YAML config file (default: ./{CONFIG_FILENAME} if present)"),
]
QueryOpt = Annotated[
    Optional[str],
    typer.Option("--query", "-q", help="Request-scoped overrides as a URL query string"),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _emit(envelope, code=None) -> NoReturn:
    print_response(envelope)
    raise typer.Exit(code if code is not None else exit_code_for(envelope))


def _load_config(config_path: str | None, query: str | None) -> Config:
    """Resolve configuration; raises ConfigError or FileNotFoundError."""
    if config_path:
        global_override = load_global_config(config_path)
    else:
        global_override = load_global_config_from_dir(Path.cwd())
    return resolve_config(global_override, read_query_config(query))


def _load_config_or_emit(config_path: str | None, query: str | None, cmd: str) -> Config:
    try:
        return _load_config(config_path, query)
    except FileNotFoundError:
        _emit(error_envelope(cmd, "ERR_CONFIG_NOT_FOUND", f"File not found: {config_path}"))
    except ConfigError as e:
        _emit(error_envelope(cmd, "ERR_CONFIG_INVALID", str(e)))


def _load_request(file: str | None, data: str | None) -> Any:
    if (file is None) == (data is None):
        raise ValueError("Provide exactly one of --file or --data.")
    try:
        return read_json_safe(file) if file is not None else orjson.loads(data)
    except orjson.JSONDecodeError as e:
        raise ValueError(f"Cannot parse request JSON: {e}") from e


def _load_host_factory(spec: str) -> Any:
    """Resolve ``package.module:factory`` and call it to build a host."""
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Host must be given as module:factory, got {spec!r}")
    module = importlib.import_module(module_name)
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ValueError(f"{spec} is not callable")
    return factory()


# ---------------------------------------------------------------------------
# mermaid-bridge version
# ---------------------------------------------------------------------------
@app.command()
def version():
    """Print the mermaid-bridge version.

    Example: `mermaid-bridge version`
    """
    env = success_envelope("version", {"version": mermaid_bridge.__version__})
    _emit(env)


# ---------------------------------------------------------------------------
# mermaid-bridge config show
# ---------------------------------------------------------------------------
@config_app.command("show")
def config_show(
    config_path: ConfigPath = None,
    query: QueryOpt = None,
):
    """Print the configuration after merging defaults, the config file and the query string.

    Example: `mermaid-bridge config show --query "debugMode=true"`
    """
    config = _load_config_or_emit(config_path, query, "config.show")
    _emit(success_envelope("config.show", config.to_public_dict()))


# ---------------------------------------------------------------------------
# mermaid-bridge validate
# ---------------------------------------------------------------------------
@app.command("validate")
def validate_cmd(
    file: Annotated[Optional[str], typer.Option("--file", "-f", help="Path to a request JSON file")] = None,
    data: Annotated[Optional[str], typer.Option("--data", "-d", help="Inline request JSON")] = None,
    origin: Annotated[Optional[str], typer.Option("--origin", "-o", help="Origin the request claims to come from")] = None,
    config_path: ConfigPath = None,
    query: QueryOpt = None,
):
    """Run the inbound-message validator on one request without touching any editor.

    Returns the validation result. Exits with code 10 when the request would be rejected.

    Example: `mermaid-bridge validate -d '{"action":"generateMermaid","mermaid":"graph TD; A-->B"}' -o https://app.example`
    """
    from mermaid_bridge.validation.validators import validate_message

    try:
        message = _load_request(file, data)
    except FileNotFoundError:
        _emit(error_envelope("validate", "ERR_IO_NOT_FOUND", f"File not found: {file}"))
        return
    except ValueError as e:
        _emit(error_envelope("validate", "ERR_USAGE", str(e)))
        return

    config = _load_config_or_emit(config_path, query, "validate")
    with Timer() as t:
        result = validate_message(origin, message, config)

    payload = result.model_dump(mode="json", by_alias=True, exclude_none=True)
    if result.valid:
        _emit(success_envelope("validate", payload, duration_ms=t.elapsed_ms))
    else:
        env = error_envelope(
            "validate",
            result.error_code.value if result.error_code else "INVALID_FORMAT",
            result.error or "Validation failed",
            result=payload,
            duration_ms=t.elapsed_ms,
        )
        _emit(env)


# ---------------------------------------------------------------------------
# mermaid-bridge serve
# ---------------------------------------------------------------------------
@app.command("serve")
def serve_cmd(
    host: Annotated[str, typer.Option("--host", help="Host factory as module:callable, returning an editor host")],
    config_path: ConfigPath = None,
    query: QueryOpt = None,
):
    """Start the stdio message server bound to an editor host.

    Reads one message per line from stdin: `{"origin": "https://app.example", "data": {...}}`.
    Writes each reply as `{"targetOrigin": "...", "message": "<envelope JSON>"}`.
    Logs go to stderr.

    Example: `mermaid-bridge serve --host myapp.bridge:make_host`
    """
    from mermaid_bridge.engine.router import MessageRouter
    from mermaid_bridge.observe.log import StructuredLogger, configure_stderr_logging
    from mermaid_bridge.server.stdio import StdioServer

    config = _load_config_or_emit(config_path, query, "serve")
    try:
        editor_host = _load_host_factory(host)
    except (ImportError, ValueError) as e:
        _emit(error_envelope("serve", "ERR_USAGE", str(e)))
        return

    configure_stderr_logging()
    router = MessageRouter(editor_host, config, StructuredLogger.from_config(config))
    StdioServer(router).run()


# ---------------------------------------------------------------------------
# Entrypoint (for `python -m mermaid_bridge`)
# ---------------------------------------------------------------------------
def run() -> None:
    try:
        app()
    except SystemExit:
        raise
    except Exception as exc:
        # Catch-all: machine consumers get a JSON envelope, not a traceback.
        env = error_envelope("unknown", "ERR_INTERNAL", str(exc))
        print_response(env)
        raise SystemExit(90) from exc


if __name__ == "__main__":
    run()
