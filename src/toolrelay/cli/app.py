"""Main CLI application.

Click commands for the toolrelay tool bridge: tools, endpoints, call,
replay, history.
"""

from __future__ import annotations

import asyncio
import json as json_mod
import sys
import uuid
from typing import TYPE_CHECKING, Any

import click

from toolrelay import __version__
from toolrelay.config.loader import load_config
from toolrelay.core.errors import ConfigError, ToolRelayError
from toolrelay.webhooks.models import AUTH_METHODS

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

    from toolrelay.cli.display import ToolDisplay
    from toolrelay.config.schema import ToolRelayConfig
    from toolrelay.storage.history import ToolCallHistory
    from toolrelay.storage.kv import KeyValueStore
    from toolrelay.tools.capabilities import EnvCapabilityProvider
    from toolrelay.tools.registry import ToolRegistry
    from toolrelay.webhooks.invoker import WebhookInvoker
    from toolrelay.webhooks.models import EndpointConfig
    from toolrelay.webhooks.store import KeyValueEndpointStore


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> ToolRelayConfig:
    """Load config and set up logging, with user-friendly error handling."""
    from rich.console import Console

    from toolrelay.core.logs import configure_logging

    try:
        config = load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy
    configure_logging(config.logging, console=Console(stderr=True))
    return config


def _display(*, stderr: bool = False) -> ToolDisplay:
    from rich.console import Console

    from toolrelay.cli.display import ToolDisplay

    return ToolDisplay(Console(stderr=stderr))


async def _open_store(config: ToolRelayConfig) -> tuple[KeyValueStore, AsyncEngine]:
    """Open the SQL-backed key-value store from config."""
    from toolrelay.storage.db import create_db
    from toolrelay.storage.kv import SqlKeyValueStore

    factory, engine = await create_db(config.database.url)
    return SqlKeyValueStore(factory), engine


def _setup_capabilities(config: ToolRelayConfig) -> EnvCapabilityProvider:
    """Capability flags from the environment, plus config overrides."""
    from toolrelay.tools.capabilities import EnvCapabilityProvider

    caps = config.capabilities
    return EnvCapabilityProvider(caps.flags, overrides=caps.overrides)


async def _setup_tools(
    config: ToolRelayConfig,
    kv: KeyValueStore,
    invoker: WebhookInvoker,
) -> ToolRegistry:
    """Register the built-in tools."""
    from toolrelay.storage.clipboard import ClipboardStore
    from toolrelay.tools.clipboard import ClipboardTool
    from toolrelay.tools.color_palette import ColorPaletteTool
    from toolrelay.tools.datetime_tool import DateTimeTool
    from toolrelay.tools.registry import ToolRegistry
    from toolrelay.tools.web_search import WebSearchTool
    from toolrelay.tools.webhook import WebhookCallTool

    registry = ToolRegistry(capabilities=_setup_capabilities(config))
    registry.register(ColorPaletteTool())
    registry.register(WebSearchTool(config.tools.web_search))
    registry.register(DateTimeTool())
    registry.register(
        ClipboardTool(ClipboardStore(kv, key=config.tools.clipboard.storage_key))
    )

    endpoint_store = _endpoint_store(config, kv)
    endpoint_keys = sorted(await endpoint_store.get_all())
    registry.register(WebhookCallTool(endpoint_store, invoker, endpoint_keys))
    return registry


def _setup_invoker(config: ToolRelayConfig) -> WebhookInvoker:
    from toolrelay.webhooks.invoker import WebhookInvoker

    return WebhookInvoker(
        app_origin=config.general.app_origin,
        proxy_path=config.general.proxy_path,
        use_proxy=config.general.use_proxy,
        timeout=config.tools.webhook.timeout,
    )


def _endpoint_store(
    config: ToolRelayConfig, kv: KeyValueStore
) -> KeyValueEndpointStore:
    from toolrelay.webhooks.store import KeyValueEndpointStore

    return KeyValueEndpointStore(kv, key=config.tools.webhook.storage_key)


def _history(config: ToolRelayConfig, kv: KeyValueStore) -> ToolCallHistory:
    from toolrelay.storage.history import ToolCallHistory

    return ToolCallHistory(
        kv,
        key=config.tools.history.storage_key,
        limit=config.tools.history.limit,
    )


# ── CLI group ────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="toolrelay")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """toolrelay - Tool calling bridge for realtime AI conversations.

    Dispatches AI function calls to built-in tools and user-configured
    webhooks.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── tools ────────────────────────────────────────────────────────


@cli.command()
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Print the session.update message instead.",
)
@click.pass_context
def tools(ctx: click.Context, as_json: bool) -> None:
    """List the tools currently offered to the AI."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_tools_async(config, as_json))
    except ToolRelayError as e:
        _error(str(e))


async def _tools_async(config: ToolRelayConfig, as_json: bool) -> None:
    """Async implementation for the tools command."""
    from toolrelay.bridge.events import session_update

    kv, engine = await _open_store(config)
    try:
        async with _setup_invoker(config) as invoker:
            registry = await _setup_tools(config, kv, invoker)
            definitions = registry.list_enabled_definitions()
    finally:
        await engine.dispose()

    if as_json:
        click.echo(json_mod.dumps(session_update(definitions), indent=2))
        return
    _display().show_definitions(definitions)


# ── endpoints ────────────────────────────────────────────────────


@cli.group()
def endpoints() -> None:
    """Manage webhook endpoints."""


@endpoints.command("list")
@click.pass_context
def endpoints_list(ctx: click.Context) -> None:
    """List configured webhook endpoints."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_endpoints_list_async(config))
    except ToolRelayError as e:
        _error(str(e))


async def _endpoints_list_async(config: ToolRelayConfig) -> None:
    kv, engine = await _open_store(config)
    try:
        all_endpoints = await _endpoint_store(config, kv).get_all()
    finally:
        await engine.dispose()
    _display().show_endpoints(all_endpoints)


@endpoints.command("show")
@click.argument("key")
@click.pass_context
def endpoints_show(ctx: click.Context, key: str) -> None:
    """Show one endpoint.

    KEY is resolved the same way the AI's endpoint_key is, so
    ``n8n_search`` finds ``n8n-search``.
    """
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_endpoints_show_async(config, key))
    except ToolRelayError as e:
        _error(str(e))


async def _endpoints_show_async(config: ToolRelayConfig, key: str) -> None:
    from toolrelay.webhooks.resolver import resolve

    kv, engine = await _open_store(config)
    try:
        matched, endpoint = await resolve(key, _endpoint_store(config, kv))
    finally:
        await engine.dispose()
    _display().show_endpoint(matched, endpoint)


@endpoints.command("add")
@click.argument("key")
@click.argument("url")
@click.option(
    "--method",
    type=click.Choice(["ANY", "GET", "POST"], case_sensitive=False),
    default="ANY",
    help="HTTP method the endpoint accepts.",
)
@click.option(
    "--auth",
    "auth_method",
    type=click.Choice(list(AUTH_METHODS)),
    default="none",
    help="Authentication scheme.",
)
@click.option("--api-key-header", default=None, help="Header for apiKey auth.")
@click.option("--api-key", default=None, help="Key for apiKey auth.")
@click.option("--username", default=None, help="User for basicAuth.")
@click.option("--password", default=None, help="Password for basicAuth.")
@click.option("--bearer-token", default=None, help="Token for bearerToken auth.")
@click.option("--header-name", default=None, help="Header for customHeader auth.")
@click.option("--header-value", default=None, help="Value for customHeader auth.")
@click.option(
    "--description",
    default=None,
    help="What the endpoint does and what payload it expects.",
)
@click.pass_context
def endpoints_add(
    ctx: click.Context,
    key: str,
    url: str,
    method: str,
    auth_method: str,
    api_key_header: str | None,
    api_key: str | None,
    username: str | None,
    password: str | None,
    bearer_token: str | None,
    header_name: str | None,
    header_value: str | None,
    description: str | None,
) -> None:
    """Add or replace a webhook endpoint.

    KEY is normalised (trimmed, spaces to dashes, lowercased) before it
    is stored.
    """
    from toolrelay.webhooks.models import EndpointConfig

    config = _load_config(ctx.obj["config_path"])
    endpoint = EndpointConfig(
        url=url,
        method=method.upper(),
        auth_method=auth_method,
        api_key_header_name=api_key_header,
        api_key=api_key,
        username=username,
        password=password,
        bearer_token=bearer_token,
        custom_header_name=header_name,
        custom_header_value=header_value,
        description=description,
    )
    try:
        stored = asyncio.run(_endpoints_add_async(config, key, endpoint))
    except ToolRelayError as e:
        _error(str(e))
        return
    click.echo(f"Saved endpoint '{stored}'.")


async def _endpoints_add_async(
    config: ToolRelayConfig, key: str, endpoint: EndpointConfig
) -> str:
    kv, engine = await _open_store(config)
    try:
        return await _endpoint_store(config, kv).save(key, endpoint)
    finally:
        await engine.dispose()


@endpoints.command("remove")
@click.argument("key")
@click.pass_context
def endpoints_remove(ctx: click.Context, key: str) -> None:
    """Remove a webhook endpoint."""
    config = _load_config(ctx.obj["config_path"])
    try:
        removed = asyncio.run(_endpoints_remove_async(config, key))
    except ToolRelayError as e:
        _error(str(e))
        return
    if not removed:
        _error(f"Endpoint '{key}' not found.")
    click.echo(f"Removed endpoint '{key}'.")


async def _endpoints_remove_async(config: ToolRelayConfig, key: str) -> bool:
    kv, engine = await _open_store(config)
    try:
        return await _endpoint_store(config, kv).remove(key)
    finally:
        await engine.dispose()


# ── call ─────────────────────────────────────────────────────────


@cli.command()
@click.argument("tool_name")
@click.argument("arguments", required=False, default="")
@click.option("--call-id", default=None, help="Function call id (random if unset).")
@click.pass_context
def call(
    ctx: click.Context,
    tool_name: str,
    arguments: str,
    call_id: str | None,
) -> None:
    """Dispatch one function call to TOOL_NAME.

    ARGUMENTS is the JSON object the AI would send. The rendered outcome
    is followed by the two outbound messages, one JSON object per line.
    """
    config = _load_config(ctx.obj["config_path"])
    call_id = call_id or f"call_{uuid.uuid4().hex[:12]}"
    try:
        asyncio.run(_call_async(config, tool_name, arguments, call_id))
    except ToolRelayError as e:
        _error(str(e))


async def _call_async(
    config: ToolRelayConfig,
    tool_name: str,
    arguments: str,
    call_id: str,
) -> None:
    """Async implementation for the call command."""
    from toolrelay.bridge.dispatch import DispatchEngine
    from toolrelay.bridge.transport import RecordingTransport
    from toolrelay.core.errors import UnknownToolError
    from toolrelay.tools.base import ToolCall

    display = _display()
    transport = RecordingTransport()
    kv, engine = await _open_store(config)
    try:
        async with _setup_invoker(config) as invoker:
            registry = await _setup_tools(config, kv, invoker)
            if tool_name not in registry:
                raise UnknownToolError(tool_name)
            dispatcher = DispatchEngine(
                registry,
                transport,
                history=_history(config, kv),
                on_outcome=display.show_outcome,
                reply_to_unknown_tools=config.dispatch.reply_to_unknown_tools,
            )
            try:
                await dispatcher.dispatch(
                    ToolCall(call_id=call_id, name=tool_name, arguments=arguments)
                )
            finally:
                dispatcher.close()
    finally:
        await engine.dispose()

    for event in transport.events:
        click.echo(json_mod.dumps(event))


# ── replay ───────────────────────────────────────────────────────


@cli.command()
@click.argument("events_file", type=click.File("r"))
@click.pass_context
def replay(ctx: click.Context, events_file: Any) -> None:
    """Feed recorded realtime events through the dispatcher.

    EVENTS_FILE holds one inbound server event per line ("-" for stdin).
    Outbound messages are written to stdout as JSON lines; rendered
    outcomes go to stderr.
    """
    config = _load_config(ctx.obj["config_path"])
    events: list[dict[str, Any]] = []
    for lineno, line in enumerate(events_file, start=1):
        if not line.strip():
            continue
        try:
            event = json_mod.loads(line)
        except json_mod.JSONDecodeError as e:
            _error(f"Invalid event on line {lineno}: {e}")
            return
        if not isinstance(event, dict):
            _error(f"Invalid event on line {lineno}: expected a JSON object")
            return
        events.append(event)

    try:
        asyncio.run(_replay_async(config, events))
    except ToolRelayError as e:
        _error(str(e))


async def _iter_events(events: list[dict[str, Any]]) -> AsyncIterator[dict[str, Any]]:
    for event in events:
        yield event


async def _replay_async(config: ToolRelayConfig, events: list[dict[str, Any]]) -> None:
    """Async implementation for the replay command."""
    from toolrelay.bridge.dispatch import DispatchEngine
    from toolrelay.bridge.transport import JsonLinesTransport

    display = _display(stderr=True)
    transport = JsonLinesTransport(click.get_text_stream("stdout"))
    kv, engine = await _open_store(config)
    try:
        async with _setup_invoker(config) as invoker:
            registry = await _setup_tools(config, kv, invoker)
            dispatcher = DispatchEngine(
                registry,
                transport,
                history=_history(config, kv),
                on_outcome=display.show_outcome,
                reply_to_unknown_tools=config.dispatch.reply_to_unknown_tools,
            )
            try:
                await dispatcher.run(_iter_events(events))
            finally:
                dispatcher.close()
    finally:
        await engine.dispose()


# ── history ──────────────────────────────────────────────────────


@cli.command()
@click.option("--limit", type=int, default=20, help="Max entries.")
@click.option("--clear", is_flag=True, default=False, help="Delete all entries.")
@click.pass_context
def history(ctx: click.Context, limit: int, clear: bool) -> None:
    """Show recent tool calls, newest first."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_history_async(config, limit, clear))
    except ToolRelayError as e:
        _error(str(e))


async def _history_async(config: ToolRelayConfig, limit: int, clear: bool) -> None:
    """Async implementation for the history command."""
    kv, engine = await _open_store(config)
    try:
        sink = _history(config, kv)
        if clear:
            await sink.clear()
            records: list[dict[str, Any]] = []
        else:
            records = await sink.list(limit=limit)
    finally:
        await engine.dispose()

    if clear:
        click.echo("History cleared.")
        return
    _display().show_history(records)
