"""Command line interface for webrisk-cache."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Callable, Sequence

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .cache import WebRiskCache
from .config import load_config, resolve_log_level
from .errors import InvalidArgumentError, WebRiskCacheError
from .output import configure_logging, format_hex, format_status_icon
from .services.config_service import apply_config_updates, get_config_snapshot
from .text import Messages, Styles
from .threats import ThreatCategory, parse_categories

console = Console()

app = typer.Typer(
    help=Messages.APP_HELP,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"webrisk-cache v{__version__}")
        raise typer.Exit()


def _build_cache() -> WebRiskCache:
    return WebRiskCache(config=load_config())


def _open_cache() -> WebRiskCache:
    try:
        return _build_cache()
    except RuntimeError as exc:
        console.print(_styled(str(exc), Styles.ERROR))
        raise typer.Exit(code=1)


def _validate_category(value: str) -> str:
    try:
        parse_categories(value)
    except InvalidArgumentError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return value


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help=Messages.HELP_LOG_LEVEL,
    ),
) -> None:
    """Global Typer callback for shared options."""
    try:
        level = resolve_log_level(log_level or load_config().log_level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc
    configure_logging(level)


@app.command()
def update(
    category: str = typer.Argument(
        "all", callback=_validate_category, help=Messages.HELP_CATEGORY
    ),
    reset: bool = typer.Option(False, "--reset", help=Messages.HELP_RESET),
) -> None:
    """Pull the latest diff for one category or all of them."""
    _run_synced(category, reset, lambda cache: _noop())


@app.command("reset")
def reset_command(
    category: str = typer.Argument(
        "all", callback=_validate_category, help=Messages.HELP_CATEGORY
    ),
) -> None:
    """Discard local prefixes and download the full list again."""
    _run_synced(category, True, lambda cache: _noop())


@app.command()
def check(
    uri: str = typer.Argument(..., help=Messages.HELP_CHECK_URI),
    is_hash: bool = typer.Option(False, "--hash", help=Messages.HELP_CHECK_HASH),
) -> None:
    """Synchronize every list, then check a URL (or full hash) against it."""

    async def _check(cache: WebRiskCache) -> None:
        threats = await cache.check(uri, is_hash)
        _print_threats(threats)

    _run_synced("all", False, _check, show_summary=False)


@app.command()
def find(
    hash_hex: str = typer.Argument(..., help=Messages.HELP_FIND_HASH),
) -> None:
    """Synchronize every list, then report where a hash prefix resolves locally."""

    async def _find(cache: WebRiskCache) -> None:
        _print_location(cache, hash_hex)

    _run_synced("all", False, _find, show_summary=False)


@app.command()
def shell() -> None:
    """Start an interactive session that keeps the lists synchronized."""
    cache = _open_cache()
    try:
        asyncio.run(_shell_session(cache))
    except KeyboardInterrupt:
        console.print()
    finally:
        cache.close()


@app.command()
def config(
    set_api_key_option: str | None = typer.Option(
        None, "--set-api-key", help=Messages.HELP_SET_API_KEY
    ),
    clear_api_key: bool = typer.Option(
        False, "--clear-api-key", help=Messages.HELP_CLEAR_API_KEY
    ),
    set_log_level_option: str | None = typer.Option(
        None, "--set-log-level", help=Messages.HELP_SET_LOG_LEVEL
    ),
    set_sync_attempts_option: int | None = typer.Option(
        None, "--set-sync-attempts", help=Messages.HELP_SET_SYNC_ATTEMPTS
    ),
    set_sync_delay_option: float | None = typer.Option(
        None, "--set-sync-delay", help=Messages.HELP_SET_SYNC_DELAY
    ),
    set_verify_attempts_option: int | None = typer.Option(
        None, "--set-verify-attempts", help=Messages.HELP_SET_VERIFY_ATTEMPTS
    ),
    set_verify_base_delay_option: float | None = typer.Option(
        None, "--set-verify-base-delay", help=Messages.HELP_SET_VERIFY_BASE_DELAY
    ),
    set_verify_max_delay_option: float | None = typer.Option(
        None, "--set-verify-max-delay", help=Messages.HELP_SET_VERIFY_MAX_DELAY
    ),
    set_max_diff_entries_option: int | None = typer.Option(
        None, "--set-max-diff-entries", help=Messages.HELP_SET_MAX_DIFF_ENTRIES
    ),
    set_max_database_entries_option: int | None = typer.Option(
        None, "--set-max-database-entries", help=Messages.HELP_SET_MAX_DATABASE_ENTRIES
    ),
    show: bool = typer.Option(False, "--show", help=Messages.HELP_SHOW_CONFIG),
) -> None:
    """Manage configuration stored in ~/.webrisk-cache/config.json."""
    if set_api_key_option is not None and clear_api_key:
        raise typer.BadParameter(Messages.ERROR_API_KEY_CONFLICT)
    try:
        updates = apply_config_updates(
            api_key=set_api_key_option,
            clear_api_key=clear_api_key,
            log_level=set_log_level_option,
            sync_attempts=set_sync_attempts_option,
            sync_retry_delay=set_sync_delay_option,
            verify_attempts=set_verify_attempts_option,
            verify_base_delay=set_verify_base_delay_option,
            verify_max_delay=set_verify_max_delay_option,
            max_diff_entries=set_max_diff_entries_option,
            max_database_entries=set_max_database_entries_option,
        )
    except ValueError as exc:
        console.print(_styled(str(exc), Styles.ERROR))
        raise typer.Exit(code=1)

    if updates.api_key_set:
        console.print(_styled(Messages.INFO_API_SAVED, Styles.SUCCESS))
    if updates.api_key_cleared:
        console.print(_styled(Messages.INFO_API_CLEARED, Styles.SUCCESS))
    if updates.log_level_set:
        console.print(
            _styled(
                Messages.INFO_LOG_LEVEL_SET.format(value=set_log_level_option.upper()),
                Styles.SUCCESS,
            )
        )
    if updates.sync_retry_set or updates.verify_retry_set:
        console.print(_styled(Messages.INFO_RETRY_SET, Styles.SUCCESS))
    if updates.constraints_set:
        console.print(_styled(Messages.INFO_CONSTRAINTS_SET, Styles.SUCCESS))

    if show or not updates.changed:
        cfg = get_config_snapshot()
        console.print(
            _styled(
                Messages.INFO_CONFIG_SUMMARY.format(
                    api="yes" if cfg.api_key else "no",
                    log_level=cfg.log_level,
                    sync_attempts=cfg.sync_attempts,
                    sync_delay=cfg.sync_retry_delay,
                    verify_attempts=cfg.verify_attempts,
                    verify_base=cfg.verify_base_delay,
                    verify_max=cfg.verify_max_delay,
                    fallback=cfg.fallback_resync_delay,
                    max_diff=cfg.max_diff_entries or "unlimited",
                    max_database=cfg.max_database_entries or "unlimited",
                ),
                Styles.INFO,
            )
        )


async def _noop() -> None:
    return None


def _run_synced(
    category: str,
    reset: bool,
    action: Callable[[WebRiskCache], Awaitable[None]],
    *,
    show_summary: bool = True,
) -> None:
    cache = _open_cache()

    async def _session() -> None:
        try:
            await cache.request_diff(category, reset)
            await action(cache)
        finally:
            await cache.aclose()

    console.print(_styled(Messages.INFO_SYNC_RUNNING.format(category=category), Styles.INFO))
    try:
        asyncio.run(_session())
    except WebRiskCacheError as exc:
        console.print(_styled(str(exc), Styles.ERROR))
        if show_summary:
            _print_summary(cache)
        raise typer.Exit(code=1)
    if show_summary:
        _print_summary(cache)


async def _shell_session(cache: WebRiskCache) -> None:
    console.print(_styled(Messages.INFO_SHELL_WELCOME, Styles.TITLE))
    try:
        while True:
            try:
                line = await asyncio.to_thread(console.input, Messages.SHELL_PROMPT)
            except EOFError:
                console.print()
                break
            tokens = line.strip().split()
            if not tokens:
                continue
            command, args = tokens[0].lower(), tokens[1:]
            if command in {"quit", "exit"}:
                break
            handler = _SHELL_COMMANDS.get(command)
            if handler is None:
                console.print(_styled(Messages.ERROR_SHELL_COMMAND.format(value=command), Styles.ERROR))
                continue
            try:
                await handler(cache, args)
            except WebRiskCacheError as exc:
                console.print(_styled(str(exc), Styles.ERROR))
    finally:
        await cache.aclose()


async def _shell_update(cache: WebRiskCache, args: Sequence[str], *, reset: bool = False) -> None:
    category = args[0] if args else "all"
    await cache.request_diff(category, reset)
    _print_summary(cache)


async def _shell_reset(cache: WebRiskCache, args: Sequence[str]) -> None:
    await _shell_update(cache, args, reset=True)


async def _shell_check(cache: WebRiskCache, args: Sequence[str]) -> None:
    if not args:
        console.print(_styled(Messages.ERROR_SHELL_CHECK_USAGE, Styles.ERROR))
        return
    is_hash = len(args) > 1 and args[1].lower() == "true"
    _print_threats(await cache.check(args[0], is_hash))


async def _shell_test(cache: WebRiskCache, args: Sequence[str]) -> None:
    if not args:
        console.print(_styled(Messages.ERROR_SHELL_TEST_USAGE, Styles.ERROR))
        return
    _print_location(cache, args[0])


async def _shell_debug(cache: WebRiskCache, args: Sequence[str]) -> None:
    target = args[0].lower() if args else None
    if target is None:
        _print_tokens(cache)
        for category in ThreatCategory:
            _print_database(cache, category)
    elif target == "tokens":
        _print_tokens(cache)
    elif target == "hits":
        _print_hits(cache)
    elif target == "sizes":
        _print_sizes(cache)
    elif target in {category.value for category in ThreatCategory}:
        _print_database(cache, ThreatCategory(target))
    else:
        console.print(_styled(Messages.ERROR_SHELL_COMMAND.format(value=f"debug {target}"), Styles.ERROR))


_SHELL_COMMANDS: dict[str, Callable[[WebRiskCache, Sequence[str]], Awaitable[None]]] = {
    "update": _shell_update,
    "reset": _shell_reset,
    "check": _shell_check,
    "test": _shell_test,
    "debug": _shell_debug,
}


def _print_threats(threats: Sequence[str]) -> None:
    if threats:
        console.print(
            _styled(Messages.INFO_THREATS_FOUND.format(threats=", ".join(threats)), Styles.WARNING)
        )
    else:
        console.print(_styled(Messages.INFO_NO_THREATS, Styles.SUCCESS))


def _print_location(cache: WebRiskCache, value: str) -> None:
    location = cache.find_hash(value)
    if location.location is None:
        console.print(_styled(Messages.INFO_HASH_NOT_FOUND, Styles.INFO))
        return
    console.print(
        _styled(
            Messages.INFO_HASH_FOUND.format(
                location=location.location, length=location.prefix_length
            ),
            Styles.WARNING,
        )
    )


def _print_summary(cache: WebRiskCache) -> None:
    table = Table(title=Messages.TABLE_SYNC_TITLE, show_header=True, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_SYNCED, justify="center")
    table.add_column(Messages.TABLE_HEADER_CATEGORY, no_wrap=True)
    table.add_column(Messages.TABLE_HEADER_ENTRIES, justify="right")
    table.add_column(Messages.TABLE_HEADER_SIZES)
    table.add_column(Messages.TABLE_HEADER_TOKEN, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_NEXT_SYNC, no_wrap=True)
    for category, database in cache.databases.items():
        controller = cache.controllers[category]
        table.add_row(
            format_status_icon(database.version_token is not None, console),
            category.value,
            str(len(database)),
            _format_sizes(database.prefix_sizes),
            format_hex(database.version_token),
            _format_epoch(controller.next_sync_at),
        )
    console.print(table)


def _print_tokens(cache: WebRiskCache) -> None:
    console.print(_styled(Messages.INFO_TOKENS_HEADER, Styles.TITLE))
    for category, token in cache.tokens.items():
        console.print(f"{category.value} {format_hex(token, limit=64)}")


def _print_database(cache: WebRiskCache, category: ThreatCategory) -> None:
    database = cache.databases[category]
    console.print(
        _styled(
            Messages.INFO_DATABASE_HEADER.format(category=category.value.upper(), count=len(database)),
            Styles.TITLE,
        )
    )
    for index, entry in enumerate(database):
        console.print(f"{index} {entry.hex()}")


def _print_hits(cache: WebRiskCache) -> None:
    console.print(_styled(Messages.INFO_HITS_HEADER, Styles.TITLE))
    table = Table(show_header=True, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_KIND, no_wrap=True)
    table.add_column(Messages.TABLE_HEADER_HASH, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_THREATS)
    table.add_column(Messages.TABLE_HEADER_EXPIRES, no_wrap=True)
    for full_hash, hit in cache.hits.positive_entries().items():
        table.add_row(
            "positive",
            full_hash.hex(),
            ", ".join(sorted(category.threat_name for category in hit.categories)),
            _format_epoch(hit.expire_time),
        )
    for prefix, expire_time in cache.hits.negative_entries().items():
        table.add_row("negative", prefix.hex(), "-", _format_epoch(expire_time))
    console.print(table)


def _print_sizes(cache: WebRiskCache) -> None:
    console.print(_styled(Messages.INFO_SIZES_HEADER, Styles.TITLE))
    for category, sizes in cache.prefix_sizes.items():
        console.print(f"{category.value} {_format_sizes(sizes)}")


def _format_sizes(sizes) -> str:
    return ", ".join(str(size) for size in sorted(sizes)) or "-"


def _format_epoch(value: float | None) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _styled(text: str, style: str) -> str:
    return f"[{style}]{text}[/{style}]"


def run(argv: list[str] | None = None) -> None:
    """Entry point wrapper allowing optional argument override."""
    if argv is None:
        app(prog_name="webrisk-cache")
    else:
        app(args=list(argv), prog_name="webrisk-cache")
