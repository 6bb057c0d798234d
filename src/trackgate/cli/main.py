"""CLI entry point — the `tg` command."""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any

import click
import httpx
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from trackgate.core.base import Action, BrowsingContext, EditAction, RequestKind, Verdict
from trackgate.core.config import Settings, get_settings
from trackgate.core.cookies import SqliteCookieStripper
from trackgate.core.intercept import InterceptionAdapter, NullStripper
from trackgate.core.ledger import SettingsLedger
from trackgate.core.logs import configure_logging
from trackgate.core.policy import PolicyEngine
from trackgate.core.preloads import dump_preloads, fetch_preloads, load_bundled_preloads
from trackgate.core.rules import RuleList, RuleLists
from trackgate.core.store import SqliteRuleStore, StoreError
from trackgate.core.summary import summarize_table, summary_message

console = Console()

VERDICT_STYLES = {
    Verdict.ALLOW: "green",
    Verdict.BLOCK: "red",
    Verdict.COOKIEBLOCK: "yellow",
}

ACTION_STYLES = {
    Action.BLOCK: "red",
    Action.COOKIEBLOCK: "yellow",
    Action.NOACTION: "green",
}


def _run_async(coro: Any) -> Any:
    """Run an async coroutine from sync Click commands."""
    return asyncio.run(coro)


def _open_rules(settings: Settings) -> RuleLists:
    """Load persisted rule lists plus bundled and downloaded preloads."""
    preloads = load_bundled_preloads()
    if settings.preloads_path.exists():
        preloads |= load_bundled_preloads(settings.preloads_path)
    store = SqliteRuleStore(settings.db_path)
    try:
        return RuleLists.load(store, preloads)
    except StoreError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


def _build_engine(settings: Settings, rules: RuleLists, clobber: bool = False) -> PolicyEngine:
    """Cookies are only deleted from the browser when *clobber* is set."""
    if clobber and settings.cookie_db:
        stripper = SqliteCookieStripper(settings.cookie_db)
    else:
        stripper = NullStripper()
    return PolicyEngine(
        rules,
        stripper=stripper,
        extra_whitelisted_schemes=frozenset(settings.extra_whitelisted_schemes),
    )


def _commit(rules: RuleLists, edits: dict[str, EditAction]) -> None:
    ledger = SettingsLedger(rules)
    for origin, action in edits.items():
        ledger.stage_edit(origin, action)
    try:
        applied = ledger.commit()
    except StoreError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    for origin, action in applied:
        console.print(f"[green]{origin}: {action.value}[/green]")


def _render_summary(ledger: SettingsLedger, context: BrowsingContext) -> None:
    table = ledger.read(context)
    message = summary_message(table)
    if message is not None:
        console.print(f"[dim]{message}[/dim]")
        return

    view = Table(title=f"Trackers on {context.url}")
    view.add_column("Origin", style="bold")
    view.add_column("Action")
    view.add_column("Set by", justify="center")
    view.add_column("Status")
    for row in summarize_table(table):
        style = ACTION_STYLES.get(row.action, "")
        view.add_row(
            row.origin,
            f"[{style}]{row.action.value}[/{style}]",
            "user" if row.user_set else "[dim]heuristic[/dim]",
            row.status_title,
        )
    console.print(view)


@click.group()
@click.version_option(package_name="trackgate")
@click.option("--log-level", default=None, help="Override the configured log level.")
def cli(log_level: str | None) -> None:
    """tg — decide which third-party requests a page may make."""
    configure_logging(log_level or get_settings().log_level)


@cli.command()
@click.argument("url")
@click.option("--top", "top_url", required=True, help="URL of the top-level document.")
@click.option(
    "--kind",
    type=click.Choice([k.value for k in RequestKind]),
    default=RequestKind.OTHER.value,
    show_default=True,
)
@click.option("--format", "output_format", type=click.Choice(["rich", "json"]), default="rich")
@click.option("--clobber", is_flag=True, help="Delete cookie-blocked hosts' cookies from cookie_db.")
def check(url: str, top_url: str, kind: str, output_format: str, clobber: bool) -> None:
    """Show the verdict for a request made by a page."""
    settings = get_settings()
    rules = _open_rules(settings)
    ledger = SettingsLedger(rules)
    adapter = InterceptionAdapter(_build_engine(settings, rules, clobber), ledger)
    context = BrowsingContext(context_id="cli", url=top_url)

    verdict = adapter.classify(url, context, RequestKind(kind))
    recorded = ledger.read(context)

    if output_format == "json":
        data = {
            "url": url,
            "top": top_url,
            "verdict": verdict.value,
            "decisions": {origin: action.value for origin, action in recorded.items()},
        }
        click.echo(json.dumps(data, indent=2))
        return

    style = VERDICT_STYLES[verdict]
    console.print(f"[{style} bold]{verdict.value.upper()}[/{style} bold] {url}")
    for origin, action in recorded.items():
        console.print(f"  [dim]{origin}: {action.value}[/dim]")


@cli.command("lists")
@click.option("--format", "output_format", type=click.Choice(["rich", "json"]), default="rich")
@click.option("--all", "show_all", is_flag=True, help="Also list preloaded hosts.")
def show_lists(output_format: str, show_all: bool) -> None:
    """Show the user, heuristic and preload rule lists."""
    rules = _open_rules(get_settings())
    names = [name for name in RuleList if show_all or name is not RuleList.PRELOADS]

    if output_format == "json":
        click.echo(json.dumps({name.value: rules.entries(name) for name in names}, indent=2))
        return

    for name in names:
        entries = rules.entries(name)
        table = Table(title=f"{name.value} ({len(entries)})")
        table.add_column("Entry")
        for entry in entries:
            table.add_row(entry)
        console.print(table)


@cli.command("set")
@click.argument("origin")
@click.argument(
    "action",
    type=click.Choice([a.value for a in EditAction if a is not EditAction.RESET]),
)
def set_origin(origin: str, action: str) -> None:
    """Block, cookie-block or allow an origin."""
    rules = _open_rules(get_settings())
    _commit(rules, {origin: EditAction(action)})


@cli.command()
@click.argument("origin")
def reset(origin: str) -> None:
    """Return an origin to heuristic control."""
    rules = _open_rules(get_settings())
    _commit(rules, {origin: EditAction.RESET})


@cli.group()
def heuristic() -> None:
    """Edit the heuristic block list by hand."""


@heuristic.command("block")
@click.argument("base_domain")
def heuristic_block(base_domain: str) -> None:
    """Flag a base domain as a tracker."""
    rules = _open_rules(get_settings())
    try:
        rules.block_origin(base_domain)
    except StoreError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(f"[red]{base_domain}[/red] is now blocked by the heuristic.")


@heuristic.command("unblock")
@click.argument("base_domain")
def heuristic_unblock(base_domain: str) -> None:
    """Remove a base domain from the heuristic block list."""
    rules = _open_rules(get_settings())
    try:
        rules.unblock_origin(base_domain)
    except StoreError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print(f"[green]{base_domain}[/green] is no longer blocked by the heuristic.")


@cli.command()
@click.argument("page_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--format", "output_format", type=click.Choice(["rich", "json"]), default="rich")
@click.option("--clobber", is_flag=True, help="Delete cookie-blocked hosts' cookies from cookie_db.")
def replay(page_file: str, output_format: str, clobber: bool) -> None:
    """Evaluate every request recorded for a page and summarize the decisions.

    PAGE_FILE is YAML with a `page` URL and a `requests` list; each request
    is a URL string or a mapping with `url` and optional `kind` and `frame`.
    """
    with open(page_file) as f:
        data = yaml.safe_load(f) or {}
    page = data.get("page") if isinstance(data, dict) else None
    if not page or not isinstance(page, str):
        console.print(f"[red]{page_file}: missing 'page'[/red]")
        sys.exit(1)

    requests = []
    for index, item in enumerate(data.get("requests") or [], start=1):
        if isinstance(item, str):
            item = {"url": item}
        if not isinstance(item, dict) or not isinstance(item.get("url"), str):
            console.print(f"[red]{page_file}: request #{index} has no 'url'[/red]")
            sys.exit(1)
        if not isinstance(item.get("frame") or "", str):
            console.print(f"[red]{page_file}: request #{index} has a bad 'frame'[/red]")
            sys.exit(1)
        requests.append(item)

    settings = get_settings()
    rules = _open_rules(settings)
    ledger = SettingsLedger(rules)
    adapter = InterceptionAdapter(_build_engine(settings, rules, clobber), ledger)
    top = BrowsingContext(context_id="replay", url=page)

    verdicts: list[dict[str, str]] = []
    for item in requests:
        try:
            kind = RequestKind(item.get("kind", RequestKind.OTHER.value))
        except ValueError:
            kind = RequestKind.OTHER
        context = top
        if item.get("frame"):
            context = BrowsingContext(context_id=f"frame:{item['frame']}", url=item["frame"], parent=top)
        verdict = adapter.classify(item["url"], context, kind)
        verdicts.append({"url": item["url"], "verdict": verdict.value})

    if output_format == "json":
        table = ledger.read(top)
        click.echo(
            json.dumps(
                {
                    "page": page,
                    "requests": verdicts,
                    "cleared": table.cleared,
                    "decisions": {origin: action.value for origin, action in table.items()},
                },
                indent=2,
            )
        )
        return

    console.print(Panel(f"[bold]{page}[/bold]\n{len(verdicts)} requests", style="blue"))
    for entry in verdicts:
        style = VERDICT_STYLES[Verdict(entry["verdict"])]
        console.print(f"  [{style}]{entry['verdict']:<11}[/{style}] {entry['url']}")
    console.print()
    _render_summary(ledger, top)


@cli.command("delete-user-settings")
@click.confirmation_option(prompt="Delete every block, cookie-block and allow you set?")
def delete_user_settings() -> None:
    """Forget every user setting."""
    rules = _open_rules(get_settings())
    try:
        rules.empty_user()
    except StoreError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print("[green]User settings deleted.[/green]")


@cli.command("delete-all-settings")
@click.confirmation_option(prompt="Delete user settings and everything the heuristic learned?")
def delete_all_settings() -> None:
    """Forget user settings and heuristic blocks."""
    rules = _open_rules(get_settings())
    try:
        rules.empty()
    except StoreError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    console.print("[green]All settings deleted.[/green]")


@cli.command("update-preloads")
@click.argument("url", required=False)
def update_preloads(url: str | None) -> None:
    """Download an updated preload allowlist."""
    settings = get_settings()
    url = url or settings.preloads_url
    if not url:
        console.print("[red]No URL given and no preloads_url configured.[/red]")
        sys.exit(1)

    try:
        hosts = _run_async(fetch_preloads(url))
    except httpx.HTTPError as e:
        console.print(f"[red]Failed to download preloads: {e}[/red]")
        sys.exit(1)

    if not hosts:
        console.print(f"[yellow]{url} contained no hosts, keeping the current list.[/yellow]")
        return
    dump_preloads(hosts, settings.preloads_path)
    console.print(f"[green]Saved {len(hosts)} preloads to {settings.preloads_path}[/green]")
