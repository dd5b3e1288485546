"""Command-line interface for agentboard."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from agentboard import __version__
from agentboard.blackboard.board import Blackboard
from agentboard.blackboard.events import EventPoller
from agentboard.blackboard.schema import Acquired, Event
from agentboard.config import Config, load_config
from agentboard.errors import CycleError, SnapshotNotFoundError, StoreError
from agentboard.hooks import HookDispatcher
from agentboard.logging import get_logger, setup_logging
from agentboard.session.snapshotter import SessionSnapshotter
from agentboard.session.storage import format_duration

log = get_logger("cli")

console = Console()

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_NOT_FOUND = 2
EXIT_CONFLICT = 3
EXIT_CYCLE = 4
EXIT_STORE = 5


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="agentboard",
        description="Blackboard coordination and session continuity for agents",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (can be repeated)",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Project root (default: current directory)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command")

    # Sessions
    sessions_parser = subparsers.add_parser("sessions", help="Manage session snapshots")
    sessions_sub = sessions_parser.add_subparsers(dest="action")

    list_parser = sessions_sub.add_parser("list", help="List snapshots")
    list_parser.add_argument(
        "--active-only", action="store_true", help="Hide archived snapshots"
    )

    show_parser = sessions_sub.add_parser("show", help="Show one snapshot")
    show_parser.add_argument("id", help="Snapshot id or 'latest'")

    delete_parser = sessions_sub.add_parser("delete", help="Delete one snapshot")
    delete_parser.add_argument("id", help="Snapshot id or 'latest'")

    clean_parser = sessions_sub.add_parser("clean", help="Archive old snapshots")
    clean_parser.add_argument(
        "--older-than",
        type=float,
        default=None,
        metavar="DAYS",
        help="Archive snapshots older than DAYS (default: archive_after_days)",
    )
    clean_parser.add_argument(
        "--prune",
        action="store_true",
        help="Apply the full retention policy, deleting expired snapshots",
    )

    subparsers.add_parser("save", help="Take a manual session snapshot")
    subparsers.add_parser("recover", help="Validate the latest snapshot against live state")

    # Claims
    claim_parser = subparsers.add_parser("claim", help="Claim a path")
    claim_parser.add_argument("path")
    claim_parser.add_argument("--holder", required=True)
    claim_parser.add_argument("--scope", default="")

    release_parser = subparsers.add_parser("release", help="Release a claim")
    release_parser.add_argument("path")
    release_parser.add_argument("--holder", required=True)

    claims_parser = subparsers.add_parser("claims", help="List claims")
    claims_parser.add_argument("--all", action="store_true", help="Include stale claims")

    # Artifacts
    register_parser = subparsers.add_parser("register", help="Register an artifact")
    register_parser.add_argument("path")
    register_parser.add_argument("--kind", help="Artifact kind (default: existing kind or file)")
    register_parser.add_argument("--scope", default="")
    register_parser.add_argument("--export", action="append", default=[], dest="exports")
    register_parser.add_argument("--depends", action="append", default=[], dest="dependencies")

    dependents_parser = subparsers.add_parser("dependents", help="List dependents of a path")
    dependents_parser.add_argument("path")

    # Decisions
    decide_parser = subparsers.add_parser("decide", help="Record a decision")
    decide_parser.add_argument("statement")
    decide_parser.add_argument("--rationale", default="")
    decide_parser.add_argument("--by", required=True, dest="made_by")
    decide_parser.add_argument("--affects", action="append", default=[])

    decisions_parser = subparsers.add_parser("decisions", help="List decisions")
    decisions_parser.add_argument("--scope", default=None)

    # Events
    events_parser = subparsers.add_parser("events", help="Show the event log")
    events_parser.add_argument("--since", type=int, default=0)
    events_parser.add_argument("--follow", action="store_true", help="Keep polling")
    events_parser.add_argument("--interval", type=float, default=None)

    subparsers.add_parser("hook", help="Handle a tool hook payload from stdin")

    return parser


# =============================================================================
# Session commands
# =============================================================================


def _cmd_sessions(
    args: argparse.Namespace, snapshotter: SessionSnapshotter, config: Config
) -> int:
    store = snapshotter.store

    if args.action == "list":
        summaries = store.list_snapshots(include_archived=not args.active_only)
        if not summaries:
            console.print("[dim]No session snapshots[/dim]")
            return EXIT_OK
        table = Table(title="Session Snapshots")
        table.add_column("Date")
        table.add_column("ID", style="bold")
        table.add_column("Position")
        table.add_column("Status")
        table.add_column("Duration")
        for s in summaries:
            status = s.status.value + (" (latest)" if s.is_latest else "")
            table.add_row(
                s.date, s.id, escape(s.position), status, format_duration(s.duration_seconds)
            )
        console.print(table)
        return EXIT_OK

    if args.action == "show":
        try:
            snapshot = store.load(args.id)
        except SnapshotNotFoundError:
            console.print(f"[red]Session not found: {escape(args.id)}[/red]")
            return EXIT_NOT_FOUND
        path = store.path_of(snapshot.id)
        md_path = path.with_suffix(".md") if path else None
        if md_path and md_path.exists():
            console.print(md_path.read_text(encoding="utf-8"), markup=False)
        else:
            console.print(json.dumps(snapshot.to_dict(), indent=2), markup=False)
        return EXIT_OK

    if args.action == "delete":
        if not store.delete(args.id):
            console.print(f"[red]Session not found: {escape(args.id)}[/red]")
            return EXIT_NOT_FOUND
        console.print(f"Deleted session {escape(args.id)}")
        return EXIT_OK

    if args.action == "clean":
        if args.prune:
            report = snapshotter.cleanup()
            console.print(
                f"Archived {len(report.archived)}, deleted {len(report.deleted)}, "
                f"retained {len(report.retained)}"
            )
            return EXIT_OK
        days = args.older_than
        if days is None:
            days = config.sessions.archive_after_days
        archived = store.archive_older_than(days)
        console.print(f"Archived {len(archived)} session(s)")
        return EXIT_OK

    console.print("Usage: agentboard sessions {list,show,delete,clean}")
    return EXIT_USAGE


def _cmd_save(snapshotter: SessionSnapshotter) -> int:
    snapshot = snapshotter.snapshot()
    if snapshot is None:
        console.print("[red]Snapshot failed, see log for details[/red]")
        return EXIT_STORE
    console.print(f"Session saved: {snapshot.stem}")
    return EXIT_OK


def _cmd_recover(snapshotter: SessionSnapshotter) -> int:
    report = snapshotter.recover()
    if report is None:
        console.print("[red]No session snapshot to recover[/red]")
        return EXIT_NOT_FOUND

    snapshot = report.snapshot
    console.print(f"[bold]Session {snapshot.id}[/bold] ({snapshot.timestamp.isoformat()})")
    console.print(f"Position: {escape(snapshot.position.summary())}")
    for change in snapshot.uncommitted:
        console.print(f"  {change.status:<9} {escape(change.path)}")
    for blocker in snapshot.blockers:
        console.print(f"Blocker: {escape(blocker)}")
    for action in snapshot.next_actions:
        console.print(f"Next: {escape(action)}")

    if report.valid:
        console.print("[green]Snapshot matches live state[/green]")
    else:
        console.print(f"[yellow]Snapshot is {report.state.value}:[/yellow]")
        for d in report.discrepancies:
            console.print(f"  {d.kind}: {escape(d.subject)} ({escape(d.detail)})")
    return EXIT_OK


# =============================================================================
# Blackboard commands
# =============================================================================


def _print_event(event: Event) -> None:
    payload = json.dumps(event.payload, sort_keys=True)
    console.print(
        f"{event.id:>6} {event.timestamp.isoformat()} {event.type} {payload}", markup=False
    )


async def _follow_events(board: Blackboard, since: int, interval: float) -> None:
    def on_gap(last_seen: int, resume_at: int) -> None:
        console.print(f"[yellow]Events {last_seen + 1}..{resume_at} were trimmed[/yellow]")

    poller = EventPoller(
        board.events, _print_event, last_seen_id=since, interval=interval, on_gap=on_gap
    )
    async with poller:
        while True:
            await asyncio.sleep(3600)


def _cmd_blackboard(args: argparse.Namespace, board: Blackboard) -> int:
    if args.command == "claim":
        result = board.claims.acquire(args.path, args.holder, args.scope)
        if isinstance(result, Acquired):
            if result.superseded is not None:
                console.print(
                    f"Superseded stale claim by {escape(result.superseded.holder)}"
                )
            console.print(f"Claimed {escape(result.claim.path)}")
            return EXIT_OK
        minutes = result.age.total_seconds() / 60
        console.print(
            f"[red]Conflict: held by {escape(result.holder)} "
            f"({escape(result.scope) or '-'}) for {minutes:.1f} min[/red]"
        )
        return EXIT_CONFLICT

    if args.command == "release":
        if board.claims.release(args.path, args.holder):
            console.print(f"Released {escape(args.path)}")
        else:
            console.print(f"[dim]No claim on {escape(args.path)} held by {escape(args.holder)}[/dim]")
        return EXIT_OK

    if args.command == "claims":
        claims = board.claims.list_claims(include_stale=args.all)
        if not claims:
            console.print("[dim]No claims[/dim]")
            return EXIT_OK
        table = Table(title="Claims")
        table.add_column("Path", style="bold")
        table.add_column("Holder")
        table.add_column("Scope")
        table.add_column("Acquired")
        for c in claims:
            table.add_row(escape(c.path), escape(c.holder), escape(c.scope), c.acquired_at.isoformat())
        console.print(table)
        return EXIT_OK

    if args.command == "register":
        try:
            artifact = board.artifacts.register(
                args.path,
                kind=args.kind,
                exports=args.exports,
                scope=args.scope,
                dependencies=args.dependencies,
            )
        except CycleError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            return EXIT_CYCLE
        console.print(f"Registered {escape(artifact.path)} v{artifact.version}")
        return EXIT_OK

    if args.command == "dependents":
        for artifact in board.artifacts.dependents(args.path):
            console.print(artifact.path, markup=False)
        return EXIT_OK

    if args.command == "decide":
        try:
            decision = board.decisions.record(
                args.statement, args.rationale, args.made_by, affects=args.affects
            )
        except ValueError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            return EXIT_USAGE
        console.print(f"Recorded {decision.id}")
        return EXIT_OK

    if args.command == "decisions":
        decisions = (
            board.decisions.affecting(args.scope) if args.scope else board.decisions.all()
        )
        for d in decisions:
            console.print(f"{d.id} [{d.made_by}] {d.statement}", markup=False)
        return EXIT_OK

    if args.command == "events":
        if args.follow:
            interval = args.interval or board.config.blackboard.poll_interval
            try:
                asyncio.run(_follow_events(board, args.since, interval))
            except KeyboardInterrupt:
                pass
            return EXIT_OK
        if board.events.has_gap(args.since):
            console.print(f"[yellow]Events after {args.since} were trimmed[/yellow]")
        for event in board.events.since(args.since):
            _print_event(event)
        return EXIT_OK

    return EXIT_USAGE


def _setup(parsed: argparse.Namespace) -> Blackboard:
    config = load_config(parsed.root)
    setup_logging(
        config.logging,
        verbosity=parsed.verbose or None,
        force_stderr=parsed.verbose > 0,
    )
    return Blackboard(parsed.root, config)


def _cmd_hook(parsed: argparse.Namespace, stdin: TextIO) -> int:
    """Handle one hook payload. Always succeeds so the tool call is unaffected."""
    try:
        board = _setup(parsed)
    except Exception as e:
        log.warning("Hook setup failed: %s", e)
        return EXIT_OK
    try:
        payload = json.load(stdin)
    except (ValueError, OSError) as e:
        # ValueError covers both malformed JSON and undecodable bytes
        log.warning("Invalid hook payload: %s", e)
        return EXIT_OK
    HookDispatcher(board).handle_payload(payload)
    return EXIT_OK


def run_cli(args: Sequence[str], stdin: TextIO | None = None) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return EXIT_USAGE

    if parsed.command == "hook":
        return _cmd_hook(parsed, stdin or sys.stdin)

    board = _setup(parsed)
    config = board.config

    try:
        if parsed.command in ("sessions", "save", "recover"):
            snapshotter = SessionSnapshotter(board)
            if parsed.command == "save":
                return _cmd_save(snapshotter)
            if parsed.command == "recover":
                return _cmd_recover(snapshotter)
            return _cmd_sessions(parsed, snapshotter, config)
        return _cmd_blackboard(parsed, board)
    except StoreError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return EXIT_STORE
