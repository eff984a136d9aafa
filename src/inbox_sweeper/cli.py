"""Command-line entry point for Inbox Sweeper."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from inbox_sweeper.bootstrap import build_container
from inbox_sweeper.core import AppSettings, configure_logging, load_app_settings
from inbox_sweeper.core.errors import InboxSweeperError, PartialSyncError
from inbox_sweeper.core.models import Owner, SyncReport


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Inbox Sweeper mailbox assistant")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=["info", "sync", "seed-categories", "add-owner", "serve"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "--owner",
        default=None,
        help="Owner id or email address for the sync command.",
    )
    parser.add_argument(
        "--max-results",
        dest="max_results",
        type=int,
        default=None,
        help="Messages to request from Gmail (default: gmail.max_fetch).",
    )
    parser.add_argument(
        "--after",
        default=None,
        help="Provider message id to resume after.",
    )
    parser.add_argument(
        "--file",
        type=Path,
        default=None,
        help="JSON file of categories for seed-categories.",
    )
    parser.add_argument("--email", default=None, help="Email for add-owner.")
    parser.add_argument(
        "--access-token", dest="access_token", default=None, help="Gmail access token."
    )
    parser.add_argument(
        "--refresh-token", dest="refresh_token", default=None, help="Gmail refresh token."
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind host for serve.")
    parser.add_argument("--port", type=int, default=8000, help="Bind port for serve.")
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> int:
    """Execute the requested CLI command and return an exit code."""
    command = args.command
    if command == "info":
        print("Inbox Sweeper is ready. Configure Gmail and LLM settings to get started.")
        print(f"LLM provider: {settings.llm.provider}")
        print(f"Storage backend: {settings.storage.backend}")
        print(f"Database path: {settings.storage.db_path}")
        return 0
    if command == "sync":
        return _run_sync(settings, args.owner, args.max_results, args.after)
    if command == "seed-categories":
        return _run_seed(settings, args.file or settings.storage.categories_file)
    if command == "add-owner":
        return _run_add_owner(settings, args.email, args.access_token, args.refresh_token)
    if command == "serve":
        return _run_serve(settings, args.host, args.port)
    return 2


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    raise SystemExit(execute(args, settings))


def _run_sync(
    settings: AppSettings,
    owner_ref: str | None,
    max_results: int | None,
    after_id: str | None,
) -> int:
    """Run one sync for an owner and report the outcome."""
    if not owner_ref:
        print("Sync requires --owner.")
        return 2
    container = build_container(settings)
    try:
        owner = _find_owner(container.resolve("owners"), owner_ref)
        if owner is None:
            print(f"Owner {owner_ref} not found.")
            return 1
        limit = max_results or settings.gmail.max_fetch
        engine = container.resolve("sync_engine")
        try:
            report = asyncio.run(engine.sync(owner.id, limit, after_id))
        except PartialSyncError as exc:
            _print_report(exc.report)
            for failure in exc.report.failures:
                print(f"  failed {failure.provider_id}: {failure.reason}")
            return 1
        except InboxSweeperError as exc:
            print(f"Sync failed: {exc}")
            return 1
        _print_report(report)
        return 0
    finally:
        container.resolve("store").close()


def _run_seed(settings: AppSettings, source: Path | None) -> int:
    """Insert default categories that are not stored yet."""
    container = build_container(settings)
    try:
        created = container.resolve("category_service").seed_defaults(source)
    finally:
        container.resolve("store").close()
    if not created:
        print("All default categories already exist.")
        return 0
    print(f"Created {len(created)} categor{'y' if len(created) == 1 else 'ies'}:")
    for category in created:
        print(f"  {category.name}")
    return 0


def _run_add_owner(
    settings: AppSettings,
    email: str | None,
    access_token: str | None,
    refresh_token: str | None,
) -> int:
    """Store an owner together with already issued Gmail tokens."""
    if not email:
        print("add-owner requires --email.")
        return 2
    container = build_container(settings)
    try:
        owners = container.resolve("owners")
        owner = owners.find_by_email(email)
        if owner is None:
            owner = owners.create(
                Owner(email=email, access_token=access_token, refresh_token=refresh_token)
            )
            print(f"Created owner {owner.id} for {email}.")
        else:
            owner.access_token = access_token or owner.access_token
            owner.refresh_token = refresh_token or owner.refresh_token
            owners.update(owner)
            print(f"Updated tokens for owner {owner.id}.")
    finally:
        container.resolve("store").close()
    return 0


def _run_serve(settings: AppSettings, host: str, port: int) -> int:
    """Serve the HTTP API with uvicorn."""
    import uvicorn  # pylint: disable=import-outside-toplevel

    from inbox_sweeper.web import create_app  # pylint: disable=import-outside-toplevel

    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)
    return 0


def _find_owner(owners, owner_ref: str) -> Owner | None:
    if "@" in owner_ref:
        return owners.find_by_email(owner_ref)
    return owners.find_by_id(owner_ref)


def _print_report(report: SyncReport) -> None:
    print(
        f"Fetched {len(report.fetched)} message(s), stored {len(report.persisted)}, "
        f"skipped {report.skipped}, failed {len(report.failures)}."
    )


if __name__ == "__main__":
    main()
