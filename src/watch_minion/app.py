"""
Watch Minion entry point.

Builds the application context (config, logging, local store, gate, cloud
client, sync engine) and either routes a single command or runs the
interactive shell.
"""

import argparse
import sys
import threading
from pathlib import Path
from typing import Optional

from loguru import logger

from watch_minion import router
from watch_minion.commands import sync as sync_commands
from watch_minion.context import AppContext
from watch_minion.core import config as config_module
from watch_minion.core.config import Config
from watch_minion.core.console import get_console
from watch_minion.core.output import log, setup_loguru
from watch_minion.domain.records.store import LocalRecordStore
from watch_minion.domain.session.lifecycle import SessionController
from watch_minion.domain.sync.engine import SyncEngine
from watch_minion.domain.sync.gate import SessionGate
from watch_minion.domain.sync.recovery import RecoveryOperations
from watch_minion.domain.sync.remote import RestRemoteStore
from watch_minion.domain.sync.retry import RetryPolicy


def build_context(cfg: Config, session_path: Optional[Path] = None) -> AppContext:
    """Wire the collaborators together and restore the saved session."""
    store = LocalRecordStore(
        Path(cfg.store.database_path) if cfg.store.database_path else None
    )
    store_changed = threading.Event()
    gate = SessionGate()
    remote = RestRemoteStore(cfg.cloud, access_token=gate.access_token)
    engine = SyncEngine(
        gate,
        remote,
        store,
        retry=RetryPolicy.from_config(cfg.sync),
        on_store_changed=store_changed.set,
    )
    recovery = RecoveryOperations(
        gate, remote, store, engine=engine, on_store_changed=store_changed.set
    )
    session = SessionController(
        cfg.cloud,
        gate,
        store,
        remote=remote if cfg.cloud.configured else None,
        ping_timeout=cfg.sync.connectivity_timeout_seconds,
        session_path=session_path,
    )

    ctx = AppContext(
        config=cfg,
        store=store,
        gate=gate,
        engine=engine,
        recovery=recovery,
        session=session,
        console=get_console(),
        store_changed=store_changed,
    )
    session.start()
    return ctx.reload()


def _background_sync(ctx: AppContext) -> None:
    """Thread target: one silent reconcile, errors go to the log file only."""
    try:
        sync_commands.handle_sync_command(ctx, silent=True)
    except Exception:
        logger.exception("Background sync failed")


def start_background_sync(ctx: AppContext) -> Optional[threading.Thread]:
    """Kick off a silent reconcile without blocking the caller.

    Returns:
        The started thread, or None when sync is not currently possible
    """
    if not (ctx.gate.authenticated and ctx.gate.online):
        return None

    sync_thread = threading.Thread(
        target=_background_sync,
        args=(ctx,),
        daemon=True,
        name="BackgroundSyncThread",
    )
    sync_thread.silent_logging = True
    sync_thread.start()
    return sync_thread


def interactive_mode(ctx: AppContext) -> None:
    """Run the interactive command loop."""
    if ctx.config.sync.auto_sync_on_startup and start_background_sync(ctx):
        log("🔄 Starting background sync...")

    print("Type 'help' for commands, 'quit' to exit.")
    should_continue = True
    while should_continue:
        try:
            user_input = input("watch-minion> ")
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye!")
            break

        # Pick up records saved by the background sync
        ctx = ctx.refresh_if_changed()

        command, args = router.parse_command(user_input)
        if not command:
            continue
        ctx, should_continue = router.handle_command(ctx, command, args)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="watch-minion",
        description="Personal movie and series tracker - cloud sync commands",
    )
    parser.add_argument(
        "--config", type=Path, help="Path to config.toml (default: auto-detect)"
    )
    subparsers = parser.add_subparsers(dest="subcommand", required=True)

    subparsers.add_parser("shell", help="Interactive shell (syncs in the background)")
    subparsers.add_parser("status", help="Show session and pending changes")
    subparsers.add_parser("sync", help="Two-way sync with the cloud")
    subparsers.add_parser("check", help="Check and repair local data integrity")
    subparsers.add_parser("logout", help="Log out and wipe local data")
    subparsers.add_parser("change-password", help="Set a new account password")

    for name, help_text in (
        ("login", "Log in to the cloud"),
        ("signup", "Create a cloud account"),
        ("reset-password", "Email a password-reset link"),
    ):
        account_parser = subparsers.add_parser(name, help=help_text)
        account_parser.add_argument("email")

    for name, help_text in (
        ("force-pull", "Replace local data with the cloud copy"),
        ("force-push", "Replace cloud data with this device's copy"),
    ):
        force_parser = subparsers.add_parser(name, help=help_text)
        force_parser.add_argument("--yes", action="store_true", help="Skip confirmation")

    erase_parser = subparsers.add_parser("erase", help="Erase local and/or cloud data")
    erase_parser.add_argument("scope", choices=list(router.ERASE_SCOPES))
    erase_parser.add_argument("--yes", action="store_true", help="Skip confirmation")

    args = parser.parse_args(argv)

    config_module.ensure_directories()
    cfg = config_module.load_config(args.config)
    log_file = (
        Path(cfg.logging.log_file)
        if cfg.logging.log_file
        else config_module.get_data_dir() / "watch-minion.log"
    )
    setup_loguru(log_file, cfg.logging.level, cfg.logging.console_output)

    ctx = build_context(cfg)

    if args.subcommand == "shell":
        interactive_mode(ctx)
        return 0

    command_args = [
        value
        for value in (getattr(args, "email", None), getattr(args, "scope", None))
        if value
    ]
    router.handle_command(
        ctx, args.subcommand, command_args, assume_yes=getattr(args, "yes", False)
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
