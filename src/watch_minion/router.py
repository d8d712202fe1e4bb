"""
Command routing for Watch Minion.

Routes user commands, typed in the shell or given on the command line, to
their handler functions.
"""

from typing import List, Tuple

from rich.prompt import Confirm, Prompt

from watch_minion.commands import sync
from watch_minion.context import AppContext
from watch_minion.core.output import log

ERASE_SCOPES = ("local", "cloud", "both")


def print_help() -> None:
    """Display help information for available commands."""
    help_text = """
Watch Minion - Movie and series tracker

Sync Commands:
  sync                    Two-way sync with the cloud
  status                  Show session, connectivity and pending changes
  check                   Check and repair local data integrity
  force-pull              Replace ALL local data with the cloud copy
  force-push              Replace ALL cloud data with this device's copy
  erase <scope>           Erase local, cloud or both

Account Commands:
  login <email>           Log in (keeps guest data and syncs it)
  signup <email>          Create an account
  reset-password <email>  Email a password-reset link
  change-password         Set a new password
  logout                  Log out and wipe this device's data

Connectivity:
  online / offline        Tell the app the network came back or went away

Other:
  help                    Show this help
  quit, exit              Leave the shell
"""
    print(help_text.strip())


def parse_command(user_input: str) -> tuple[str, List[str]]:
    """Parse user input into command and arguments."""
    parts = user_input.strip().split()
    if not parts:
        return "", []

    command = parts[0].lower()
    args = parts[1:] if len(parts) > 1 else []
    return command, args


def _confirm(question: str, assume_yes: bool) -> bool:
    return assume_yes or Confirm.ask(question, default=False)


def _email_arg(args: List[str]) -> str:
    return args[0] if args else Prompt.ask("Email")


def handle_command(
    ctx: AppContext, command: str, args: List[str], assume_yes: bool = False
) -> Tuple[AppContext, bool]:
    """
    Handle a single command with explicit state passing.

    Args:
        ctx: Application context
        command: Command name
        args: Command arguments
        assume_yes: Skip confirmation of destructive commands

    Returns:
        (updated_context, should_continue) - Updated context and whether to continue
    """
    if command in ("quit", "exit"):
        print("Goodbye!")
        return ctx, False

    elif command == "help":
        print_help()
        return ctx, True

    elif command == "sync":
        return sync.handle_sync_command(ctx)

    elif command == "status":
        return sync.handle_status_command(ctx)

    elif command == "check":
        return sync.handle_check_command(ctx)

    elif command == "login":
        email = _email_arg(args)
        password = Prompt.ask("Password", password=True)
        return sync.handle_login_command(ctx, email, password)

    elif command == "signup":
        email = _email_arg(args)
        password = Prompt.ask("Choose a password", password=True)
        return sync.handle_signup_command(ctx, email, password)

    elif command == "reset-password":
        return sync.handle_reset_password_command(ctx, _email_arg(args))

    elif command == "change-password":
        password = Prompt.ask("New password", password=True)
        return sync.handle_change_password_command(ctx, password)

    elif command == "logout":
        return sync.handle_logout_command(ctx)

    elif command == "force-pull":
        confirmed = _confirm(
            "Replace ALL local data with the cloud copy? Unsynced changes are lost.",
            assume_yes,
        )
        return sync.handle_force_pull_command(ctx, confirmed=confirmed)

    elif command == "force-push":
        confirmed = _confirm(
            "Replace ALL cloud data with this device's copy?", assume_yes
        )
        return sync.handle_force_push_command(ctx, confirmed=confirmed)

    elif command == "erase":
        scope = args[0].lower() if args else ""
        confirmed = scope in ERASE_SCOPES and _confirm(
            f"Permanently erase {scope} data?", assume_yes
        )
        return sync.handle_erase_command(ctx, scope, confirmed=confirmed)

    elif command in ("online", "offline"):
        return sync.handle_connectivity_command(ctx, online=command == "online")

    else:
        log(
            f"Unknown command: '{command}'. Type 'help' for available commands.",
            level="warning",
        )
        return ctx, True
