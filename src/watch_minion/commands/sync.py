"""
Sync command handlers for Watch Minion.

Each handler takes the application context and returns
``(updated_context, should_continue)``. Sync errors are reported to the user
and never end the application.
"""

from loguru import logger

from watch_minion.context import AppContext
from watch_minion.core.console import counts_table, render, status_table
from watch_minion.core.output import log
from watch_minion.domain.records.mutations import active_records, check_and_repair
from watch_minion.domain.sync.exceptions import SyncError
from watch_minion.domain.sync.recovery import EraseScope


def _report(error: SyncError) -> None:
    log(f"❌ {error}", level="error")


def _require_confirmation(action: str, confirmed: bool) -> bool:
    if not confirmed:
        log(f"⚠️  {action} not confirmed; nothing changed", level="warning")
    return confirmed


def handle_sync_command(ctx: AppContext, silent: bool = False) -> tuple[AppContext, bool]:
    """Incremental two-way sync with the cloud.

    Args:
        ctx: Application context
        silent: Background cycle; report to the log file only

    Returns:
        (updated_context, should_continue)
    """
    try:
        ctx.session.ensure_fresh_token()
        summary = ctx.engine.reconcile(silent=silent)
    except SyncError as e:
        if silent:
            logger.info(f"Background sync did not complete: {e}")
        else:
            _report(e)
        return ctx, True

    if summary.changed and not silent:
        render(
            counts_table(
                "Sync summary",
                {
                    "Pulled": summary.pulled,
                    "Pushed": summary.pushed,
                    "Deleted": summary.deleted,
                    "Removed (deleted elsewhere)": summary.dropped,
                },
            ),
            ctx.console,
        )
    return ctx.reload(), True


def handle_force_pull_command(
    ctx: AppContext, confirmed: bool = False
) -> tuple[AppContext, bool]:
    """Replace all local data with the cloud copy."""
    if not _require_confirmation("Force pull", confirmed):
        return ctx, True

    try:
        ctx.session.ensure_fresh_token()
        ctx.recovery.force_pull()
    except SyncError as e:
        _report(e)
        return ctx, True
    return ctx.reload(), True


def handle_force_push_command(
    ctx: AppContext, confirmed: bool = False
) -> tuple[AppContext, bool]:
    """Replace all cloud data with this device's copy."""
    if not _require_confirmation("Force push", confirmed):
        return ctx, True

    try:
        ctx.session.ensure_fresh_token()
        ctx.recovery.force_push()
    except SyncError as e:
        _report(e)
        return ctx, True
    return ctx.reload(), True


def handle_erase_command(
    ctx: AppContext, scope: str, confirmed: bool = False
) -> tuple[AppContext, bool]:
    """Erase local data, cloud data, or both.

    Args:
        ctx: Application context
        scope: 'local', 'cloud' or 'both'
        confirmed: User explicitly confirmed the erase
    """
    try:
        erase_scope = EraseScope(scope)
    except ValueError:
        log(f"❌ Unknown erase scope '{scope}' (use local, cloud or both)", level="error")
        return ctx, True

    if not _require_confirmation(f"Erase {erase_scope.value} data", confirmed):
        return ctx, True

    try:
        if erase_scope is not EraseScope.LOCAL and ctx.gate.authenticated:
            ctx.session.ensure_fresh_token()
        ctx.recovery.erase_data(erase_scope)
    except SyncError as e:
        _report(e)
    return ctx.reload(), True


def handle_login_command(
    ctx: AppContext, email: str, password: str
) -> tuple[AppContext, bool]:
    try:
        ctx.session.login(email, password)
    except SyncError as e:
        _report(e)
        return ctx, True

    # Push guest data and pull the account's records
    return handle_sync_command(ctx)


def handle_signup_command(
    ctx: AppContext, email: str, password: str
) -> tuple[AppContext, bool]:
    try:
        session = ctx.session.sign_up(email, password)
    except SyncError as e:
        _report(e)
        return ctx, True

    if session is None:
        return ctx, True
    return handle_sync_command(ctx)


def handle_reset_password_command(
    ctx: AppContext, email: str
) -> tuple[AppContext, bool]:
    try:
        ctx.session.request_password_reset(email)
    except SyncError as e:
        _report(e)
    return ctx, True


def handle_change_password_command(
    ctx: AppContext, new_password: str
) -> tuple[AppContext, bool]:
    try:
        ctx.session.change_password(new_password)
    except SyncError as e:
        _report(e)
    return ctx, True


def handle_logout_command(ctx: AppContext) -> tuple[AppContext, bool]:
    """Log out and wipe this device's local data."""
    try:
        ctx.session.logout()
    except SyncError as e:
        _report(e)
        return ctx, True
    return ctx.with_records([]), True


def handle_connectivity_command(
    ctx: AppContext, online: bool
) -> tuple[AppContext, bool]:
    ctx.session.connectivity_changed(online)
    return ctx, True


def handle_check_command(ctx: AppContext) -> tuple[AppContext, bool]:
    """Run the data-integrity check and save any repairs locally."""
    try:
        records, issues = check_and_repair(ctx.store.load())
        if issues:
            ctx.store.save(records)
    except SyncError as e:
        _report(e)
        return ctx, True

    if not issues:
        log("✅ Data check complete. No integrity issues found!")
        return ctx.with_records(records), True

    log(f"⚠️  Data check complete. Found and fixed {len(issues)} issue(s).", level="warning")
    for issue in issues:
        log(f"  • {issue}")
    log("Changes saved locally. Please sync with the cloud.")
    return ctx.with_records(records), True


def handle_status_command(ctx: AppContext) -> tuple[AppContext, bool]:
    """Show session, connectivity and pending-change counts."""
    pending = {state: 0 for state in ("new", "edited", "deleted")}
    for record in ctx.records:
        if record.sync_state.value in pending:
            pending[record.sync_state.value] += 1

    session = ctx.gate.session
    render(
        status_table(
            {
                "State": ctx.session.state.value,
                "Account": (session.email or session.user_id) if session else "-",
                "Connectivity": "online" if ctx.gate.online else "offline",
                "Records": str(len(active_records(ctx.records))),
                "Pending changes": ", ".join(f"{n} {s}" for s, n in pending.items()),
            }
        ),
        ctx.console,
    )
    return ctx, True
