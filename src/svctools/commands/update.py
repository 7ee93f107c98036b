"""Implementation for the ``svctools update`` and ``self-update`` commands."""

from __future__ import annotations

from typing import NoReturn

from .. import config, log
from ..io import die
from ..services import ServiceFailure
from ..services.update import (
    CheckReport,
    CheckStatus,
    UpdateOptions,
    UpdateOrchestrator,
    UpdateOutcome,
    UpdateSession,
)


def build_orchestrator() -> UpdateOrchestrator:
    resolved = config.load_config()
    try:
        layout = config.resolve_layout(resolved.config)
    except ServiceFailure as exc:
        fail(exc)
    log.debug(f"live executable: {layout.live_path}")
    log.debug(f"source tree: {layout.source_root}")
    return UpdateOrchestrator(layout, resolved.config)


def fail(failure: ServiceFailure) -> NoReturn:
    """Print a service failure with its tool output, then exit 1."""
    if failure.detail:
        log.output(failure.detail, level=log.LogLevel.ERROR)
    message = failure.message
    if failure.recovery_hint:
        message = f"{message}\nhint: {failure.recovery_hint}"
    die(message)


def report_session(session: UpdateSession) -> None:
    if session.outcome is UpdateOutcome.ROLLED_BACK:
        log.warning("Update rolled back; the installed executable was not changed.")
        if session.failure is None:
            die("update failed")
        fail(session.failure)

    for message in session.messages:
        log.success(message)
    if session.changelog:
        log.heading("Recent changes:")
        for line in session.changelog:
            log.info(f"  {line}")


def report_check(report: CheckReport) -> None:
    log.info(f"Current version: {report.current_version}")
    if report.status is CheckStatus.NOT_TRACKED:
        log.warning(report.message)
        return
    if report.status is CheckStatus.UP_TO_DATE:
        log.success(report.message)
        return
    log.info(report.message)
    if report.comparison and report.comparison.incoming:
        log.heading("Incoming changes:")
        for line in report.comparison.incoming:
            log.info(f"  {line}")
    if report.status is CheckStatus.DIVERGED:
        log.warning("local commits will be merged with the remote branch on update")
    else:
        log.info("Run 'svctools update' to install it.")


def update(args: object) -> None:
    """Update svctools from its git remote and rebuild it."""
    options = UpdateOptions(
        force=bool(getattr(args, "force", False)),
        check_only=bool(getattr(args, "check", False)),
    )
    orchestrator = build_orchestrator()
    if options.check_only:
        try:
            report = orchestrator.check()
        except ServiceFailure as exc:
            fail(exc)
        report_check(report)
        return

    if options.force:
        log.step("Forcing rebuild.")
    try:
        session = orchestrator.run(options)
    except ServiceFailure as exc:
        fail(exc)
    report_session(session)


def self_update(args: object) -> None:
    """Rebuild svctools from its source tree in place."""
    del args
    orchestrator = build_orchestrator()
    try:
        session = orchestrator.self_update()
    except ServiceFailure as exc:
        fail(exc)
    report_session(session)
