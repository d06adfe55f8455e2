"""family_roster.cli

Command-line entry point.

Usage:
    family-roster --mode create_family --payload-path family.yml
    family-roster --mode add_members --family-id 12 --payload-path kids.yml
    family-roster --mode edit_member --family-id 12 --guardian-id 7 --payload-path edit.yml
    family-roster --mode resolve_decision --decision revive
    family-roster --mode search_families --query smith
    family-roster --mode archive_family --family-id 12 [--unarchive]
    family-roster --mode delete_family --family-id 12 --yes

Backends:
    --backend api       (default) REST API at --api-url / settings.api_base_url;
                        bearer token read from the env var named by
                        settings.api_token_env
    --backend postgres  direct PostgreSQL via --db-dsn; --dry-run rolls back

Exit codes: 0 success, 1 failure, 2 halted on a pending account decision
(checkpoint written to --checkpoint-path).
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import click
import psycopg
import yaml

from family_roster.api_client import HttpFamilyStore
from family_roster.config import (
    DEFAULT_SETTINGS_PATH,
    RosterSettings,
    SettingsValidationError,
    load_settings,
)
from family_roster.decision_checkpoint import (
    DEFAULT_CHECKPOINT_PATH,
    DecisionCheckpoint,
    DecisionState,
)
from family_roster.family_workflow import (
    MODE_ADD_MEMBERS,
    MODE_CREATE_FAMILY,
    MODE_EDIT_MEMBER,
    FamilyWorkflow,
    SubmissionResult,
    delete_family,
    search_families,
    set_family_archived,
)
from family_roster.payload import PayloadValidationError, apply_payload, load_payload
from family_roster.pg_store import PostgresFamilyStore
from family_roster.shared import (
    RemoteError,
    RosterError,
    SubmissionCounters,
    build_submission_report,
    write_run_report,
)
from family_roster.store import ACTION_CREATE_NEW, ACTION_REVIVE, FamilyStore

log = logging.getLogger(__name__)

MODE_RESOLVE_DECISION = "resolve_decision"
MODE_SEARCH_FAMILIES = "search_families"
MODE_ARCHIVE_FAMILY = "archive_family"
MODE_DELETE_FAMILY = "delete_family"

CLI_MODES = [
    MODE_CREATE_FAMILY,
    MODE_ADD_MEMBERS,
    MODE_EDIT_MEMBER,
    MODE_RESOLVE_DECISION,
    MODE_SEARCH_FAMILIES,
    MODE_ARCHIVE_FAMILY,
    MODE_DELETE_FAMILY,
]

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PENDING_DECISION = 2


def _fatal(run_id: str, message: str) -> None:
    click.echo(f"[{run_id}] FATAL: {message}", err=True)
    sys.exit(EXIT_FAILED)


# ---------------------------------------------------------------------------
# Flag validation
# ---------------------------------------------------------------------------

def _validate_flags(
    run_id: str,
    mode: str,
    backend: str,
    db_dsn: str | None,
    payload_path: str | None,
    family_id: int | None,
    guardian_id: int | None,
    decision: str | None,
    query: str | None,
    yes: bool,
    dry_run: bool,
) -> None:
    if backend == "postgres" and not db_dsn:
        _fatal(run_id, "--backend postgres requires: --db-dsn")
    if dry_run and backend != "postgres":
        _fatal(run_id, "--dry-run is only available with --backend postgres")

    required: dict[str, list[tuple[str, Any]]] = {
        MODE_CREATE_FAMILY: [("--payload-path", payload_path)],
        MODE_ADD_MEMBERS: [("--payload-path", payload_path), ("--family-id", family_id)],
        MODE_EDIT_MEMBER: [
            ("--payload-path", payload_path),
            ("--family-id", family_id),
            ("--guardian-id", guardian_id),
        ],
        MODE_RESOLVE_DECISION: [("--decision", decision)],
        MODE_SEARCH_FAMILIES: [("--query", query)],
        MODE_ARCHIVE_FAMILY: [("--family-id", family_id)],
        MODE_DELETE_FAMILY: [("--family-id", family_id)],
    }
    missing = [flag for flag, value in required[mode] if value is None]
    if missing:
        _fatal(run_id, f"{mode} mode requires: {', '.join(missing)}")
    if mode == MODE_DELETE_FAMILY and not yes:
        _fatal(run_id, "delete_family is destructive; pass --yes to confirm")


# ---------------------------------------------------------------------------
# Store selection
# ---------------------------------------------------------------------------

@contextmanager
def open_store(
    run_id: str,
    backend: str,
    settings: RosterSettings,
    api_url: str | None,
    db_dsn: str | None,
    dry_run: bool,
) -> Iterator[FamilyStore]:
    """Yield the selected store; PostgreSQL commits on exit (rolls back on dry run)."""
    if backend == "api":
        token = settings.api_token()
        if token is None:
            click.echo(
                f"[{run_id}] WARNING: env var {settings.api_token_env} is not set; "
                "enrollment calls will be sent without a bearer token",
                err=True,
            )
        yield HttpFamilyStore(
            api_url or settings.api_base_url,
            token=token,
            timeout=settings.request_timeout_seconds,
        )
        return

    conn = psycopg.connect(db_dsn, autocommit=False)  # type: ignore[arg-type]
    try:
        yield PostgresFamilyStore(conn)
        if dry_run:
            conn.rollback()
            click.echo(f"[{run_id}] DRY RUN — rolled back.")
        else:
            conn.commit()
            click.echo(f"[{run_id}] Committed.")
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Workflow modes
# ---------------------------------------------------------------------------

def _build_workflow(
    mode: str,
    store: FamilyStore,
    settings: RosterSettings,
    family_id: int | None,
    guardian_id: int | None,
    counters: SubmissionCounters,
) -> FamilyWorkflow:
    if mode == MODE_CREATE_FAMILY:
        return FamilyWorkflow.for_new_family(store, settings, counters=counters)
    if mode == MODE_ADD_MEMBERS:
        return FamilyWorkflow.for_existing_family(store, family_id, settings, counters=counters)  # type: ignore[arg-type]
    return FamilyWorkflow.for_member_edit(
        store, family_id, guardian_id, settings, counters=counters,  # type: ignore[arg-type]
    )


def _load_onto(workflow: FamilyWorkflow, store: FamilyStore, payload_path: str) -> None:
    programs = {p.id: p.display_name for p in store.list_programs(include_archived=True)}
    apply_payload(workflow, load_payload(Path(payload_path)), programs=programs)


def _report_result(run_id: str, result: SubmissionResult) -> None:
    click.echo(f"[{run_id}] Submission {result.status} family_id={result.family_id}")
    for key, member_id in result.member_ids.items():
        click.echo(f"[{run_id}]   {key}: member_id={member_id} account_id={result.account_ids.get(key)}")
    for key, op, exc in result.enrollment_failures:
        click.echo(
            f"[{run_id}] WARNING: {key} enrollment {op.action} program_id={op.program_id} failed: {exc}",
            err=True,
        )
    for warning in result.warnings:
        click.echo(f"[{run_id}] WARNING: {warning}", err=True)


def _report_pending(run_id: str, state: DecisionState, checkpoint: DecisionCheckpoint) -> None:
    pending = state.pending
    status = "archived" if pending.archived else "active"
    click.echo(
        f"[{run_id}] PENDING DECISION: an {status} account already uses {pending.email!r} "
        f"(member {pending.member_key})",
        err=True,
    )
    choices = f"{ACTION_CREATE_NEW}|{ACTION_REVIVE}" if pending.archived else ACTION_REVIVE
    click.echo(
        f"[{run_id}] Resume with: --mode {MODE_RESOLVE_DECISION} --decision {choices} "
        f"--checkpoint-path {checkpoint.path}",
        err=True,
    )


def run_workflow_mode(
    run_id: str,
    mode: str,
    store: FamilyStore,
    settings: RosterSettings,
    counters: SubmissionCounters,
    checkpoint: DecisionCheckpoint,
    payload_path: str | None,
    family_id: int | None,
    guardian_id: int | None,
    decision: str | None,
    dry_run: bool,
    details: dict[str, Any],
) -> int:
    """Run a create/add/edit submission or resume one; return the exit code."""
    if mode == MODE_RESOLVE_DECISION:
        saved = checkpoint.load()
        if saved is None:
            raise RosterError(f"no pending decision checkpoint at {checkpoint.path}")
        workflow_mode = saved.mode
        payload_path, family_id, guardian_id = saved.payload_path, saved.family_id, saved.guardian_id
        details["resumed_run_id"] = saved.run_id
        click.echo(
            f"[{run_id}] Resuming {workflow_mode} from run {saved.run_id} "
            f"with decision={decision} for {saved.pending.email!r}"
        )
    else:
        workflow_mode = mode

    workflow = _build_workflow(workflow_mode, store, settings, family_id, guardian_id, counters)
    _load_onto(workflow, store, payload_path)  # type: ignore[arg-type]
    if mode == MODE_RESOLVE_DECISION:
        workflow.resume(saved.resolved_accounts, saved.pending, saved.revived_keys)
        result = workflow.resolve_pending(decision)  # type: ignore[arg-type]
    else:
        result = workflow.submit()
    details["result"] = result.to_dict()

    if not result.completed:
        state = DecisionState(
            run_id=run_id,
            mode=workflow_mode,
            payload_path=str(payload_path),
            pending=result.pending,  # type: ignore[arg-type]
            family_id=workflow.family_id,
            guardian_id=guardian_id,
            resolved_accounts=dict(workflow.resolved_accounts),
            revived_keys=sorted(workflow.revived_keys),
        )
        if dry_run:
            click.echo(f"[{run_id}] DRY RUN — pending decision not checkpointed.", err=True)
        else:
            checkpoint.save(state)
        _report_pending(run_id, state, checkpoint)
        return EXIT_PENDING_DECISION

    if mode == MODE_RESOLVE_DECISION and not dry_run:
        checkpoint.clear()
    _report_result(run_id, result)
    return EXIT_OK


def run_admin_mode(
    run_id: str,
    mode: str,
    store: FamilyStore,
    family_id: int | None,
    query: str | None,
    unarchive: bool,
    yes: bool,
    details: dict[str, Any],
) -> int:
    if mode == MODE_SEARCH_FAMILIES:
        families = search_families(store, query)
        details["families_found"] = len(families)
        if not families:
            click.echo(f"[{run_id}] No families match {query!r} (queries need at least 2 characters)")
        for f in families:
            guardians = ", ".join(g.full_name for g in f.guardians) or "-"
            click.echo(
                f"{f.id}\t{f.family_name or '-'}\t{'archived' if f.archived else 'active'}\t"
                f"guardians={guardians}\tmembers={len(f.athletes)}"
            )
    elif mode == MODE_ARCHIVE_FAMILY:
        set_family_archived(store, family_id, not unarchive)  # type: ignore[arg-type]
        click.echo(f"[{run_id}] Family {family_id} {'unarchived' if unarchive else 'archived'}")
    else:
        delete_family(store, family_id, confirm=yes)  # type: ignore[arg-type]
        click.echo(f"[{run_id}] Family {family_id} deleted")
    return EXIT_OK


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

@click.command()
@click.option("--mode", required=True, type=click.Choice(CLI_MODES), help="Operation to run")
@click.option(
    "--backend",
    default="api",
    type=click.Choice(["api", "postgres"]),
    show_default=True,
    help="Persistence backend",
)
@click.option("--api-url", default=None, help="[api] Base URL; overrides settings.api_base_url")
@click.option("--db-dsn", default=None, help="[postgres] PostgreSQL DSN")
@click.option(
    "--settings-path",
    default=str(DEFAULT_SETTINGS_PATH),
    type=click.Path(),
    show_default=True,
    help="YAML settings file (missing file = defaults)",
)
@click.option("--payload-path", default=None, type=click.Path(), help="[create_family|add_members|edit_member] YAML/JSON payload")
@click.option("--family-id", default=None, type=int, help="[add_members|edit_member|archive_family|delete_family] Family id")
@click.option("--guardian-id", default=None, type=int, help="[edit_member] Account id of the guardian being edited")
@click.option(
    "--decision",
    default=None,
    type=click.Choice([ACTION_CREATE_NEW, ACTION_REVIVE]),
    help="[resolve_decision] How to resolve the pending account conflict",
)
@click.option("--query", default=None, help="[search_families] Search text (at least 2 characters)")
@click.option("--unarchive", is_flag=True, default=False, help="[archive_family] Unarchive instead")
@click.option("--yes", is_flag=True, default=False, help="[delete_family] Confirm the destructive delete")
@click.option(
    "--checkpoint-path",
    default=str(DEFAULT_CHECKPOINT_PATH),
    type=click.Path(),
    show_default=True,
    help="Pending decision checkpoint file",
)
@click.option("--run-id", default=None, help="Override UUID for log correlation")
@click.option("--dry-run", is_flag=True, default=False, help="[postgres] Roll back instead of committing")
@click.option("--verbose", is_flag=True, default=False, help="INFO-level logging")
def main(
    mode: str,
    backend: str,
    api_url: str | None,
    db_dsn: str | None,
    settings_path: str,
    payload_path: str | None,
    family_id: int | None,
    guardian_id: int | None,
    decision: str | None,
    query: str | None,
    unarchive: bool,
    yes: bool,
    checkpoint_path: str,
    run_id: str | None,
    dry_run: bool,
    verbose: bool,
) -> None:
    """Family roster management CLI."""
    run_id = run_id or str(uuid.uuid4())
    started_at = datetime.utcnow().isoformat()
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    click.echo(f"[{run_id}] Starting {mode} run (backend={backend}, dry_run={dry_run})")
    _validate_flags(
        run_id, mode, backend, db_dsn, payload_path, family_id, guardian_id,
        decision, query, yes, dry_run,
    )

    try:
        settings = load_settings(Path(settings_path))
    except (SettingsValidationError, yaml.YAMLError) as exc:
        _fatal(run_id, f"invalid settings file {settings_path}: {exc}")

    counters = SubmissionCounters()
    checkpoint = DecisionCheckpoint(Path(checkpoint_path))
    details: dict[str, Any] = {"backend": backend, "family_id": family_id}
    exit_code = EXIT_FAILED
    try:
        with open_store(run_id, backend, settings, api_url, db_dsn, dry_run) as store:
            if mode in (MODE_SEARCH_FAMILIES, MODE_ARCHIVE_FAMILY, MODE_DELETE_FAMILY):
                exit_code = run_admin_mode(
                    run_id, mode, store, family_id, query, unarchive, yes, details,
                )
            else:
                exit_code = run_workflow_mode(
                    run_id, mode, store, settings, counters, checkpoint,
                    payload_path, family_id, guardian_id, decision, dry_run, details,
                )
    except (RosterError, PayloadValidationError, OSError, psycopg.Error) as exc:
        details["error"] = str(exc)
        if isinstance(exc, RemoteError) and exc.status_code is not None:
            details["status_code"] = exc.status_code
        click.echo(f"[{run_id}] FATAL: {exc}", err=True)
        exit_code = EXIT_FAILED
    finally:
        if mode not in (MODE_SEARCH_FAMILIES, MODE_ARCHIVE_FAMILY, MODE_DELETE_FAMILY):
            click.echo(build_submission_report(counters, mode, dry_run))
        report_path = write_run_report(run_id, started_at, mode, dry_run, details, counters)
        click.echo(f"[{run_id}] Run report: {report_path}")

    if exit_code != EXIT_OK:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
