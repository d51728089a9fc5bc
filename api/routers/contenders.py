"""Contender API routes, including AI-assisted property filling."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_config, get_db, get_mirror, get_registry, get_sessions
from api.models.comparisons import AcknowledgeRequest, AnalysisTrigger, ContenderIn, UndoRequest
from api.routers.comparisons import comparison_or_404
from api.services.ai_orchestrator import ALREADY_RUNNING, AnalysisSession, SessionState, run_session_background
from api.services.ai_registry import ProviderRegistry
from api.services.data_mirror import DataMirror
from api.services.storage import contender_record, contender_saver, mirror_collections
from versus import VersusDb

log = logging.getLogger(f"versus.{__name__}")

router = APIRouter(prefix="/comparisons/{slug}/contenders", tags=["contenders"])


def contender_or_404(dbh: VersusDb, comparison: dict, contender_id: str) -> dict:
    contender = dbh.contenderGet(contender_id)
    if not contender or contender['comparison_id'] != comparison['id']:
        raise HTTPException(status_code=404, detail="Contender not found")
    return contender


@router.get("")
def list_contenders(slug: str, dbh: VersusDb = Depends(get_db)) -> list:
    """List the contenders of a comparison."""
    comparison = comparison_or_404(dbh, slug)
    return dbh.contenderGetAll(comparison['id'])


@router.post("")
def create_contender(
    slug: str,
    body: ContenderIn,
    dbh: VersusDb = Depends(get_db),
    mirror: DataMirror = Depends(get_mirror),
) -> list:
    """Add a contender to a comparison."""
    comparison = comparison_or_404(dbh, slug)
    if not body.name.strip():
        return ["ERROR", "Contender name is required"]

    contender = contender_record(comparison['id'], body)
    try:
        dbh.contenderSave(contender)
    except IOError as e:
        log.error(f"Failed to create contender in {slug}: {e}")
        return ["ERROR", f"Failed to create contender: {e}"]

    mirror_collections(dbh, mirror, "contenders")
    return ["SUCCESS", contender]


@router.get("/{contender_id}")
def get_contender(slug: str, contender_id: str, dbh: VersusDb = Depends(get_db)) -> dict:
    """Get a contender."""
    comparison = comparison_or_404(dbh, slug)
    return contender_or_404(dbh, comparison, contender_id)


@router.put("/{contender_id}")
def update_contender(
    slug: str,
    contender_id: str,
    body: ContenderIn,
    dbh: VersusDb = Depends(get_db),
    mirror: DataMirror = Depends(get_mirror),
    sessions: dict = Depends(get_sessions),
) -> list:
    """Replace a contender's fields."""
    comparison = comparison_or_404(dbh, slug)
    existing = contender_or_404(dbh, comparison, contender_id)
    if not body.name.strip():
        return ["ERROR", "Contender name is required"]

    session = sessions.get(contender_id)
    if session is not None and session.state in (SessionState.VALIDATING, SessionState.RUNNING):
        return ["ERROR", ALREADY_RUNNING]

    contender = contender_record(comparison['id'], body, existing=existing)
    try:
        dbh.contenderSave(contender)
    except IOError as e:
        log.error(f"Failed to update contender {contender_id}: {e}")
        return ["ERROR", f"Failed to update contender: {e}"]

    if session is not None:
        session.contender = contender

    mirror_collections(dbh, mirror, "contenders")
    return ["SUCCESS", contender]


@router.delete("/{contender_id}")
def delete_contender(
    slug: str,
    contender_id: str,
    dbh: VersusDb = Depends(get_db),
    mirror: DataMirror = Depends(get_mirror),
    sessions: dict = Depends(get_sessions),
) -> list:
    """Delete a contender."""
    comparison = comparison_or_404(dbh, slug)
    contender_or_404(dbh, comparison, contender_id)

    session = sessions.pop(contender_id, None)
    if session is not None:
        session.close()

    try:
        dbh.contenderDelete(contender_id)
    except IOError as e:
        log.error(f"Failed to delete contender {contender_id}: {e}")
        return ["ERROR", f"Failed to delete contender: {e}"]

    mirror_collections(dbh, mirror, "contenders")
    return ["SUCCESS", ""]


# ── AI-assisted property filling ──────────────────────────────────────────


def _open_session(
    slug: str,
    contender_id: str,
    dbh: VersusDb,
    config: dict,
    registry: ProviderRegistry,
    mirror: DataMirror,
    sessions: dict,
) -> AnalysisSession:
    """Existing analysis session for a contender, refreshed from the database, or a new one."""
    comparison = comparison_or_404(dbh, slug)
    contender = contender_or_404(dbh, comparison, contender_id)

    session = sessions.get(contender_id)
    if session is None:
        session = AnalysisSession(registry, comparison, contender, contender_saver(config, mirror))
        sessions[contender_id] = session
    elif session.state not in (SessionState.VALIDATING, SessionState.RUNNING):
        session.comparison = comparison
        session.contender = contender
        session.contender.setdefault("properties", {})
    return session


def _existing_session(slug: str, contender_id: str, dbh: VersusDb, sessions: dict) -> AnalysisSession:
    comparison = comparison_or_404(dbh, slug)
    contender_or_404(dbh, comparison, contender_id)
    session = sessions.get(contender_id)
    if session is None:
        raise HTTPException(status_code=404, detail="No analysis session for this contender")
    return session


@router.post("/{contender_id}/analysis")
def trigger_analysis(
    slug: str,
    contender_id: str,
    body: AnalysisTrigger,
    wait: bool = False,
    dbh: VersusDb = Depends(get_db),
    config: dict = Depends(get_config),
    registry: ProviderRegistry = Depends(get_registry),
    mirror: DataMirror = Depends(get_mirror),
    sessions: dict = Depends(get_sessions),
) -> list:
    """Fill in the contender's properties with the active AI provider.

    Returns immediately and runs in a background thread unless wait is set.
    Poll GET .../analysis to follow progress.
    """
    session = _open_session(slug, contender_id, dbh, config, registry, mirror, sessions)

    if wait:
        status = session.run(body.kind, body.custom_instructions)
        if status["error"] == ALREADY_RUNNING:
            return ["ERROR", ALREADY_RUNNING]
    else:
        if run_session_background(session, body.kind, body.custom_instructions) is None:
            return ["ERROR", ALREADY_RUNNING]
        status = session.status()

    if status["state"] == SessionState.FAILED.value:
        return ["ERROR", status["error"]]
    return ["SUCCESS", status]


@router.get("/{contender_id}/analysis")
def analysis_status(
    slug: str,
    contender_id: str,
    dbh: VersusDb = Depends(get_db),
    sessions: dict = Depends(get_sessions),
) -> dict:
    """Current analysis state: phase, error, changed fields and undo availability."""
    return _existing_session(slug, contender_id, dbh, sessions).status()


@router.post("/{contender_id}/analysis/undo")
def undo_analysis(
    slug: str,
    contender_id: str,
    body: UndoRequest,
    dbh: VersusDb = Depends(get_db),
    sessions: dict = Depends(get_sessions),
) -> list:
    """Undo one analysed field, or the whole last analysis when no key is given."""
    session = _existing_session(slug, contender_id, dbh, sessions)
    if session.state in (SessionState.VALIDATING, SessionState.RUNNING):
        return ["ERROR", ALREADY_RUNNING]

    if body.key is None:
        return ["SUCCESS", session.undo_all()]
    return ["SUCCESS", session.undo_field(body.key)]


@router.post("/{contender_id}/analysis/acknowledge")
def acknowledge_field(
    slug: str,
    contender_id: str,
    body: AcknowledgeRequest,
    dbh: VersusDb = Depends(get_db),
    sessions: dict = Depends(get_sessions),
) -> list:
    """Clear the analysed flag of a field the user has started editing."""
    session = _existing_session(slug, contender_id, dbh, sessions)
    return ["SUCCESS", session.acknowledge_field(body.key)]


@router.post("/{contender_id}/analysis/cancel")
def cancel_analysis(
    slug: str,
    contender_id: str,
    dbh: VersusDb = Depends(get_db),
    sessions: dict = Depends(get_sessions),
) -> list:
    """Abandon a running analysis."""
    session = _existing_session(slug, contender_id, dbh, sessions)
    return ["SUCCESS", session.cancel()]


@router.delete("/{contender_id}/analysis")
def close_session(
    slug: str,
    contender_id: str,
    dbh: VersusDb = Depends(get_db),
    sessions: dict = Depends(get_sessions),
) -> list:
    """End the edit session; undo history is discarded."""
    comparison = comparison_or_404(dbh, slug)
    contender_or_404(dbh, comparison, contender_id)

    session = sessions.pop(contender_id, None)
    if session is not None:
        session.close()
    return ["SUCCESS", ""]
