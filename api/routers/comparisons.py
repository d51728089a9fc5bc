"""Comparison API routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_db, get_mirror, get_sessions
from api.models.comparisons import ComparisonCreate, ComparisonUpdate
from api.services.data_mirror import DataMirror
from api.services.storage import mirror_collections, new_comparison
from versus import VersusDb

log = logging.getLogger(f"versus.{__name__}")

router = APIRouter(prefix="/comparisons", tags=["comparisons"])


def comparison_or_404(dbh: VersusDb, slug: str) -> dict:
    comparison = dbh.comparisonGetBySlug(slug)
    if not comparison:
        raise HTTPException(status_code=404, detail="Comparison not found")
    return comparison


@router.get("")
def list_comparisons(dbh: VersusDb = Depends(get_db)) -> list:
    """List all comparisons with their contender counts, most recent first."""
    counts = {}
    for contender in dbh.contenderGetAll():
        counts[contender['comparison_id']] = counts.get(contender['comparison_id'], 0) + 1

    return [
        {**comparison, "contender_count": counts.get(comparison['id'], 0)}
        for comparison in dbh.comparisonGetAll()
    ]


@router.post("")
def create_comparison(
    body: ComparisonCreate,
    dbh: VersusDb = Depends(get_db),
    mirror: DataMirror = Depends(get_mirror),
) -> list:
    """Create a comparison. Its slug is derived from the name and made unique."""
    if not body.name.strip():
        return ["ERROR", "Comparison name is required"]

    keys = [p.key for p in body.properties]
    if len(keys) != len(set(keys)):
        return ["ERROR", "Property keys must be unique"]

    comparison = new_comparison(dbh, body)
    try:
        dbh.comparisonSave(comparison)
    except IOError as e:
        log.error(f"Failed to create comparison: {e}")
        return ["ERROR", f"Failed to create comparison: {e}"]

    mirror_collections(dbh, mirror, "comparisons")
    log.info(f"Created comparison '{comparison['slug']}'")
    return ["SUCCESS", comparison]


@router.get("/{slug}")
def get_comparison(slug: str, dbh: VersusDb = Depends(get_db)) -> dict:
    """Get a comparison and its contenders."""
    comparison = comparison_or_404(dbh, slug)
    return {**comparison, "contenders": dbh.contenderGetAll(comparison['id'])}


@router.put("/{slug}")
def update_comparison(
    slug: str,
    body: ComparisonUpdate,
    dbh: VersusDb = Depends(get_db),
    mirror: DataMirror = Depends(get_mirror),
) -> list:
    """Update a comparison's name, description or property definitions. The slug never changes."""
    comparison = comparison_or_404(dbh, slug)

    if body.name is not None:
        if not body.name.strip():
            return ["ERROR", "Comparison name is required"]
        comparison['name'] = body.name.strip()
    if body.description is not None:
        comparison['description'] = body.description
    if body.properties is not None:
        keys = [p.key for p in body.properties]
        if len(keys) != len(set(keys)):
            return ["ERROR", "Property keys must be unique"]
        comparison['properties'] = [p.model_dump() for p in body.properties]

    try:
        dbh.comparisonSave(comparison)
    except IOError as e:
        log.error(f"Failed to update comparison {slug}: {e}")
        return ["ERROR", f"Failed to update comparison: {e}"]

    mirror_collections(dbh, mirror, "comparisons")
    return ["SUCCESS", comparison]


@router.delete("/{slug}")
def delete_comparison(
    slug: str,
    dbh: VersusDb = Depends(get_db),
    mirror: DataMirror = Depends(get_mirror),
    sessions: dict = Depends(get_sessions),
) -> list:
    """Delete a comparison and all of its contenders."""
    comparison = comparison_or_404(dbh, slug)

    for contender in dbh.contenderGetAll(comparison['id']):
        session = sessions.pop(contender['id'], None)
        if session is not None:
            session.close()

    try:
        dbh.comparisonDelete(comparison['id'])
    except IOError as e:
        log.error(f"Failed to delete comparison {slug}: {e}")
        return ["ERROR", f"Failed to delete comparison: {e}"]

    mirror_collections(dbh, mirror, "comparisons", "contenders")
    log.info(f"Deleted comparison '{slug}'")
    return ["SUCCESS", ""]
