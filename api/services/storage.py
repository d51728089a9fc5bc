"""Comparison and contender record helpers shared by the routes and analysis sessions."""

import logging
import time
from datetime import datetime, timezone
from typing import Callable

from api.models.comparisons import ComparisonCreate, ContenderIn
from api.services.data_mirror import DataMirror
from versus import VersusDb, VersusHelpers

log = logging.getLogger(f"versus.{__name__}")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def mirror_collections(dbh: VersusDb, mirror: DataMirror | None, *keys: str) -> None:
    """Push the current state of the named collections to the file mirror."""
    if mirror is None:
        return

    data = {}
    if "comparisons" in keys:
        data["comparisons"] = dbh.comparisonGetAll()
    if "contenders" in keys:
        data["contenders"] = dbh.contenderGetAll()
    if data:
        mirror.push_async(data)


def new_comparison(dbh: VersusDb, body: ComparisonCreate) -> dict:
    """Build a comparison record with a fresh ID and a slug unique in the database."""
    slug = VersusHelpers.genSlug(body.name) or "comparison"
    slug = VersusHelpers.uniqueSlug(slug, dbh.comparisonSlugs(slug))

    return {
        'id': VersusHelpers.genId(),
        'name': body.name.strip(),
        'slug': slug,
        'description': body.description,
        'properties': [p.model_dump() for p in body.properties],
        'created_at': int(time.time() * 1000),
    }


def contender_record(comparison_id: str, body: ContenderIn, existing: dict | None = None) -> dict:
    """Build a contender record from a request body.

    Bare URL strings become hyperlink records; attachments and hyperlinks
    without an ID get one.
    """
    attachments = []
    for attachment in body.attachments:
        item = attachment.model_dump()
        item['id'] = item['id'] or VersusHelpers.genId()
        item['uploaded_at'] = item['uploaded_at'] or _now_iso()
        attachments.append(item)

    hyperlinks = []
    for link in body.hyperlinks:
        if isinstance(link, str):
            if not link.strip():
                continue
            item = {'id': '', 'url': link.strip(), 'added_at': None}
        else:
            item = link.model_dump()
        item['id'] = item['id'] or VersusHelpers.genId()
        item['added_at'] = item['added_at'] or _now_iso()
        hyperlinks.append(item)

    return {
        'id': existing['id'] if existing else VersusHelpers.genId(),
        'comparison_id': comparison_id,
        'name': body.name.strip(),
        'description': body.description,
        'pros': list(body.pros),
        'cons': list(body.cons),
        'properties': dict(body.properties),
        'attachments': attachments,
        'hyperlinks': hyperlinks,
        'created_at': existing['created_at'] if existing else int(time.time() * 1000),
    }


def contender_saver(config: dict, mirror: DataMirror | None) -> Callable[[dict], None]:
    """Persistence callback for analysis sessions, which outlive a request's DB handle."""
    def _save(contender: dict) -> None:
        dbh = VersusDb(config)
        try:
            dbh.contenderSave(contender)
            mirror_collections(dbh, mirror, "contenders")
        finally:
            dbh.close()
        log.debug(f"Saved contender {contender.get('id')}")

    return _save
