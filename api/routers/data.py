"""File mirror routes: read and overwrite the JSON copies of stored data."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_mirror
from api.models.comparisons import DataMirrorUpdate
from api.services.data_mirror import DataMirror

log = logging.getLogger(f"versus.{__name__}")

router = APIRouter(tags=["data"])


@router.get("/data")
def read_data(mirror: DataMirror = Depends(get_mirror)) -> dict:
    """All mirrored documents; missing ones come back empty."""
    return mirror.read_all()


@router.post("/data")
def write_data(body: DataMirrorUpdate, mirror: DataMirror = Depends(get_mirror)) -> dict:
    """Overwrite the documents present in the body, leaving the others untouched."""
    data = body.model_dump(exclude_unset=True)
    try:
        written = mirror.write(data)
    except OSError as e:
        log.error(f"Failed to write mirror documents {sorted(data)}: {e}")
        raise HTTPException(status_code=500, detail="Failed to save data")
    return {"success": True, "written": written}
