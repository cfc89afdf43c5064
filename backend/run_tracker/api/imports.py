import os
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from run_tracker.core.config import settings
from run_tracker.core.constants import FIT_SUFFIX
from run_tracker.core.errors import ServiceConfigError, StoreUnavailableError
from run_tracker.db import get_db
from run_tracker.schemas.imports import ImportOutcome, ImportReport, ImportStatus, ScanRequest
from run_tracker.services.importer import ImportCoordinator, coordinator_from_settings

router = APIRouter(prefix="/imports", tags=["imports"])


def get_coordinator(db: Session = Depends(get_db)) -> ImportCoordinator:
    try:
        return coordinator_from_settings(db, settings)
    except ServiceConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("", response_model=ImportReport)
def upload_files(
    files: list[UploadFile] = File(...),
    coordinator: ImportCoordinator = Depends(get_coordinator),
):
    """Import uploaded FIT files. Each file gets its own outcome."""
    outcomes: list[ImportOutcome] = []
    for file in files:
        filename = file.filename or "upload.fit"
        if os.path.splitext(filename)[1].lower() != FIT_SUFFIX:
            outcomes.append(
                ImportOutcome(
                    path=filename,
                    status=ImportStatus.failed,
                    error="Only .fit files are supported",
                )
            )
            continue
        data = file.file.read()
        try:
            outcomes.append(coordinator.import_data(filename, data))
        except StoreUnavailableError as e:
            raise HTTPException(status_code=503, detail=str(e))
    return ImportReport.from_outcomes(outcomes)


@router.post("/scan", response_model=ImportReport)
def scan_paths(
    payload: Optional[ScanRequest] = None,
    coordinator: ImportCoordinator = Depends(get_coordinator),
):
    """Import FIT files from server-side paths, the configured import_paths by default."""
    payload = payload or ScanRequest()
    paths = payload.paths or settings.import_paths
    if not paths:
        raise HTTPException(status_code=400, detail="No import paths given or configured")
    try:
        outcomes = coordinator.import_paths(paths, recursive=payload.recursive)
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return ImportReport.from_outcomes(outcomes)
