"""
Prescription API Routes
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from optirx.models.api import (
    AnalysisResponse,
    FieldUpdateRequest,
    NewPrescriptionRequest,
    OptionsResponse,
    RecordRequest,
    SaveResponse,
    SearchResponse,
    ValidationResponse,
)
from optirx.models.schema import PrescriptionRecord
from optirx.services.derivation import analyze_prescription, apply_field_update, derive_all
from optirx.services.records import (
    CLASS_OPTIONS,
    PRESCRIBED_BY_OPTIONS,
    TITLE_OPTIONS,
    new_prescription_record,
)
from optirx.services.repository import PersistenceError, PrescriptionRepository
from optirx.services.validation import validate_record

log = logging.getLogger(__name__)

router = APIRouter()
repository = PrescriptionRepository()


def get_repository() -> PrescriptionRepository:
    return repository


@router.post("/new", response_model=PrescriptionRecord)
async def new_prescription(request: Optional[NewPrescriptionRequest] = None) -> PrescriptionRecord:
    """Blank record with today's date, next month's retest date and a fresh prescription number."""
    return new_prescription_record(fiscal_year=request.fiscal_year if request else None)


@router.get("/options", response_model=OptionsResponse)
async def options() -> OptionsResponse:
    return OptionsResponse(titles=TITLE_OPTIONS, classes=CLASS_OPTIONS, prescribed_by=PRESCRIBED_BY_OPTIONS)


@router.post("/update-field", response_model=PrescriptionRecord)
async def update_field(request: FieldUpdateRequest) -> PrescriptionRecord:
    return apply_field_update(request.record, request.locator, request.value, request.ipd_policy)


@router.post("/derive", response_model=PrescriptionRecord)
async def derive(request: RecordRequest) -> PrescriptionRecord:
    return derive_all(request.record, request.ipd_policy)


@router.post("/validate", response_model=ValidationResponse)
async def validate(request: RecordRequest) -> ValidationResponse:
    errors = validate_record(request.record)
    return ValidationResponse(valid=not errors, errors=errors)


@router.post("/analyze", response_model=AnalysisResponse)
async def analyze(request: RecordRequest) -> AnalysisResponse:
    return AnalysisResponse(analysis=analyze_prescription(request.record))


def _save(request: RecordRequest, repo: PrescriptionRepository, existing_id: Optional[str] = None) -> SaveResponse:
    record = derive_all(request.record, request.ipd_policy)
    errors = validate_record(record)
    if errors:
        raise HTTPException(status_code=422, detail={"errors": errors})
    try:
        pid = repo.save_prescription(record, existing_id)
    except PersistenceError as e:
        log.error(f"Save failed for {record.prescription_no or '<new>'}: {e}")
        raise HTTPException(status_code=500, detail=f"Save failed: {e}")
    return SaveResponse(id=pid, record=record.model_copy(update={"id": pid}))


@router.post("/", response_model=SaveResponse)
async def save(request: RecordRequest, repo: PrescriptionRepository = Depends(get_repository)) -> SaveResponse:
    return _save(request, repo)


@router.get("/search", response_model=SearchResponse)
async def search(
    q: str = Query(..., min_length=1),
    field: Optional[str] = Query(default=None, description="prescriptionNo | referenceNo | name | mobileNo"),
    repo: PrescriptionRepository = Depends(get_repository),
) -> SearchResponse:
    try:
        results = repo.search_prescriptions(q, field)
    except PersistenceError as e:
        log.error(f"Search failed for '{q}': {e}")
        raise HTTPException(status_code=500, detail=f"Search failed: {e}")
    return SearchResponse(results=results)


@router.get("/{prescription_id}", response_model=PrescriptionRecord)
async def load(prescription_id: str, repo: PrescriptionRepository = Depends(get_repository)) -> PrescriptionRecord:
    try:
        record = repo.load_prescription(prescription_id)
    except PersistenceError as e:
        log.error(f"Load failed for {prescription_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Load failed: {e}")
    if record is None:
        raise HTTPException(status_code=404, detail=f"Prescription {prescription_id} not found")
    return record


@router.put("/{prescription_id}", response_model=SaveResponse)
async def update(prescription_id: str, request: RecordRequest,
                 repo: PrescriptionRepository = Depends(get_repository)) -> SaveResponse:
    try:
        exists = repo.load_prescription(prescription_id) is not None
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Save failed: {e}")
    if not exists:
        raise HTTPException(status_code=404, detail=f"Prescription {prescription_id} not found")
    return _save(request, repo, prescription_id)
