from fastapi import APIRouter

from optirx.models.api import (
    ExpectedVaRequest,
    ExpectedVaResponse,
    HighPrescriptionRequest,
    VaParseRequest,
    VaParseResponse,
)
from optirx.models.schema import HighPrescriptionCheck
from optirx.services.visual_acuity import (
    analyze_visual_acuity,
    calculate_expected_va,
    check_high_prescription,
    validate_and_format_vn,
    vn_division,
)

router = APIRouter()


@router.post("/parse", response_model=VaParseResponse)
async def parse_va(request: VaParseRequest) -> VaParseResponse:
    """Normalise a D.V VN entry, classify it and compare it with the expected VA when SPH is given."""
    context = {"sph": request.sph, "cyl": request.cyl, "age": request.age} if request.sph else None
    va = validate_and_format_vn(request.value, context)
    if va is None:
        return VaParseResponse(valid=False)
    return VaParseResponse(valid=True, visual_acuity=va, display=vn_division(va.fraction))


@router.post("/expected", response_model=ExpectedVaResponse)
async def expected_va(request: ExpectedVaRequest) -> ExpectedVaResponse:
    expected = calculate_expected_va(request.sph, request.cyl, request.age or "0")
    comparison = None
    if expected is not None and request.actual:
        comparison = analyze_visual_acuity(request.actual, expected)
    return ExpectedVaResponse(expected=expected, comparison=comparison)


@router.post("/high-prescription", response_model=HighPrescriptionCheck)
async def high_prescription(request: HighPrescriptionRequest) -> HighPrescriptionCheck:
    return check_high_prescription(request.sph, request.cyl)
