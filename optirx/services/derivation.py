"""
Prescription Derivation Engine

Dependent-field rules for a prescription record:
- near-vision row derived from distance SPH + ADD when ADD is entered
- spherical equivalent per row
- total / interpupillary distance (two named policies)
- balance lens: left eye mirrored from the right eye
- special cases (axis cleared with no cylinder, ADD clamped)

Every mutation returns a new record. derive_all() re-runs the rules until
the record stops changing, so callers never chain recomputations by hand.
"""

import logging
from typing import Any, Callable, Dict, Optional

from optirx.config import settings
from optirx.models.schema import (
    BalanceLensLocator,
    EyeAnalysis,
    EyeFieldLocator,
    EyeMeasurement,
    EyePrescription,
    FieldLocator,
    HeaderFieldLocator,
    PrescriptionAnalysis,
    PrescriptionRecord,
    RemarkLocator,
    Remarks,
)
from optirx.utils import to_float, is_blank, fixed, signed
from .ranges import PRESCRIPTION_RANGES, NV_VN_DEFAULT
from .validation import format_axis, format_signed_power, format_vn_value, validate_vn_value
from .visual_acuity import check_high_prescription, validate_and_format_vn

log = logging.getLogger(__name__)

MAX_DERIVE_PASSES = 10

# Header fields that are not plain text and cannot be set through a HeaderFieldLocator
_NON_HEADER_FIELDS = {"id", "right_eye", "left_eye", "remarks", "balance_lens"}


def calculate_near_vision_sph(dv_sph: str, add: str) -> str:
    """N.V SPH = D.V SPH + ADD, with an explicit '+' on positive results."""
    if is_blank(dv_sph) or is_blank(add):
        return ""
    dv_value, add_value = to_float(dv_sph), to_float(add)
    if dv_value is None or add_value is None:
        return ""
    return signed(dv_value + add_value, 2)


def _cyl_is_zero_or_empty(cyl: str) -> bool:
    return is_blank(cyl) or to_float(cyl) == 0


def derive_near_vision(eye: EyePrescription) -> EyePrescription:
    """
    Rebuild the N.V row from the D.V row after an ADD entry.

    Cases are checked in order: every D.V field present; no cylinder;
    cylinder without an axis. The N.V row never carries an ADD of its own.
    """
    dv, nv = eye.dv, eye.nv
    if is_blank(dv.add):
        return eye.model_copy(deep=True)

    near_sph = calculate_near_vision_sph(dv.sph, dv.add)
    if not any(is_blank(v) for v in (dv.sph, dv.cyl, dv.ax, dv.add)):
        update = {"sph": near_sph, "cyl": dv.cyl, "ax": dv.ax}
    elif _cyl_is_zero_or_empty(dv.cyl):
        update = {"sph": near_sph, "cyl": "", "ax": ""}
    elif is_blank(dv.ax):
        update = {"sph": near_sph, "cyl": dv.cyl, "ax": ""}
    else:
        return eye.model_copy(deep=True)

    update.update(vn=NV_VN_DEFAULT, add="")
    return EyePrescription(dv=dv.model_copy(), nv=nv.model_copy(update=update))


def calculate_spherical_equivalent(sph: str, cyl: str) -> Optional[float]:
    if is_blank(sph) or is_blank(cyl):
        return None
    sph_value, cyl_value = to_float(sph), to_float(cyl)
    if sph_value is None or cyl_value is None:
        return None
    return sph_value + cyl_value / 2


def calculate_total_pd(rpd: str, lpd: str) -> str:
    """Strict policy: RPD + LPD to 1 decimal, blank unless both are numbers inside the PD range."""
    rpd_value, lpd_value = to_float(rpd), to_float(lpd)
    if rpd_value is None or lpd_value is None:
        return ""
    pd_range = PRESCRIPTION_RANGES["PD"]
    if not (pd_range.min <= rpd_value <= pd_range.max):
        return ""
    if not (pd_range.min <= lpd_value <= pd_range.max):
        return ""
    return fixed(rpd_value + lpd_value, 1)


def calculate_live_ipd(rpd: str, lpd: str) -> str:
    """Live policy: blank only when both sides are blank; a blank side counts as 0."""
    if is_blank(rpd) and is_blank(lpd):
        return ""
    rpd_value = to_float(rpd or "0")
    lpd_value = to_float(lpd or "0")
    if rpd_value is None or lpd_value is None:
        return ""
    return fixed(rpd_value + lpd_value, 1)


IPD_POLICIES: Dict[str, Callable[[str, str], str]] = {
    "live": calculate_live_ipd,
    "strict": calculate_total_pd,
}


def mirror_balance_lens(record: PrescriptionRecord) -> PrescriptionRecord:
    """Copy the right eye onto the left eye while the balance lens is on; LPD is kept."""
    if not record.balance_lens:
        return record
    right, left = record.right_eye, record.left_eye
    # the left D.V row carries its PD in lpd; rpd is a right-row column and stays blank here
    left_dv = right.dv.model_copy(update={"lpd": left.dv.lpd, "rpd": ""})
    left_eye = EyePrescription(dv=left_dv, nv=right.nv.model_copy())
    return record.model_copy(update={"left_eye": left_eye})


def clamp_add(add: str) -> str:
    """ADD snapped into its range; blank or non-numeric text is returned unchanged."""
    add_value = to_float(add)
    if is_blank(add) or add_value is None:
        return add
    add_range = PRESCRIPTION_RANGES["ADD"]
    if add_value < add_range.min:
        return fixed(add_range.min, 2)
    if add_value > add_range.max:
        return fixed(add_range.max, 2)
    return add


def handle_special_cases(data: EyeMeasurement) -> EyeMeasurement:
    update: Dict[str, str] = {}

    if _cyl_is_zero_or_empty(data.cyl):
        update["ax"] = ""

    update["add"] = clamp_add(data.add)

    se = calculate_spherical_equivalent(data.sph, data.cyl)
    update["spherical_equivalent"] = fixed(se, 2) if se is not None else ""

    return data.model_copy(update=update)


def _derive_once(record: PrescriptionRecord, ipd_policy: str) -> PrescriptionRecord:
    out = mirror_balance_lens(record)

    eyes = {}
    for name in ("right_eye", "left_eye"):
        eye = getattr(out, name)
        eyes[name] = EyePrescription(dv=handle_special_cases(eye.dv), nv=handle_special_cases(eye.nv))
    out = out.model_copy(update=eyes)

    rpd, lpd = out.right_eye.dv.rpd, out.left_eye.dv.lpd
    # a manually typed IPD stands until a PD side is entered
    if not (is_blank(rpd) and is_blank(lpd)):
        out = out.model_copy(update={"ipd": IPD_POLICIES[ipd_policy](rpd, lpd)})
    return out


def derive_all(record: PrescriptionRecord, ipd_policy: Optional[str] = None) -> PrescriptionRecord:
    """Recompute every derived field until the record reaches a fixed point."""
    policy = ipd_policy or settings.ipd_policy
    if policy not in IPD_POLICIES:
        log.warning(f"Unknown IPD policy '{policy}', using 'live'")
        policy = "live"

    current = record.model_copy(deep=True)
    for _ in range(MAX_DERIVE_PASSES):
        derived = _derive_once(current, policy)
        if derived == current:
            return derived
        current = derived
    log.warning(f"Derivation did not settle after {MAX_DERIVE_PASSES} passes for {record.prescription_no or '<new>'}")
    return current


# === Field updates ===

def _normalize_eye_value(field: str, vision: str, value: str, previous: str) -> str:
    value = "" if value is None else str(value).strip()
    if field in ("sph", "cyl", "add"):
        if to_float(value) is None:
            # keep partial input such as "-" for the validator to report
            return value
        if field == "add":
            value = clamp_add(value)
        return format_signed_power(value, field)
    if field == "ax":
        return format_axis(value)
    if field == "vn":
        if vision == "nv":
            accepted = validate_vn_value(value, near=True)
            return previous if accepted is None else accepted
        return format_vn_value(value, near=False)
    return value


def _resolve_field(model_cls, name: str) -> Optional[str]:
    for field_name, info in model_cls.model_fields.items():
        if name in (field_name, info.alias):
            return field_name
    return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def apply_field_update(
    record: PrescriptionRecord,
    locator: FieldLocator,
    value: Any,
    ipd_policy: Optional[str] = None,
) -> PrescriptionRecord:
    """
    Apply one operator edit and return the fully re-derived record.

    Order: raw update, range/step normalisation, N.V derivation when the
    edit is a D.V ADD with a value, then derive_all().
    Unknown fields and edits to mirrored left-eye fields leave the record as is.
    """
    out = record.model_copy(deep=True)

    if isinstance(locator, EyeFieldLocator):
        if out.balance_lens and locator.eye == "left" and locator.field != "lpd":
            log.debug(f"Ignoring left.{locator.vision}.{locator.field}: balance lens is on")
            return derive_all(out, ipd_policy)
        eye = out.eye(locator.eye)
        row = getattr(eye, locator.vision)
        setattr(row, locator.field, _normalize_eye_value(locator.field, locator.vision, value, getattr(row, locator.field)))
        if locator.vision == "dv" and locator.field == "add" and not is_blank(row.add):
            derived = derive_near_vision(eye)
            eye.nv = derived.nv

    elif isinstance(locator, HeaderFieldLocator):
        field_name = _resolve_field(PrescriptionRecord, locator.field)
        if field_name is None or field_name in _NON_HEADER_FIELDS:
            log.warning(f"Unknown header field '{locator.field}'")
            return record
        setattr(out, field_name, "" if value is None else str(value))

    elif isinstance(locator, RemarkLocator):
        remark = _resolve_field(Remarks, locator.remark)
        if remark is None:
            log.warning(f"Unknown remark '{locator.remark}'")
            return record
        setattr(out.remarks, remark, _as_bool(value))

    elif isinstance(locator, BalanceLensLocator):
        out.balance_lens = _as_bool(value)

    return derive_all(out, ipd_policy)


def set_field(record: PrescriptionRecord, eye: str, vision: str, field: str, value: str,
              ipd_policy: Optional[str] = None) -> PrescriptionRecord:
    return apply_field_update(record, EyeFieldLocator(eye=eye, vision=vision, field=field), value, ipd_policy)


def set_balance_lens(record: PrescriptionRecord, enabled: bool) -> PrescriptionRecord:
    return apply_field_update(record, BalanceLensLocator(), enabled)


# === Classification ===

def analyze_eye(dv: EyeMeasurement, age: str) -> EyeAnalysis:
    va = validate_and_format_vn(dv.vn, {"sph": dv.sph, "cyl": dv.cyl, "age": age})
    return EyeAnalysis(visual_acuity=va, warnings=check_high_prescription(dv.sph, dv.cyl).warnings)


def analyze_prescription(record: PrescriptionRecord) -> PrescriptionAnalysis:
    """VA status, expected-VA comparison and high-power warnings for both D.V rows."""
    return PrescriptionAnalysis(
        right_eye=analyze_eye(record.right_eye.dv, record.age),
        left_eye=analyze_eye(record.left_eye.dv, record.age),
    )
