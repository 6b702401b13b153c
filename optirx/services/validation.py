"""
Numeric Formatting & Validation

Formatting is lenient: malformed input formats to an empty string.
Validation is strict: malformed input yields a ValidationError value.
Neither side raises, so callers never need exception handling around them.
"""

import logging
import re
from typing import Dict, List, Optional

from optirx.models.schema import EyeMeasurement, PrescriptionRecord, ValidationError
from optirx.utils import to_float, to_int, is_blank, fixed, js_round
from .ranges import (
    PRESCRIPTION_RANGES,
    STEP_TOLERANCE,
    DV_VN_PREFIX,
    NV_VN_DEFAULT,
    NEAR_VN_OPTIONS,
    get_range,
)
from .visual_acuity import normalize_va, validate_and_format_vn

log = logging.getLogger(__name__)

AXIS_MIN = int(PRESCRIPTION_RANGES["AXIS"].min)
AXIS_MAX = int(PRESCRIPTION_RANGES["AXIS"].max)

# denominator of a Snellen fraction, e.g. "12" or "7.5"
SNELLEN_DENOMINATOR_RX = re.compile(r"^\d+(?:\.\d+)?$")


def is_valid_step(value: float, step: float) -> bool:
    return abs(js_round(value / step) * step - value) < STEP_TOLERANCE


def validate_numeric_field(value: str, kind: str, required: bool = True) -> Optional[ValidationError]:
    """
    Validate a raw numeric field against the range table.

    Returns None when the value is acceptable, otherwise a ValidationError
    naming the first violated rule (required, numeric, min, max, step).
    """
    field = kind.upper()
    if is_blank(value):
        return ValidationError(field=field, message="Field is required") if required else None

    num = to_float(value)
    rng = get_range(field)
    if num is None:
        return ValidationError(field=field, message="Must be a number")
    if num < rng.min:
        return ValidationError(field=field, message=f"Must be at least {rng.min}")
    if num > rng.max:
        return ValidationError(field=field, message=f"Must be at most {rng.max}")
    if not is_valid_step(num, rng.step):
        return ValidationError(field=field, message=f"Must be in steps of {rng.step}")
    return None


def format_axis(value: str) -> str:
    """Axis is an integer clamped to [0, 180]; out of range values snap to the bound."""
    if is_blank(value):
        return ""
    ax = to_int(value)
    if ax is None:
        return ""
    return str(max(AXIS_MIN, min(AXIS_MAX, ax)))


def format_prescription_number(value: str, kind: str) -> str:
    """Round to the nearest step multiple of the field and format to 2 decimals."""
    if kind.upper() == "AXIS":
        return format_axis(value)
    if is_blank(value):
        return ""
    num = to_float(value)
    if num is None:
        return ""
    step = get_range(kind).step
    return fixed(js_round(num / step) * step, 2)


def format_signed_power(value: str, kind: str) -> str:
    """Stepped power with an explicit '+' on positive values (e.g. '+1.25')."""
    out = format_prescription_number(value, kind)
    if out and float(out) > 0:
        return f"+{out}"
    return out


def format_numeric_input(value: str) -> str:
    if is_blank(value):
        return ""
    # a leading minus is kept exactly as typed
    if value.startswith("-"):
        return value
    num = to_float(value)
    if num is None:
        return ""
    if num > 0 and not value.startswith("+"):
        return f"+{num:g}"
    return value


def validate_axis_when_cyl_present(cyl: str, ax: str) -> Optional[ValidationError]:
    cyl_value = to_float(cyl)
    if cyl_value is None or cyl_value == 0:
        return None
    if is_blank(ax) or ax.strip() == "0":
        return ValidationError(field="ax", message="AXIS required when CYL is present")
    ax_value = to_int(ax)
    if ax_value is None or ax_value < 1 or ax_value > AXIS_MAX:
        return ValidationError(field="ax", message=f"AXIS must be between 1 and {AXIS_MAX} degrees")
    return None


def _relabel(error: Optional[ValidationError], field: str) -> Optional[ValidationError]:
    if error is None:
        return None
    return ValidationError(field=field, message=error.message)


def validate_prescription_data(data: EyeMeasurement, vision: str = "dv") -> List[ValidationError]:
    """Field errors for one eye row; keys are the row's field names (sph, cyl, ax, ...)."""
    errors: List[ValidationError] = []

    checks = [
        _relabel(validate_numeric_field(data.sph, "SPH"), "sph"),
        _relabel(validate_numeric_field(data.cyl, "CYL", required=False), "cyl"),
        validate_axis_when_cyl_present(data.cyl, data.ax),
    ]
    if not is_blank(data.add):
        checks.append(_relabel(validate_numeric_field(data.add, "ADD"), "add"))
    if not is_blank(data.rpd):
        checks.append(_relabel(validate_numeric_field(data.rpd, "PD"), "rpd"))
    if not is_blank(data.lpd):
        checks.append(_relabel(validate_numeric_field(data.lpd, "PD"), "lpd"))
    errors.extend(e for e in checks if e is not None)

    if vision == "nv":
        if validate_vn_value(data.vn, near=True) is None:
            errors.append(ValidationError(field="vn", message="Near vision must be N or one of " + ", ".join(NEAR_VN_OPTIONS)))
    elif not is_blank(data.vn) and data.vn != DV_VN_PREFIX and validate_and_format_vn(data.vn) is None:
        errors.append(ValidationError(field="vn", message="Invalid visual acuity format (e.g., 6/6)"))

    return errors


def validate_record(record: PrescriptionRecord) -> Dict[str, str]:
    """
    Submission gate for a whole prescription.

    Returns a mapping of display path (e.g. "rightEye.dv.ax") to message; an
    empty mapping means the record may be saved. The left D.V row is skipped
    while the balance lens is on because it is derived from the right eye.
    """
    errors: Dict[str, str] = {}
    if is_blank(record.prescribed_by):
        errors["prescribedBy"] = "Prescribed By is required"
    if is_blank(record.name):
        errors["name"] = "Name is required"

    for err in validate_prescription_data(record.right_eye.dv):
        errors[f"rightEye.dv.{err.field}"] = err.message
    if not record.balance_lens:
        for err in validate_prescription_data(record.left_eye.dv):
            errors[f"leftEye.dv.{err.field}"] = err.message

    if errors:
        log.info(f"Prescription {record.prescription_no or '<new>'} failed validation on {len(errors)} field(s)")
    return errors


# === VN field shaping ===

def validate_vn_value(value: str, near: bool = True) -> Optional[str]:
    """
    Accepted VN text for a row, or None if the text is not acceptable.

    Near rows take "N" or an N-value from the enumerated set; distance rows
    take the "6/" placeholder or a complete Snellen fraction.
    """
    if near:
        v = (value or "").strip().upper()
        if v in ("", NV_VN_DEFAULT):
            return NV_VN_DEFAULT
        return v if v in NEAR_VN_OPTIONS else None

    formatted = format_vn_value(value, near=False)
    if formatted == DV_VN_PREFIX or validate_and_format_vn(formatted) is not None:
        return formatted
    return None


def format_vn_value(value: str, near: bool = False) -> str:
    """
    Shape a VN entry for display.

    Distance rows: "20/x" becomes "6/y", a bare denominator gets the "6/"
    prefix and blank input becomes the "6/" placeholder. Anything else is
    returned as typed so validation can report it.
    """
    if near:
        return validate_vn_value(value, near=True) or NV_VN_DEFAULT
    v = (value or "").strip()
    if not v:
        return DV_VN_PREFIX
    if SNELLEN_DENOMINATOR_RX.match(v):
        return DV_VN_PREFIX + v
    if v.startswith("20/") and SNELLEN_DENOMINATOR_RX.match(v[3:]):
        return normalize_va(v)
    return v
