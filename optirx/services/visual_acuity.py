"""
Visual Acuity Engine

Snellen notation handling for distance-vision VN fields:
- normalisation of 20/x (feet) notation to 6/x (metres)
- status classification against fixed threshold sets
- an expected-VA model driven by refraction and age
- comparison of the measured VA with the expected one

Every function here is total: malformed input yields None or a neutral
result, never an exception.
"""

import re
from typing import Mapping, Optional, Any

from optirx.models.schema import HighPrescriptionCheck, VaComparison, VisualAcuity
from optirx.utils import to_float, to_int, fixed, round2
from .ranges import (
    VA_THRESHOLDS,
    VA_CONVERSION,
    VA_CONVERSION_REVERSE,
    VA_SEVERELY_REDUCED,
    STANDARD_SNELLEN,
    EXPECTED_VA_STATUS,
    VA_SE_PENALTY,
    VA_CYL_PENALTY,
    VA_AGE_ONSET,
    VA_AGE_PENALTY,
    VA_MIN_DECIMAL,
    VA_MAX_DECIMAL,
    VA_COMPARISON_MARGIN,
    VA_REFERRAL_MARGIN,
    PRESCRIPTION_ALERTS,
)

VN_RX = re.compile(r"^(6|20)/\d+(?:\.\d+)?$")

FEET_TO_METRES = 6 / 20


def _trim(value: float) -> str:
    out = fixed(value, 2)
    return out.rstrip("0").rstrip(".") if "." in out else out


def normalize_va(value: str) -> str:
    """Return the 6/x form of a Snellen fraction; anything unrecognised is returned unchanged."""
    if not value:
        return value
    value = value.strip()
    if value.startswith("6/"):
        return value
    if value.startswith("20/"):
        if value in VA_CONVERSION_REVERSE:
            return VA_CONVERSION_REVERSE[value]
        denominator = to_float(value[3:])
        if denominator is None or denominator <= 0:
            return value
        return f"6/{_trim(denominator * FEET_TO_METRES)}"
    return value


def get_va_status(fraction: str) -> str:
    normalized = normalize_va(fraction)
    for status, fractions in VA_THRESHOLDS.items():
        if normalized in fractions:
            return status
    # unknown fractions are treated as the worst class
    return VA_SEVERELY_REDUCED


def calculate_decimal_va(fraction: str) -> Optional[float]:
    normalized = normalize_va(fraction or "")
    parts = normalized.split("/")
    if len(parts) != 2:
        return None
    numerator, denominator = to_float(parts[0]), to_float(parts[1])
    if numerator is None or not denominator:
        return None
    return numerator / denominator


def calculate_snellen_from_decimal(decimal: float) -> str:
    """Nearest standard Snellen step for a decimal VA (first match wins on ties)."""
    best_decimal, best_fraction = STANDARD_SNELLEN[0]
    for dec, fraction in STANDARD_SNELLEN[1:]:
        if abs(dec - decimal) < abs(best_decimal - decimal):
            best_decimal, best_fraction = dec, fraction
    return best_fraction


def _status_from_decimal(decimal: float) -> str:
    for cutoff, status in EXPECTED_VA_STATUS:
        if decimal >= cutoff:
            return status
    return VA_SEVERELY_REDUCED


def calculate_expected_va(sph: str, cyl: str, age: Any) -> Optional[VisualAcuity]:
    """
    Expected best-corrected VA for a refraction and age.

    Simplified model: start at 1.0, subtract 0.1 per dioptre of spherical
    equivalent, 0.05 per dioptre of cylinder and 0.005 per year over 40,
    clamp to [0.1, 1.0] and snap to the nearest standard Snellen step.
    """
    sph_value = to_float(sph)
    cyl_value = to_float(cyl or "0")
    age_value = to_int(age) if isinstance(age, str) else (int(age) if isinstance(age, (int, float)) else None)
    if sph_value is None or cyl_value is None or age_value is None:
        return None

    se = sph_value + cyl_value / 2

    expected = VA_MAX_DECIMAL
    expected -= abs(se) * VA_SE_PENALTY
    expected -= abs(cyl_value) * VA_CYL_PENALTY
    if age_value > VA_AGE_ONSET:
        expected -= (age_value - VA_AGE_ONSET) * VA_AGE_PENALTY
    expected = max(VA_MIN_DECIMAL, min(VA_MAX_DECIMAL, expected))

    snellen = calculate_snellen_from_decimal(expected)
    return VisualAcuity(
        fraction=snellen,
        equivalent_value=VA_CONVERSION.get(snellen),
        status=_status_from_decimal(expected),
        decimal_value=expected,
    )


def analyze_visual_acuity(actual_va: str, expected_va: Optional[VisualAcuity]) -> VaComparison:
    if not expected_va or not actual_va:
        return VaComparison(difference=0.0, status="As expected")

    actual_decimal = calculate_decimal_va(actual_va)
    if actual_decimal is None:
        return VaComparison(difference=0.0, status="As expected")

    difference = actual_decimal - expected_va.decimal_value
    recommendation = None
    if difference > VA_COMPARISON_MARGIN:
        status = "Better than expected"
    elif difference < -VA_COMPARISON_MARGIN:
        status = "Worse than expected"
        if difference < -VA_REFERRAL_MARGIN:
            recommendation = "Consider referral for medical evaluation"
        else:
            recommendation = "Monitor on next visit"
    else:
        status = "As expected"

    return VaComparison(difference=round2(difference), status=status, recommendation=recommendation)


def validate_and_format_vn(value: str, prescription_data: Optional[Mapping[str, Any]] = None) -> Optional[VisualAcuity]:
    """
    Parse a distance VN field into a VisualAcuity.

    prescription_data may carry "sph", "cyl" and "age"; when the expected VA
    can be computed from it, the comparison is attached to the result.
    """
    if not value:
        return None

    normalized = normalize_va(value)
    if not VN_RX.match(normalized):
        return None

    decimal_value = calculate_decimal_va(normalized)
    if decimal_value is None:
        return None

    equivalent = VA_CONVERSION.get(normalized)
    if equivalent is None and value.strip().startswith("20/"):
        equivalent = value.strip()

    va = VisualAcuity(
        fraction=normalized,
        status=get_va_status(normalized),
        decimal_value=decimal_value,
        equivalent_value=equivalent,
    )

    if prescription_data:
        expected = calculate_expected_va(
            prescription_data.get("sph", ""),
            prescription_data.get("cyl", ""),
            prescription_data.get("age") or 0,
        )
        if expected:
            va.comparison_to_expected = analyze_visual_acuity(normalized, expected)

    return va


def check_high_prescription(sph: str, cyl: str) -> HighPrescriptionCheck:
    warnings: list[str] = []
    sph_value = to_float(sph)
    cyl_value = to_float(cyl)

    sph_alert = PRESCRIPTION_ALERTS["SPH"]
    if sph_value is not None and (sph_value < sph_alert.min or sph_value > sph_alert.max):
        warnings.append(f"High spherical power ({sph}D)")

    cyl_alert = PRESCRIPTION_ALERTS["CYL"]
    if cyl_value is not None and (cyl_value < cyl_alert.min or cyl_value > cyl_alert.max):
        warnings.append(f"High cylindrical power ({cyl}D)")

    return HighPrescriptionCheck(is_high=bool(warnings), warnings=warnings)


def vn_division(value: str) -> str:
    """Display helper: '6/3' -> '6/3 (2)' when 6 divides evenly by the denominator."""
    if not value or not value.startswith("6/"):
        return value
    denominator = value[2:]
    if not denominator.isdigit() or int(denominator) == 0:
        return value
    result = 6 / int(denominator)
    if result.is_integer():
        return f"{value} ({int(result)})"
    return value
