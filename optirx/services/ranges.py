"""
Prescription Range & Threshold Tables

Static configuration for the prescription engine: valid numeric ranges and
steps for each editable field, visual-acuity classification sets, the
Snellen 6/x -> 20/x conversion table, the standard Snellen steps used when
mapping a decimal VA back to a fraction, and high-power alert bounds.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class PrescriptionRange:
    """Inclusive numeric domain of a prescription field."""

    min: float
    max: float
    step: float


@dataclass(frozen=True)
class AlertBounds:
    """Values outside [min, max] raise a high-power warning."""

    min: float
    max: float


# === Field ranges ===

PRESCRIPTION_RANGES: Dict[str, PrescriptionRange] = {
    "SPH": PrescriptionRange(min=-20.0, max=20.0, step=0.25),
    "CYL": PrescriptionRange(min=-10.0, max=10.0, step=0.25),
    "AXIS": PrescriptionRange(min=0, max=180, step=1),
    "ADD": PrescriptionRange(min=0.0, max=4.0, step=0.25),
    "PD": PrescriptionRange(min=25.0, max=40.0, step=0.5),
}

# Step tolerance for floating point inputs such as "1.2499999"
STEP_TOLERANCE = 0.001


# === Visual acuity ===

VA_NORMAL = "Normal"
VA_SLIGHTLY_REDUCED = "Slightly reduced"
VA_REDUCED = "Reduced"
VA_SEVERELY_REDUCED = "Severely reduced"

# Disjoint sets, checked in this order
VA_THRESHOLDS: Dict[str, Tuple[str, ...]] = {
    VA_NORMAL: ("6/3", "6/4", "6/5", "6/6", "6/7.5", "6/9"),
    VA_SLIGHTLY_REDUCED: ("6/12", "6/15"),
    VA_REDUCED: ("6/18", "6/24", "6/36"),
    VA_SEVERELY_REDUCED: ("6/48", "6/60"),
}

# Metric (6 m) -> imperial (20 ft) Snellen equivalents
VA_CONVERSION: Dict[str, str] = {
    "6/3": "20/10",
    "6/4": "20/13",
    "6/5": "20/16",
    "6/6": "20/20",
    "6/7.5": "20/25",
    "6/9": "20/30",
    "6/12": "20/40",
    "6/15": "20/50",
    "6/18": "20/60",
    "6/24": "20/80",
    "6/36": "20/120",
    "6/48": "20/160",
    "6/60": "20/200",
}

# Reverse lookup for 20/x entries
VA_CONVERSION_REVERSE: Dict[str, str] = {v: k for k, v in VA_CONVERSION.items()}

# Nearest-neighbour targets for an expected decimal VA
STANDARD_SNELLEN: List[Tuple[float, str]] = [
    (1.0, "6/6"),
    (0.8, "6/7.5"),
    (0.67, "6/9"),
    (0.5, "6/12"),
    (0.33, "6/18"),
    (0.25, "6/24"),
    (0.17, "6/36"),
    (0.1, "6/60"),
]

# Decimal cut-offs for the expected-VA model, highest first
EXPECTED_VA_STATUS: List[Tuple[float, str]] = [
    (0.8, VA_NORMAL),
    (0.5, VA_SLIGHTLY_REDUCED),
    (0.25, VA_REDUCED),
]

# Expected-VA model coefficients
VA_SE_PENALTY = 0.1
VA_CYL_PENALTY = 0.05
VA_AGE_ONSET = 40
VA_AGE_PENALTY = 0.005
VA_MIN_DECIMAL = 0.1
VA_MAX_DECIMAL = 1.0

# Actual-vs-expected comparison
VA_COMPARISON_MARGIN = 0.1
VA_REFERRAL_MARGIN = 0.2

DV_VN_PREFIX = "6/"
NV_VN_DEFAULT = "N"
NEAR_VN_OPTIONS: Tuple[str, ...] = ("N5", "N6", "N8", "N10", "N12", "N18", "N24")


# === High prescription alerts ===

PRESCRIPTION_ALERTS: Dict[str, AlertBounds] = {
    "SPH": AlertBounds(min=-10.0, max=10.0),
    "CYL": AlertBounds(min=-4.0, max=4.0),
}


def get_range(kind: str) -> PrescriptionRange:
    """Get the range for a field kind ("SPH", "cyl", ...). Raises KeyError on unknown kinds."""
    return PRESCRIPTION_RANGES[kind.upper()]
