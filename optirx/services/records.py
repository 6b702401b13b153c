"""Factory for blank prescription records and their default header values."""

import calendar
import random
from datetime import date
from typing import Optional

from optirx.config import settings
from optirx.models.schema import EyeMeasurement, EyePrescription, PrescriptionRecord
from .ranges import DV_VN_PREFIX, NV_VN_DEFAULT

TITLE_OPTIONS = ["Mr.", "Ms.", "Mrs.", "Dr."]
CLASS_OPTIONS = ["A", "B", "Business", "C", "D", "Dr", "Rajness", "Gold"]
PRESCRIBED_BY_OPTIONS = ["Self", "Doctor", "Optometrist"]


def generate_prescription_no(fiscal_year: Optional[str] = None, rng: Optional[random.Random] = None) -> str:
    """P{fiscal year}-NNN with a random 3 digit serial, e.g. P2324-042."""
    fy = fiscal_year or settings.fiscal_year
    serial = (rng or random).randint(1, 999)
    return f"P{fy}-{serial:03d}"


def today(on: Optional[date] = None) -> str:
    return (on or date.today()).isoformat()


def next_month_date(on: Optional[date] = None) -> str:
    """Same day next month; the day is clamped to the length of that month (Jan 31 -> Feb 28/29)."""
    d = on or date.today()
    year, month = (d.year + 1, 1) if d.month == 12 else (d.year, d.month + 1)
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day).isoformat()


def _blank_eye() -> EyePrescription:
    return EyePrescription(dv=EyeMeasurement(vn=DV_VN_PREFIX), nv=EyeMeasurement(vn=NV_VN_DEFAULT))


def new_prescription_record(on: Optional[date] = None, fiscal_year: Optional[str] = None) -> PrescriptionRecord:
    return PrescriptionRecord(
        prescription_no=generate_prescription_no(fiscal_year),
        date=today(on),
        retest_after=next_month_date(on),
        title=TITLE_OPTIONS[0],
        gender="Male",
        right_eye=_blank_eye(),
        left_eye=_blank_eye(),
    )
