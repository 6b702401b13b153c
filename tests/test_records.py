import random
import re
from datetime import date

from optirx.services.records import (
    CLASS_OPTIONS,
    PRESCRIBED_BY_OPTIONS,
    TITLE_OPTIONS,
    generate_prescription_no,
    new_prescription_record,
    next_month_date,
    today,
)


def test_prescription_no_format():
    assert re.match(r"^P2324-\d{3}$", generate_prescription_no("2324"))
    assert generate_prescription_no("2425", rng=random.Random(3)).startswith("P2425-")


def test_prescription_no_is_deterministic_with_seed():
    assert generate_prescription_no("2324", random.Random(7)) == generate_prescription_no("2324", random.Random(7))


def test_dates():
    assert today(date(2024, 5, 1)) == "2024-05-01"
    assert next_month_date(date(2024, 5, 1)) == "2024-06-01"
    assert next_month_date(date(2023, 12, 15)) == "2024-01-15"
    assert next_month_date(date(2024, 1, 31)) == "2024-02-29"


def test_new_record_defaults():
    record = new_prescription_record(on=date(2024, 5, 1), fiscal_year="2324")
    assert record.id is None
    assert record.prescription_no.startswith("P2324-")
    assert record.date == "2024-05-01"
    assert record.retest_after == "2024-06-01"
    assert record.title == "Mr."
    assert record.gender == "Male"
    assert record.right_eye.dv.vn == "6/"
    assert record.left_eye.nv.vn == "N"
    assert record.balance_lens is False


def test_option_lists():
    assert TITLE_OPTIONS[0] == "Mr."
    assert "Gold" in CLASS_OPTIONS
    assert PRESCRIBED_BY_OPTIONS == ["Self", "Doctor", "Optometrist"]
