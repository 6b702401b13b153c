import pytest

from optirx.models.schema import EyeMeasurement, EyePrescription, PrescriptionRecord
from optirx.services.validation import (
    format_axis,
    format_numeric_input,
    format_prescription_number,
    format_signed_power,
    format_vn_value,
    validate_axis_when_cyl_present,
    validate_numeric_field,
    validate_prescription_data,
    validate_record,
    validate_vn_value,
)


@pytest.mark.parametrize("value,kind,message", [
    ("", "SPH", "Field is required"),
    ("abc", "SPH", "Must be a number"),
    ("-25", "SPH", "Must be at least -20.0"),
    ("4.5", "ADD", "Must be at most 4.0"),
    ("1.1", "SPH", "Must be in steps of 0.25"),
    ("31.2", "PD", "Must be in steps of 0.5"),
])
def test_numeric_field_errors(value, kind, message):
    err = validate_numeric_field(value, kind)
    assert err is not None
    assert err.field == kind
    assert err.message == message


def test_numeric_field_accepts_valid_values():
    assert validate_numeric_field("1.25", "SPH") is None
    assert validate_numeric_field("-0.75", "cyl") is None
    assert validate_numeric_field("32.5", "PD") is None
    # float noise inside the step tolerance
    assert validate_numeric_field("1.2499999", "SPH") is None


def test_optional_empty_field_is_valid():
    assert validate_numeric_field("", "CYL", required=False) is None
    assert validate_numeric_field("   ", "CYL", required=False) is None


def test_format_prescription_number_snaps_to_step():
    assert format_prescription_number("1.1", "SPH") == "1.00"
    assert format_prescription_number("1.13", "SPH") == "1.25"
    assert format_prescription_number("-0.1", "SPH") == "0.00"
    assert format_prescription_number("abc", "SPH") == ""
    assert format_prescription_number("", "CYL") == ""


def test_format_axis_clamps_integers():
    assert format_axis("95.6") == "95"
    assert format_axis("200") == "180"
    assert format_axis("-5") == "0"
    assert format_axis("x") == ""
    assert format_prescription_number("90", "AXIS") == "90"


def test_format_signed_power():
    assert format_signed_power("1.1", "SPH") == "+1.00"
    assert format_signed_power("-1.1", "SPH") == "-1.00"
    assert format_signed_power("0", "SPH") == "0.00"


def test_format_numeric_input():
    assert format_numeric_input("1.5") == "+1.5"
    assert format_numeric_input("-") == "-"
    assert format_numeric_input("-1.") == "-1."
    assert format_numeric_input("+2") == "+2"
    assert format_numeric_input("abc") == ""
    assert format_numeric_input("") == ""


class TestAxisRule:

    def test_axis_required_with_cylinder(self):
        assert validate_axis_when_cyl_present("-0.50", "").message == "AXIS required when CYL is present"
        assert validate_axis_when_cyl_present("-0.50", "0").message == "AXIS required when CYL is present"

    def test_axis_out_of_range(self):
        err = validate_axis_when_cyl_present("-0.50", "190")
        assert err.message == "AXIS must be between 1 and 180 degrees"

    def test_no_cylinder_no_axis_needed(self):
        assert validate_axis_when_cyl_present("0", "") is None
        assert validate_axis_when_cyl_present("", "") is None
        assert validate_axis_when_cyl_present("-0.50", "90") is None


class TestPrescriptionData:

    def test_sph_required(self):
        errors = validate_prescription_data(EyeMeasurement())
        assert [(e.field, e.message) for e in errors] == [("sph", "Field is required")]

    def test_placeholder_vn_is_not_an_error(self):
        assert validate_prescription_data(EyeMeasurement(sph="-1.00", vn="6/")) == []

    def test_bad_vn(self):
        errors = validate_prescription_data(EyeMeasurement(sph="-1.00", vn="abc"))
        assert errors[0].field == "vn"
        assert errors[0].message == "Invalid visual acuity format (e.g., 6/6)"

    def test_optional_fields_checked_when_present(self):
        data = EyeMeasurement(sph="-1.00", cyl="-0.50", ax="90", add="5", rpd="20")
        fields = {e.field for e in validate_prescription_data(data)}
        assert fields == {"add", "rpd"}

    def test_near_row_vn(self):
        assert validate_prescription_data(EyeMeasurement(sph="+1.00", vn="N6"), vision="nv") == []
        errors = validate_prescription_data(EyeMeasurement(sph="+1.00", vn="N7"), vision="nv")
        assert errors[0].field == "vn"


class TestRecordValidation:

    def test_empty_record(self):
        errors = validate_record(PrescriptionRecord())
        assert errors["prescribedBy"] == "Prescribed By is required"
        assert errors["name"] == "Name is required"
        assert errors["rightEye.dv.sph"] == "Field is required"
        assert errors["leftEye.dv.sph"] == "Field is required"

    def test_balance_lens_skips_left_eye(self):
        errors = validate_record(PrescriptionRecord(balance_lens=True))
        assert "rightEye.dv.sph" in errors
        assert not any(k.startswith("leftEye") for k in errors)

    def test_valid_record(self):
        record = PrescriptionRecord(
            prescribed_by="Self",
            name="Asha",
            right_eye=EyePrescription(dv=EyeMeasurement(sph="-1.00", cyl="-0.50", ax="90", vn="6/6")),
            left_eye=EyePrescription(dv=EyeMeasurement(sph="-1.25", vn="6/")),
        )
        assert validate_record(record) == {}


def test_vn_value_shaping():
    assert validate_vn_value("n6", near=True) == "N6"
    assert validate_vn_value("", near=True) == "N"
    assert validate_vn_value("N7", near=True) is None
    assert validate_vn_value("20/20", near=False) == "6/6"
    assert validate_vn_value("6/", near=False) == "6/"
    assert format_vn_value("6/x9") == "6/x9"
    assert format_vn_value("") == "6/"
    assert format_vn_value("20/40") == "6/12"
    assert format_vn_value("12") == "6/12"
    assert format_vn_value("N8", near=True) == "N8"


class TestDistanceVnEntry:
    """Distance VN text that is not a Snellen fraction is kept as typed and reported."""

    @pytest.mark.parametrize("typed", ["N6", "6/6/9", "abc"])
    def test_junk_kept_as_typed(self, typed):
        assert format_vn_value(typed) == typed
        assert validate_vn_value(typed, near=False) is None

    @pytest.mark.parametrize("typed", ["N6", "6/6/9"])
    def test_junk_fails_validation(self, typed):
        errors = validate_prescription_data(EyeMeasurement(sph="-1.00", vn=format_vn_value(typed)))
        assert [(e.field, e.message) for e in errors] == [("vn", "Invalid visual acuity format (e.g., 6/6)")]

    def test_fractions_pass_through(self):
        assert format_vn_value("6/7.5") == "6/7.5"
        assert format_vn_value("6/") == "6/"
