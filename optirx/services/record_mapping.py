"""
Record mapping between PrescriptionRecord and the three storage tables:
prescriptions (header), eye_prescriptions (up to 4 rows) and
prescription_remarks (1 row).
"""

from typing import Dict, List, Optional

from optirx.models.schema import (
    EyeMeasurement,
    EyePrescription,
    PrescriptionRecord,
    Remarks,
    StorageRows,
)

# record attribute -> prescriptions column
HEADER_FIELDS: Dict[str, str] = {
    "prescription_no": "prescription_no",
    "reference_no": "reference_no",
    "customer_class": "class",
    "prescribed_by": "prescribed_by",
    "date": "date",
    "name": "name",
    "title": "title",
    "age": "age",
    "gender": "gender",
    "customer_code": "customer_code",
    "birth_day": "birth_day",
    "marriage_anniversary": "marriage_anniversary",
    "address": "address",
    "city": "city",
    "state": "state",
    "pin_code": "pin_code",
    "phone_landline": "phone_landline",
    "mobile_no": "mobile_no",
    "email": "email",
    "ipd": "ipd",
    "retest_after": "retest_after",
    "others": "others",
}

# measurement attribute -> eye_prescriptions column
EYE_FIELDS: Dict[str, str] = {
    "sph": "sph",
    "cyl": "cyl",
    "ax": "ax",
    "add": "add_power",
    "vn": "vn",
}

# PD columns live on the D.V row of their own eye only
PD_FIELD = {"right": "rpd", "left": "lpd"}

# columns that make an eye row worth storing (spherical_equivalent alone does not)
POPULATED_COLUMNS = ("sph", "cyl", "ax", "add_power", "vn", "rpd", "lpd")

EYE_ROWS = (("right", "dv"), ("right", "nv"), ("left", "dv"), ("left", "nv"))


def _text(value) -> str:
    return "" if value is None else str(value)


def _eye_row(eye: str, vision: str, data: EyeMeasurement, prescription_id: Optional[str]) -> Dict[str, str]:
    row = {"prescription_id": prescription_id, "eye_type": eye, "vision_type": vision}
    for attr, column in EYE_FIELDS.items():
        row[column] = getattr(data, attr)
    if vision == "dv":
        pd_field = PD_FIELD[eye]
        row[pd_field] = getattr(data, pd_field)
    row["spherical_equivalent"] = data.spherical_equivalent
    return row


def to_storage_rows(record: PrescriptionRecord, prescription_id: Optional[str] = None) -> StorageRows:
    prescription = {column: getattr(record, attr) for attr, column in HEADER_FIELDS.items()}
    prescription["balance_lens"] = record.balance_lens
    if prescription_id:
        prescription["id"] = prescription_id

    eye_rows: List[Dict[str, str]] = []
    for eye, vision in EYE_ROWS:
        row = _eye_row(eye, vision, getattr(record.eye(eye), vision), prescription_id)
        if any(row.get(column) for column in POPULATED_COLUMNS):
            eye_rows.append(row)

    remarks = {"prescription_id": prescription_id}
    remarks.update(record.remarks.model_dump(by_alias=False))

    return StorageRows(prescription=prescription, eye_prescriptions=eye_rows, remarks=remarks)


def _measurement(eye: str, vision: str, row: Optional[dict]) -> EyeMeasurement:
    if not row:
        return EyeMeasurement()
    data = {attr: _text(row.get(column)) for attr, column in EYE_FIELDS.items()}
    if vision == "dv":
        pd_field = PD_FIELD[eye]
        data[pd_field] = _text(row.get(pd_field))
    data["spherical_equivalent"] = _text(row.get("spherical_equivalent"))
    return EyeMeasurement(**data)


def from_storage_rows(rows: Optional[StorageRows]) -> Optional[PrescriptionRecord]:
    """Rebuild a record; missing eye rows come back as empty measurements."""
    if rows is None or not rows.prescription:
        return None
    header = rows.prescription

    by_key = {(r.get("eye_type"), r.get("vision_type")): r for r in rows.eye_prescriptions}
    eyes = {}
    for eye in ("right", "left"):
        eyes[f"{eye}_eye"] = EyePrescription(
            dv=_measurement(eye, "dv", by_key.get((eye, "dv"))),
            nv=_measurement(eye, "nv", by_key.get((eye, "nv"))),
        )

    remark_values = {name: bool(rows.remarks.get(name)) for name in Remarks.model_fields}

    fields = {attr: _text(header.get(column)) for attr, column in HEADER_FIELDS.items()}
    if not fields["gender"]:
        fields["gender"] = "Male"

    return PrescriptionRecord(
        id=header.get("id"),
        balance_lens=bool(header.get("balance_lens")),
        remarks=Remarks(**remark_values),
        **fields,
        **eyes,
    )
