import json

import pytest

from optirx.config import settings
from optirx.models.schema import EyeMeasurement, EyePrescription, PrescriptionRecord
from optirx.services.repository import PersistenceError, PrescriptionRepository


@pytest.fixture
def repo(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "data_dir", str(tmp_path))
    return PrescriptionRepository(tmp_path / "tables")


def make_record(no="P2324-001", name="Asha Rao", mobile="9840012345") -> PrescriptionRecord:
    return PrescriptionRecord(
        prescription_no=no,
        name=name,
        prescribed_by="Self",
        mobile_no=mobile,
        right_eye=EyePrescription(dv=EyeMeasurement(sph="-1.00", vn="6/6", rpd="30")),
        left_eye=EyePrescription(dv=EyeMeasurement(sph="-1.25", lpd="31")),
    )


def test_insert_and_load(repo):
    record = make_record()
    pid = repo.save_prescription(record)
    loaded = repo.load_prescription(pid)
    assert loaded == record.model_copy(update={"id": pid})


def test_load_missing(repo):
    assert repo.load_prescription("nope") is None


def test_update_replaces_eye_rows(repo, tmp_path):
    pid = repo.save_prescription(make_record())
    changed = make_record()
    changed.left_eye = EyePrescription()
    changed.right_eye.dv.sph = "-2.00"
    assert repo.save_prescription(changed, pid) == pid

    loaded = repo.load_prescription(pid)
    assert loaded.right_eye.dv.sph == "-2.00"
    assert loaded.left_eye == EyePrescription()

    rows = json.loads((tmp_path / "tables" / "eye_prescriptions.json").read_text())
    assert [(r["eye_type"], r["vision_type"]) for r in rows] == [("right", "dv")]
    headers = json.loads((tmp_path / "tables" / "prescriptions.json").read_text())
    assert len(headers) == 1
    assert headers[0]["created_at"] <= headers[0]["updated_at"]


def test_update_unknown_id(repo):
    with pytest.raises(PersistenceError):
        repo.save_prescription(make_record(), "missing")


def test_exact_search_is_case_insensitive(repo):
    pid = repo.save_prescription(make_record(no="P2324-007"))
    repo.save_prescription(make_record(no="P2324-070"))
    hits = repo.search_prescriptions("p2324-007", "prescriptionNo")
    assert [h.id for h in hits] == [pid]
    assert repo.search_prescriptions("P2324-00", "prescriptionNo") == []


def test_substring_search_newest_first(repo):
    first = repo.save_prescription(make_record(no="P1", name="Asha Rao"))
    repo.save_prescription(make_record(no="P2", name="Ravi Kumar"))
    last = repo.save_prescription(make_record(no="P3", name="Asha Menon"))
    hits = repo.search_prescriptions("asha", "name")
    assert [h.id for h in hits] == [last, first]


def test_search_by_mobile_and_any_field(repo):
    pid = repo.save_prescription(make_record(mobile="9000011111"))
    assert [h.id for h in repo.search_prescriptions("00011", "mobileNo")] == [pid]
    assert [h.id for h in repo.search_prescriptions("00011")] == [pid]
    assert repo.search_prescriptions("", "name") == []
    assert repo.search_prescriptions("x", "email") == []


def fail_on(repo, monkeypatch, failing_table):
    write = repo._write

    def flaky_write(table, rows):
        if table == failing_table:
            raise PersistenceError(f"Cannot write table {table}: disk full")
        write(table, rows)

    monkeypatch.setattr(repo, "_write", flaky_write)


def test_failed_update_restores_written_tables(repo, tmp_path, monkeypatch):
    pid = repo.save_prescription(make_record())
    tables = tmp_path / "tables"
    before = {name: (tables / f"{name}.json").read_text() for name in ("prescriptions", "eye_prescriptions")}

    changed = make_record(name="Asha R")
    changed.right_eye.dv.sph = "-3.00"
    fail_on(repo, monkeypatch, "prescription_remarks")
    with pytest.raises(PersistenceError):
        repo.save_prescription(changed, pid)

    assert {name: (tables / f"{name}.json").read_text() for name in before} == before
    loaded = repo.load_prescription(pid)
    assert loaded.name == "Asha Rao"
    assert loaded.right_eye.dv.sph == "-1.00"


def test_failed_first_insert_leaves_no_tables(repo, tmp_path, monkeypatch):
    fail_on(repo, monkeypatch, "prescription_remarks")
    with pytest.raises(PersistenceError):
        repo.save_prescription(make_record())
    assert not (tmp_path / "tables" / "prescriptions.json").exists()
    assert not (tmp_path / "tables" / "eye_prescriptions.json").exists()


def test_corrupt_table(repo, tmp_path):
    (tmp_path / "tables").mkdir(exist_ok=True)
    (tmp_path / "tables" / "prescriptions.json").write_text("{not json")
    with pytest.raises(PersistenceError):
        repo.load_prescription("abc")


def test_save_writes_audit(repo, tmp_path):
    repo.save_prescription(make_record())
    audits = list((tmp_path / "audit").glob("*-prescription-insert.json"))
    assert len(audits) == 1
    payload = json.loads(audits[0].read_text())
    assert payload["prescription_no"] == "P2324-001"
