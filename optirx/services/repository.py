"""
Prescription Repository

File-backed persistence for prescription records. Each table is one JSON
file (a list of row dicts) under the data directory:

    tables/prescriptions.json
    tables/eye_prescriptions.json
    tables/prescription_remarks.json

Writes go through a temp file + rename and are serialised with a lock. A
save that fails part way puts the tables it already rewrote back as they were.
"""

import json
import logging
import os
import tempfile
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from optirx.audit import write_audit
from optirx.models.schema import PrescriptionRecord, StorageRows
from optirx.storage import table_dir
from .record_mapping import from_storage_rows, to_storage_rows

log = logging.getLogger(__name__)

PRESCRIPTIONS = "prescriptions"
EYE_PRESCRIPTIONS = "eye_prescriptions"
REMARKS = "prescription_remarks"

# search field -> prescriptions column
EXACT_SEARCH_FIELDS = {"prescriptionNo": "prescription_no", "referenceNo": "reference_no"}
SUBSTRING_SEARCH_FIELDS = {"name": "name", "mobileNo": "mobile_no"}
# columns scanned when no field is given
ANY_SEARCH_COLUMNS = ("name", "prescription_no", "mobile_no")


class PersistenceError(Exception):
    """A table could not be read or written."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PrescriptionRepository:
    def __init__(self, root: Optional[Path] = None):
        self._root = Path(root) if root is not None else None
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        if self._root is None:
            return table_dir()
        self._root.mkdir(parents=True, exist_ok=True)
        return self._root

    # === table io ===

    def _path(self, table: str) -> Path:
        return self.root / f"{table}.json"

    def _read(self, table: str) -> List[Dict]:
        path = self._path(table)
        if not path.exists():
            return []
        try:
            rows = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read table {table}: {e}") from e
        if not isinstance(rows, list):
            raise PersistenceError(f"Table {table} is not a list of rows")
        return rows

    def _write(self, table: str, rows: List[Dict]) -> None:
        path = self._path(table)
        try:
            fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{table}-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(rows, f, ensure_ascii=False, indent=2)
            os.replace(tmp, path)
        except OSError as e:
            raise PersistenceError(f"Cannot write table {table}: {e}") from e

    def _write_tables(self, tables: Dict[str, List[Dict]]) -> None:
        """Write several tables; if one write fails, the tables already written get their old rows back."""
        previous = {table: self._read(table) if self._path(table).exists() else None for table in tables}
        written: List[str] = []
        try:
            for table, rows in tables.items():
                self._write(table, rows)
                written.append(table)
        except PersistenceError:
            for table in reversed(written):
                self._restore(table, previous[table])
            raise

    def _restore(self, table: str, rows: Optional[List[Dict]]) -> None:
        try:
            if rows is None:
                self._path(table).unlink(missing_ok=True)
            else:
                self._write(table, rows)
        except (OSError, PersistenceError) as e:
            log.error(f"Rollback of table {table} failed: {e}")

    # === queries ===

    def _rows_for(self, header: Dict, eye_rows: List[Dict], remark_rows: List[Dict]) -> StorageRows:
        pid = header.get("id")
        return StorageRows(
            prescription=header,
            eye_prescriptions=[r for r in eye_rows if r.get("prescription_id") == pid],
            remarks=next((r for r in remark_rows if r.get("prescription_id") == pid), {}),
        )

    def load_prescription(self, prescription_id: str) -> Optional[PrescriptionRecord]:
        headers = self._read(PRESCRIPTIONS)
        header = next((h for h in headers if h.get("id") == prescription_id), None)
        if header is None:
            return None
        rows = self._rows_for(header, self._read(EYE_PRESCRIPTIONS), self._read(REMARKS))
        return from_storage_rows(rows)

    def search_prescriptions(self, query: str, field: Optional[str] = None) -> List[PrescriptionRecord]:
        """
        Search headers by field.

        prescriptionNo / referenceNo: exact, case-insensitive, at most one hit
        name / mobileNo: substring, case-insensitive, newest first
        no field: substring over name, prescription number and mobile number
        """
        needle = (query or "").strip().lower()
        if not needle:
            return []

        headers = self._read(PRESCRIPTIONS)
        if field in EXACT_SEARCH_FIELDS:
            column = EXACT_SEARCH_FIELDS[field]
            hits = [h for h in headers if str(h.get(column) or "").lower() == needle][:1]
        else:
            if field is None:
                columns = ANY_SEARCH_COLUMNS
            elif field in SUBSTRING_SEARCH_FIELDS:
                columns = (SUBSTRING_SEARCH_FIELDS[field],)
            else:
                log.warning(f"Unsupported search field '{field}'")
                return []
            indexed = [
                (i, h) for i, h in enumerate(headers)
                if any(needle in str(h.get(c) or "").lower() for c in columns)
            ]
            indexed.sort(key=lambda ih: (ih[1].get("created_at") or "", ih[0]), reverse=True)
            hits = [h for _, h in indexed]

        if not hits:
            return []
        eye_rows, remark_rows = self._read(EYE_PRESCRIPTIONS), self._read(REMARKS)
        return [from_storage_rows(self._rows_for(h, eye_rows, remark_rows)) for h in hits]

    # === writes ===

    def save_prescription(self, record: PrescriptionRecord, existing_id: Optional[str] = None) -> str:
        """
        Insert (no id) or update (existing_id) a record and return its id.

        An update rewrites the header, deletes the record's eye rows and
        inserts the current non-empty ones, then replaces the remarks row.
        """
        with self._lock:
            headers = self._read(PRESCRIPTIONS)
            eye_rows = self._read(EYE_PRESCRIPTIONS)
            remark_rows = self._read(REMARKS)

            now = _now()
            if existing_id:
                idx = next((i for i, h in enumerate(headers) if h.get("id") == existing_id), None)
                if idx is None:
                    raise PersistenceError(f"Prescription {existing_id} not found")
                pid = existing_id
                rows = to_storage_rows(record, pid)
                header = dict(rows.prescription, created_at=headers[idx].get("created_at") or now, updated_at=now)
                headers[idx] = header
                eye_rows = [r for r in eye_rows if r.get("prescription_id") != pid]
                remark_rows = [r for r in remark_rows if r.get("prescription_id") != pid]
            else:
                pid = uuid.uuid4().hex
                rows = to_storage_rows(record, pid)
                headers.append(dict(rows.prescription, created_at=now, updated_at=now))

            eye_rows.extend(rows.eye_prescriptions)
            remark_rows.append(rows.remarks)

            self._write_tables({PRESCRIPTIONS: headers, EYE_PRESCRIPTIONS: eye_rows, REMARKS: remark_rows})

        action = "update" if existing_id else "insert"
        log.info(f"Saved prescription {record.prescription_no or pid} ({action}, {len(rows.eye_prescriptions)} eye rows)")
        write_audit(f"prescription-{action}", {"id": pid, "prescription_no": record.prescription_no, "rows": rows.model_dump()})
        return pid
