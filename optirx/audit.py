import json, time
import logging

from .config import settings
from .storage import audit_dir

log = logging.getLogger(__name__)


def write_audit(name: str, payload: dict) -> None:
    if not settings.audit_enabled:
        return
    ts = time.strftime("%Y%m%d-%H%M%S")
    p = audit_dir() / f"{ts}-{name}.json"
    try:
        p.write_text(json.dumps(payload, ensure_ascii=False, indent=2, default=str), encoding="utf-8")
    except OSError as e:
        log.error(f"Audit write failed for {name}: {e}")
