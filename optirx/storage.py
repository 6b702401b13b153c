from pathlib import Path

from .config import settings


def data_root() -> Path:
    root = Path(settings.data_dir)
    root.mkdir(parents=True, exist_ok=True)
    return root


def audit_dir() -> Path:
    p = data_root() / "audit"
    p.mkdir(exist_ok=True)
    return p


def table_dir() -> Path:
    p = data_root() / "tables"
    p.mkdir(exist_ok=True)
    return p
