import os
from pydantic import BaseModel

class Settings(BaseModel):
    data_dir: str = os.getenv("DATA_DIR", "data")
    allow_origin: str = os.getenv("ALLOW_ORIGIN", "*")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    ipd_policy: str = os.getenv("IPD_POLICY", "live")
    estimate_policy: str = os.getenv("ESTIMATE_POLICY", "gross")
    fiscal_year: str = os.getenv("FISCAL_YEAR", "2324")
    audit_enabled: bool = os.getenv("AUDIT_ENABLED", "true").lower() in ("1", "true", "yes")

settings = Settings()
