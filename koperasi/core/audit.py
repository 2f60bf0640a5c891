from pathlib import Path
from datetime import datetime
from koperasi.core.config import settings


def write_audit_log(action: str, subject: str, details: str = ""):
    """Append one line per committed financial fact to the monthly audit file."""
    logs_dir = Path(settings.LOGS_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)
    month_str = datetime.now().strftime("%Y_%m")
    log_file = logs_dir / f"audit_{month_str}.log"
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    with open(log_file, "a", encoding="utf-8") as f:
        f.write(f"{ts} | {action} | {subject} | {details}\n")
