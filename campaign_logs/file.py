from campaign_logs.base import Logger
from datetime import datetime, timezone
from pathlib import Path
import json


class FileLogger(Logger):
    """Appends one JSON object per line to <base_path>/<log_type>.log."""

    def __init__(self, log_type="server", base_path="logs", min_level="DEBUG"):
        self.log_type = log_type
        self.min_level = min_level
        self.path = Path(base_path) / f"{log_type}.log"
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _write(self, level, msg, data):
        if not self.enabled(level):
            return
        ts = datetime.now(timezone.utc).isoformat()
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps({
                "ts": ts,
                "log_type": self.log_type,
                "level": level,
                "event": msg,
                **data
            }, default=str) + "\n")

    def info(self, msg, **data):
        self._write("INFO", msg, data)

    def debug(self, msg, **data):
        self._write("DEBUG", msg, data)

    def warning(self, msg, **data):
        self._write("WARN", msg, data)

    def error(self, msg, **data):
        self._write("ERROR", msg, data)
