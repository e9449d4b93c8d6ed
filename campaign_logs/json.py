from campaign_logs.base import Logger
from datetime import datetime, timezone
import json


class JSONLogger(Logger):
    def __init__(self, log_type="server", min_level="DEBUG"):
        self.log_type = log_type
        self.min_level = min_level

    def _log(self, level, msg, data):
        if not self.enabled(level):
            return
        print(json.dumps({
            "ts": datetime.now(timezone.utc).isoformat(),
            "log_type": self.log_type,
            "level": level,
            "event": msg,
            "data": data
        }, default=str))

    def info(self, msg, **data):
        self._log("INFO", msg, data)

    def debug(self, msg, **data):
        self._log("DEBUG", msg, data)

    def warning(self, msg, **data):
        self._log("WARN", msg, data)

    def error(self, msg, **data):
        self._log("ERROR", msg, data)
