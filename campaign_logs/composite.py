from campaign_logs.base import Logger


class CompositeLogger(Logger):
    """Fans every record out to each wrapped logger; each keeps its own min_level."""

    def __init__(self, *loggers: Logger):
        self.loggers = loggers

    def enabled(self, level: str) -> bool:
        return any(logger.enabled(level) for logger in self.loggers)

    def _fan_out(self, method: str, level: str, msg, data):
        for logger in self.loggers:
            if logger.enabled(level):
                getattr(logger, method)(msg, **data)

    def info(self, msg, **data):
        self._fan_out("info", "INFO", msg, data)

    def debug(self, msg, **data):
        self._fan_out("debug", "DEBUG", msg, data)

    def warning(self, msg, **data):
        self._fan_out("warning", "WARN", msg, data)

    def error(self, msg, **data):
        self._fan_out("error", "ERROR", msg, data)
