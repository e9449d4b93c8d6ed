from campaign_logs.stdout import StdoutLogger
from campaign_logs.file import FileLogger
from campaign_logs.json import JSONLogger
from campaign_logs.composite import CompositeLogger


def get_logger(mode="dev", log_type="server", base_path="logs", min_level="DEBUG"):
    if mode == "prod":
        return CompositeLogger(
            FileLogger(log_type=log_type, base_path=base_path, min_level=min_level),
            JSONLogger(log_type=log_type, min_level=min_level)
        )
    return StdoutLogger(log_type=log_type, min_level=min_level)
