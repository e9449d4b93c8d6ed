from campaign_logs.chooseLogType import get_logger
from campaign_server.config import ENV, LOG_DIR, LOG_LEVEL


def _logger(log_type):
    return get_logger(mode=ENV, log_type=log_type, base_path=LOG_DIR, min_level=LOG_LEVEL)


server_logger = _logger("server")
campaign_logger = _logger("campaign")
pack_logger = _logger("packs")
shop_logger = _logger("shop")
