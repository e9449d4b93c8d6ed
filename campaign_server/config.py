import os
from pathlib import Path

# "dev" logs to stdout, "prod" logs to files + JSON stdout
ENV = os.getenv("ENV", "dev")

DB_PATH = Path(os.getenv("CAMPAIGN_DB_PATH", "db/campaigns.db"))

LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
