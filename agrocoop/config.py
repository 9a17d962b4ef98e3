"""Environment-driven configuration."""

import os
from pathlib import Path


class Config:
    # Data file shared by the CLI and the web app
    DATA_FILE = Path(os.environ.get("COOP_DATA_FILE", "data/coop.yaml"))

    # Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-prod")
    HOST = os.environ.get("COOP_HOST", "0.0.0.0")
    # 5001 avoids the macOS AirPlay Receiver on 5000
    PORT = int(os.environ.get("COOP_PORT", "5001"))
    DEBUG = os.environ.get("COOP_DEBUG", "false").lower() == "true"

    LOG_LEVEL = os.environ.get("COOP_LOG_LEVEL", "WARNING").upper()
