# main.py
from __future__ import annotations

from dotenv import load_dotenv
load_dotenv()

import os

import uvicorn

from fleetmon.api.app import create_app
from fleetmon.config.settings import get_settings
from fleetmon.logger import configure_logging

settings = get_settings()
log = configure_logging(settings.log_dir, settings.log_level)

HOST = os.environ.get("FLEETMON_HOST", "0.0.0.0")
PORT = int(os.environ.get("FLEETMON_PORT", 3000))

app = create_app(settings)


if __name__ == "__main__":
    log.info(f"[MAIN] fleetmon listening on http://{HOST}:{PORT}")
    uvicorn.run(app, host=HOST, port=PORT, log_config=None)
