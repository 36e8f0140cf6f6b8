"""
onair.__main__ — Entry point for ``python -m onair``
=====================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Configure logging.
4. Serve the API with uvicorn on the configured port.

Startup work (schema, settings cache, LISTEN thread, sampler) happens in
the application lifespan, so ``uvicorn onair.api.main:app`` behaves the
same.
"""

from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv

from onair.config import load_config

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("onair")


def main() -> None:
    """Bootstrap and serve the OnAir API."""
    load_dotenv()

    cfg = load_config()
    logger.info("Config loaded — Station: %s", cfg.station_name)

    uvicorn.run(
        "onair.api.main:app",
        host="0.0.0.0",
        port=cfg.api_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
