#!/usr/bin/env python3
"""
Run the Binaural Renderer HTTP service

Requires ffmpeg & ffprobe on PATH (or FFMPEG_PATH / FFPROBE_PATH).
"""

import sys
import logging
from pathlib import Path

# Add src/ to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn

from binaural.config import Config, ConfigError
from binaural.server import create_app

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def main():
    """Service entrypoint."""
    try:
        config = Config.load()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    host = config.get("server", "host")
    port = config.get("server", "port")
    logger.info(f"🎧 Binaural renderer listening on http://{host}:{port}")
    logger.info(f"Using ffmpeg={config.ffmpeg_path} ffprobe={config.ffprobe_path}")

    try:
        uvicorn.run(create_app(config), host=host, port=port, log_config=None)
        return 0
    except KeyboardInterrupt:
        logger.warning("Server interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Server failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
