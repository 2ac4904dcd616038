#!/usr/bin/env python3
"""
Run the land matching web server.
"""

import uvicorn

from utils.config import Config


def main():
    """Start the web server."""
    config = Config.load()
    config.configure_logging()

    print(f"Starting land matching API on http://{config.host}:{config.port}")
    print("Press Ctrl+C to stop")

    uvicorn.run(
        "web.app:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
