#!/usr/bin/env python3
"""
Runner script for the Flask application.
"""

import argparse

from config_manager import ConfigManager
from imglift.logging_config import setup_logging
from imglift.main import create_app


def main():
    parser = argparse.ArgumentParser(description="imglift background removal server")
    parser.add_argument("--port", type=int, help="Port to run the server on")
    parser.add_argument("--host", type=str, help="Host to bind the server to")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    args = parser.parse_args()

    config_manager = ConfigManager()
    app_config = config_manager.get_app_config()

    # Override configuration with command line arguments
    if args.port:
        app_config.port = args.port
    if args.host:
        app_config.host = args.host
    if args.debug:
        app_config.debug = args.debug

    setup_logging(debug=app_config.debug)
    app = create_app(config_manager)

    print(f"🚀 Starting imglift on {app_config.host}:{app_config.port}")
    app.run(
        host=app_config.host,
        port=app_config.port,
        debug=app_config.debug,
        threaded=True
    )


if __name__ == "__main__":
    main()
