#!/usr/bin/env python3
"""
Aptitude - Main Entry Point

Runs the Flask web application after validating the environment.

Usage:
    python main.py [--host HOST] [--port PORT] [--debug]
"""

import argparse
import logging
import sys

from config.settings import ConfigError, Settings


def main():
    parser = argparse.ArgumentParser(description="Aptitude web app")

    # Web app specific arguments
    parser.add_argument("--host", default="127.0.0.1", help="Web app host")
    parser.add_argument("--port", type=int, default=3000, help="Web app port")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)

    try:
        settings = Settings.from_env()
    except ConfigError as e:
        logging.getLogger(__name__).error(str(e))
        sys.exit(1)

    from webapp.app import create_app
    app = create_app(settings)
    print(f"Starting Aptitude web app at http://{args.host}:{args.port} (debug {'on' if args.debug else 'off'})")
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
