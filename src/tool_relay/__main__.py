"""
Main entry point for the tool relay server.

Can be called with: python -m tool_relay
"""

import argparse
import logging

import uvicorn

from .app import create_app
from .settings import Settings


def main():
    """Main entry point for the tool relay server."""
    parser = argparse.ArgumentParser(
        description="Tool Relay - streaming chat with tool calls"
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Interface to bind (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=3000,
        help="Port to run the server on (default: 3000)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = Settings.from_env()
    log = logging.getLogger(__name__)
    log.info(f"Server running on http://localhost:{args.port}")
    if not settings.openai_api_key:
        log.warning("Make sure to set OPENAI_API_KEY environment variable")

    uvicorn.run(create_app(settings), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
