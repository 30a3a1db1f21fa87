"""
Web Server Runner Module.
Starts the command log API under Uvicorn.
"""

import argparse
import logging
import sys
from typing import List, Optional

import uvicorn

from caseledger.core.config import LedgerConfig
from caseledger.core.logging_config import setup_logging, shutdown_logging
from caseledger.webserver.config import ServerConfig
from caseledger.webserver.server import create_app

logger = logging.getLogger(__name__)


def build_server(config: ServerConfig) -> uvicorn.Server:
    """
    Creates (but does not start) the Uvicorn server for a configuration.
    """
    uv_config = uvicorn.Config(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level="info",
        loop="asyncio",
    )
    return uvicorn.Server(uv_config)


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point for the web server."""
    parser = argparse.ArgumentParser(description="Serve the command log HTTP API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    parser.add_argument("--database", "-d", help="Database path (overrides env)")
    parser.add_argument("--env-file", help="Optional .env file to load")
    args = parser.parse_args(argv)

    ledger_config = LedgerConfig.from_env(args.env_file)
    if args.database:
        ledger_config.db_path = args.database
    setup_logging(ledger_config)

    config = ServerConfig.from_ledger_config(ledger_config, host=args.host, port=args.port)
    try:
        logger.info(f"Starting web server on {config.host}:{config.port}")
        build_server(config).run()
        logger.info("Web server stopped.")
    except OSError as e:
        if e.errno in (98, 10048):  # Address in use
            logger.error(f"Port {config.port} is already in use.")
        else:
            logger.error(f"Web server error: {e}")
        sys.exit(1)
    finally:
        shutdown_logging()


if __name__ == "__main__":
    main()
