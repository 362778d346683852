"""
Entry point.

    python -m stemshop serve --host 0.0.0.0 --port 8000
    python -m stemshop init-db
"""

from __future__ import annotations

import argparse
import asyncio

import structlog
import uvicorn

from stemshop._log import configure_logging
from stemshop.config import ShopConfig
from stemshop.db import create_database

logger = structlog.get_logger()


async def init_db(config: ShopConfig) -> None:
    _, engine = await create_database(config.database_url)
    await engine.dispose()
    logger.info("database_initialized", database_url=config.database_url)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="stemshop")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="run the checkout API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    commands.add_parser("init-db", help="create the database schema")

    args = parser.parse_args(argv)
    config = ShopConfig()
    configure_logging(config.log_level)

    match args.command:
        case "serve":
            from stemshop.web import create_app

            uvicorn.run(create_app(config), host=args.host, port=args.port)
        case "init-db":
            asyncio.run(init_db(config))


if __name__ == "__main__":
    main()
