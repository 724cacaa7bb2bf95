"""Command-line launcher: load the config file, then serve ``main:app`` with uvicorn."""
import argparse
import logging
import os
import sys

from pydantic import ValidationError

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="sub-gate", description="Per-token subscription update limiter")
    parser.add_argument("-config", "--config", dest="config", default="config.yaml", help="path to config file")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    # Must be set before app.config is imported; Settings() reads it at import time
    os.environ["SUBGATE_CONFIG"] = args.config

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        from app.config import settings
    except ValidationError as exc:
        logger.critical("Failed to load config %s: %s", args.config, exc)
        sys.exit(1)

    import uvicorn

    uvicorn.run("main:app", host=settings.server.host, port=settings.server.port, log_config=None)


if __name__ == "__main__":
    main()
