"""
Main entry point: run the pipeline once and write the audit record.
"""

from __future__ import annotations

import sys

from loguru import logger
from pydantic import ValidationError

from payflow.config import get_settings
from payflow.errors import PayflowError
from payflow.output import format_summary, write_record
from payflow.pipeline import run_pipeline
from payflow.rpc import NodeClient


def setup_logging(level: str) -> None:
    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level.upper(),
        colorize=True,
    )


def main() -> None:
    try:
        settings = get_settings()
    except ValidationError as e:
        setup_logging("INFO")
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    setup_logging(settings.log_level)
    logger.info(f"Starting payment pipeline against {settings.rpc_url}")

    try:
        with NodeClient(
            rpc_url=settings.rpc_url,
            rpc_user=settings.rpc_user,
            rpc_password=settings.rpc_password,
            timeout=settings.rpc_timeout,
        ) as client:
            result = run_pipeline(settings, client)
        write_record(result.record, settings.output_path)
    except PayflowError as e:
        logger.error(f"{e.stage or 'pipeline'} failed: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)

    for line in format_summary(result.record).splitlines():
        logger.info(line)


if __name__ == "__main__":
    main()
