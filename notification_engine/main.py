"""Command-line entry point for the notification engine."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from notification_engine.config.environment import EnvironmentConfig
from notification_engine.config.exceptions import ConfigurationError
from notification_engine.config.loader import load_config
from notification_engine.config.models import AppConfig
from notification_engine.logging import get_logger
from notification_engine.logging.config import configure_logging
from notification_engine.persistence.database import close_database, init_database
from notification_engine.pipeline import DispatchPipeline, handle_request

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the effective log level.

    Priority for the log level: CLI, then environment, then config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level

    return app_config, env_config


def build_request_body(args: argparse.Namespace) -> Dict[str, Any]:
    """Translate CLI flags into a request body; unset flags are omitted."""
    body: Dict[str, Any] = {"mode": args.mode}
    if args.institution_id:
        body["institution_id"] = args.institution_id
    if args.reference_id:
        body["reference_ids"] = args.reference_id
    if args.event_type:
        body["event_types"] = args.event_type
    if args.day:
        body["day"] = args.day
    return body


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="School notification engine - dispatch guardian notifications for domain events"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml or config/config.yaml)",
    )
    parser.add_argument("--institution-id", default=None, help="Restrict the run to one institution")
    parser.add_argument(
        "--reference-id",
        action="append",
        default=None,
        help="Restrict the run to an event reference id (repeatable)",
    )
    parser.add_argument(
        "--event-type",
        action="append",
        default=None,
        help="Restrict the run to a category id (repeatable)",
    )
    parser.add_argument("--day", default=None, help="Run window day as YYYY-MM-DD (default: today)")
    parser.add_argument(
        "--mode",
        default="batch",
        choices=["batch", "realtime"],
        help="Invocation mode recorded on delivery records (default: batch)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run one dispatch and print the JSON summary.

    Returns:
        Exit code (0 when the run succeeded, 1 otherwise)
    """
    args = build_parser().parse_args(argv)
    pipeline = None

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        environment = os.environ.get("ENVIRONMENT", "local")
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=environment,
        )

        logger.info(
            "Notification engine starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "mode": args.mode,
            },
        )

        init_database(env_config.database_url)
        pipeline = DispatchPipeline.from_config(app_config, env_config)

        summary = handle_request(build_request_body(args), pipeline)
        print(json.dumps(summary, indent=2))
        return 0 if summary.get("success") else 1

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during run",
            extra={
                "event": "service.run.failed",
                "error_type": type(e).__name__,
                "error": str(e),
            },
            exc_info=True,
        )
        return 1
    finally:
        if pipeline is not None:
            pipeline.close()
        close_database()


if __name__ == "__main__":
    sys.exit(main())
