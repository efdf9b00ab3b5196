import sys
import logging
from typing import Any, Optional

from loguru import logger

from image_sync.config.settings import AppSettings, settings as default_settings


def _mask(value: str) -> str:
    if len(value) > 8:
        return value[:4] + "****" + value[-4:]
    return "********"


def make_sensitive_data_filter(app_settings: AppSettings):
    """Builds a loguru filter that masks configured secrets in log records."""
    sensitive_keys = ["key", "token", "password", "secret"]
    secrets = [
        s
        for s in (
            app_settings.supabase_key,
            app_settings.legacy_supabase_key,
        )
        if s
    ]

    def mask_value(value: Any) -> Any:
        if isinstance(value, dict):
            return {
                k: (
                    _mask(v)
                    if isinstance(v, str)
                    and any(sk in str(k).lower() for sk in sensitive_keys)
                    else mask_value(v)
                )
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [mask_value(item) for item in value]
        if isinstance(value, str):
            for secret in secrets:
                if secret in value:
                    value = value.replace(secret, "********")
        return value

    def sensitive_data_filter(record: dict[str, Any]) -> bool:
        if "extra" in record and isinstance(record["extra"], dict):
            record["extra"] = mask_value(record["extra"])

        for secret in secrets:
            if secret in record["message"]:
                record["message"] = record["message"].replace(secret, "********")

        return True  # Keep the record after filtering/masking

    return sensitive_data_filter


class InterceptHandler(logging.Handler):
    """Forwards standard logging records (httpx, supabase) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(app_settings: Optional[AppSettings] = None) -> None:
    """Configures Loguru logger based on application settings."""
    app_settings = app_settings or default_settings
    sensitive_filter = make_sensitive_data_filter(app_settings)

    logger.remove()  # Remove default handler

    logger.add(
        sys.stderr,
        level=app_settings.log_level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
        backtrace=True,
        diagnose=True,
        filter=sensitive_filter,
    )

    if app_settings.log_file:
        logger.add(
            str(app_settings.log_file),
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            filter=sensitive_filter,
        )

    logger.info(f"Logging initialized with level: {app_settings.log_level}")

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logger.debug("Standard logging intercepted.")
