"""
Environment variable validation.

Checks the settings the sync and processing services cannot run without,
before the application starts serving.
"""

from typing import List, Optional, Tuple
from urllib.parse import urlparse

from studypilot.core.config import Settings, settings as default_settings
from studypilot.core.logging import get_logger

logger = get_logger(__name__)


class EnvironmentValidationError(Exception):
    """Raised when environment validation fails."""
    pass


def validate_database_url(config: Settings) -> List[str]:
    """Database URL must point at PostgreSQL through the asyncpg driver."""
    errors = []

    if not config.DATABASE_URL:
        errors.append("DATABASE_URL is not set")
        return errors

    if not config.DATABASE_URL.startswith("postgresql+asyncpg://"):
        errors.append(
            "DATABASE_URL must use asyncpg driver (format: postgresql+asyncpg://...)"
        )

    return errors


def validate_redis_url(config: Settings) -> List[str]:
    """Redis backs the local content store and the Celery broker."""
    errors = []

    for name in ("REDIS_URL", "CELERY_BROKER_URL"):
        value = getattr(config, name)
        if not value:
            errors.append(f"{name} is not set")
        elif not value.startswith(("redis://", "rediss://")):
            errors.append(f"{name} must start with redis:// or rediss://")

    return errors


def validate_http_url(name: str, value: Optional[str]) -> List[str]:
    """Validate that ``value`` is an absolute http(s) URL."""
    if not value:
        return [f"{name} is not set"]

    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return [f"{name} must be an absolute http(s) URL"]
    return []


def validate_sync_settings(config: Settings) -> List[str]:
    """Sync endpoint, connectivity probe and interval."""
    errors = []
    errors.extend(validate_http_url("SYNC_API_URL", config.SYNC_API_URL))
    errors.extend(validate_http_url("CONNECTIVITY_CHECK_URL", config.CONNECTIVITY_CHECK_URL))

    if config.SYNC_INTERVAL_MINUTES < 1:
        errors.append("SYNC_INTERVAL_MINUTES must be at least 1")

    if config.SYNC_LOCK_TIMEOUT_SECONDS < 1:
        errors.append("SYNC_LOCK_TIMEOUT_SECONDS must be at least 1")

    if not config.SYNC_AUTH_TOKEN:
        logger.warning(
            "environment_validation_warning",
            message="SYNC_AUTH_TOKEN not set - sync requests will be unauthenticated",
        )

    return errors


def validate_processing_settings(config: Settings) -> List[str]:
    """Processing limits and the content generation credentials."""
    errors = []

    if not config.ANTHROPIC_API_KEY:
        errors.append(
            "ANTHROPIC_API_KEY is not set - material processing will not work without this"
        )
    elif "your-" in config.ANTHROPIC_API_KEY.lower():
        errors.append(
            "ANTHROPIC_API_KEY appears to be a placeholder - update with real API key"
        )

    if config.CHUNK_SIZE_CHARS < 1:
        errors.append("CHUNK_SIZE_CHARS must be positive")
    if config.MAX_CONCURRENT_CHUNKS < 1:
        errors.append("MAX_CONCURRENT_CHUNKS must be positive")
    if config.PROCESSING_MAX_RETRIES < 1:
        errors.append("PROCESSING_MAX_RETRIES must be positive")
    if config.RATE_LIMIT_DELAY_MS < 0 or config.PROCESSING_RETRY_BASE_DELAY_MS < 0:
        errors.append("Delays must not be negative")

    return errors


def validate_production_settings(config: Settings) -> List[str]:
    """Production-only checks."""
    errors = []

    if not config.is_production:
        return errors

    if config.DEBUG:
        errors.append("DEBUG must be false in production")

    if config.LOG_FORMAT != "json":
        logger.warning(
            "log_format_not_json",
            message="LOG_FORMAT should be 'json' in production for better log aggregation",
        )

    return errors


def validate_environment(config: Optional[Settings] = None) -> Tuple[bool, List[str]]:
    """
    Validate all environment variables.

    Returns:
        (is_valid, list_of_errors)
    """
    config = config or default_settings
    all_errors: List[str] = []

    logger.info("validating_environment", app_env=config.APP_ENV, app_name=config.APP_NAME)

    all_errors.extend(validate_database_url(config))
    all_errors.extend(validate_redis_url(config))
    all_errors.extend(validate_sync_settings(config))
    all_errors.extend(validate_processing_settings(config))
    all_errors.extend(validate_production_settings(config))

    if all_errors:
        logger.error(
            "environment_validation_failed",
            errors=all_errors,
            error_count=len(all_errors),
        )
        return False, all_errors

    logger.info("environment_validation_successful", app_env=config.APP_ENV)
    return True, []


def validate_or_raise(config: Optional[Settings] = None) -> None:
    """
    Validate the environment, raising if anything is wrong.

    Called from the application lifespan outside development.
    """
    is_valid, errors = validate_environment(config)
    if not is_valid:
        raise EnvironmentValidationError("; ".join(errors))
