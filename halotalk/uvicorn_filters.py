"""Custom filters for uvicorn access logging."""

import logging

from halotalk.settings import app_settings


class ExcludePathsFilter(logging.Filter):
    """
    Logging filter to exclude monitoring requests from access logs.

    Keeps health checks out of uvicorn's access log. The excluded paths
    are configurable via the LOG_EXCLUDED_PATHS setting.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not any(
            path in message for path in app_settings.LOG_EXCLUDED_PATHS
        )


def install_access_log_filter() -> None:
    """Attach ExcludePathsFilter to uvicorn's access logger."""
    access_logger = logging.getLogger("uvicorn.access")
    if not any(isinstance(f, ExcludePathsFilter) for f in access_logger.filters):
        access_logger.addFilter(ExcludePathsFilter())
