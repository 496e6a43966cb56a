"""Configuration module for the FinSight assistant."""

from finsight.config.logging import bind_request_context, configure_logging
from finsight.config.settings import FlatSettings, get_settings

__all__ = ["FlatSettings", "get_settings", "configure_logging", "bind_request_context"]
