# lead_intake/core/__init__.py
"""
Core package for configuration, logging, and shared exceptions.
"""

from lead_intake.core.config import (
    PipelineConfig,
    Settings,
    get_pipeline_config,
    load_config,
    settings,
)
from lead_intake.core.logging import configure_structlog, get_structlog_logger

__all__ = [
    "PipelineConfig",
    "Settings",
    "settings",
    "get_pipeline_config",
    "load_config",
    "configure_structlog",
    "get_structlog_logger",
]
