"""Public API for the telexport SDK.

This module re-exports the stable public interface:
- configure() - Initialize the SDK with terminal exporters
- dispatch() - Send a record through the configured pipeline
- shutdown() - Drain and shut down the SDK
- is_configured() - Check if the SDK has been initialized
- Config and related types - Programmatic configuration
"""

from __future__ import annotations

from telexport.api._init import configure, dispatch, get_router, is_configured, shutdown
from telexport.config import Config, PipelineConfig, ServiceConfig, ValidationConfig

__all__ = [
    "configure",
    "dispatch",
    "get_router",
    "shutdown",
    "is_configured",
    "Config",
    "PipelineConfig",
    "ServiceConfig",
    "ValidationConfig",
]
