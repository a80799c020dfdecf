"""Configuration management for Tutorial Runner.

This module exports the main Settings class and configuration utilities.
"""

from tutorial_runner.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
