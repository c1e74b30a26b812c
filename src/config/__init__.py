"""Configuration module: exports the environment-backed Settings class."""

from src.config.settings import Settings

__all__ = ["Settings"]
