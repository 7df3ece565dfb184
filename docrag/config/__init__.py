"""Configuration module -- exports Settings and the YAML-aware loaders."""

from docrag.config.loader import load_settings, load_yaml_config
from docrag.config.settings import Settings

__all__ = ["Settings", "load_settings", "load_yaml_config"]
