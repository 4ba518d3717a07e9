# NanoSatellite Pipeline Utilities
"""Common utilities for the NanoSatellite post-processing pipeline."""

from .config_parser import load_config, get_nested, validate_config

__all__ = ["load_config", "get_nested", "validate_config"]
