#!/usr/bin/env python3
"""
NanoSatellite Pipeline Configuration Parser

Parses YAML configuration files and exports values as environment variables
or shell-compatible format for use by bash wrappers.

Usage:
    # Get single value
    python config_parser.py config.yaml --get project.chunk_dir

    # Export all as shell variables
    python config_parser.py config.yaml --export

    # Validate configuration
    python config_parser.py config.yaml --validate

    # As Python module
    from utils.config_parser import load_config, get_nested
    config = load_config("config.yaml")
    chunk_dir = get_nested(config, "project.chunk_dir")
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict

import yaml

PLACEHOLDER_PREFIX = "/path/to"

# Defaults used when a key is absent from the YAML file
DEFAULTS: Dict[str, Any] = {
    "qc": {
        "auto_cutoff": True,
        "center_cutoff": 1.0,
        "flank_cutoff": 1.0,
    },
    "clustering": {
        "k": 2,
        "method": "ward.D",
        "window": None,
        "n_jobs": 1,
    },
    "plots": {
        "heatmap_lwd": 10,
        "heatmap_max_dist": None,
        "heatmap_rm0": False,
        "heatmap_size_px": 10000,
        "length_binwidth": 5,
    },
}

LINKAGE_METHODS = ("ward.D", "ward.D2", "ward", "single", "complete", "average", "weighted", "centroid", "median")


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Dictionary containing configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML parsing fails
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path, 'r') as f:
        config = yaml.safe_load(f)

    if config is None:
        return {}

    return config


def get_nested(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """
    Get a nested value from config using dot notation.

    Falls back to DEFAULTS before ``default``.

    Examples:
        >>> config = {"project": {"chunk_dir": "/data/chunks"}}
        >>> get_nested(config, "project.chunk_dir")
        '/data/chunks'
        >>> get_nested(config, "clustering.k")
        2
        >>> get_nested(config, "project.missing", "default")
        'default'
    """
    for source in (config, DEFAULTS):
        value = source
        for key in key_path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                break
        else:
            return value
    return default


def flatten_config(config: Dict[str, Any], prefix: str = "") -> Dict[str, str]:
    """
    Flatten nested config into flat dictionary with dot-notation keys.

    Examples:
        >>> flatten_config({"project": {"chunk_dir": "/data"}})
        {'project.chunk_dir': '/data'}
    """
    flat = {}

    for key, value in config.items():
        full_key = f"{prefix}.{key}" if prefix else key

        if isinstance(value, dict):
            flat.update(flatten_config(value, full_key))
        else:
            # Convert to string for shell compatibility
            if value is None:
                flat[full_key] = ""
            elif isinstance(value, bool):
                flat[full_key] = "true" if value else "false"
            else:
                flat[full_key] = str(value)

    return flat


def to_shell_var_name(key_path: str) -> str:
    """
    Convert dot-notation key to shell variable name.

    Examples:
        >>> to_shell_var_name("project.chunk_dir")
        'NS_PROJECT_CHUNK_DIR'
    """
    return "NS_" + key_path.upper().replace(".", "_").replace("-", "_")


def export_as_shell(config: Dict[str, Any]) -> str:
    """Export config as shell variable assignments."""
    flat = flatten_config(config)
    lines = []

    for key, value in sorted(flat.items()):
        var_name = to_shell_var_name(key)
        # Escape single quotes in value
        escaped_value = str(value).replace("'", "'\"'\"'")
        lines.append(f"export {var_name}='{escaped_value}'")

    return "\n".join(lines)


def _check_fraction(config: Dict[str, Any], key_path: str, errors: list) -> None:
    value = get_nested(config, key_path)
    if value is None:
        return
    try:
        if not 0 <= float(value) <= 1:
            errors.append(f"{key_path} must be within [0, 1], got {value}")
    except (ValueError, TypeError):
        errors.append(f"{key_path} must be a number, got {value}")


def validate_config(config: Dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate configuration for required fields and value ranges.

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    errors = []

    chunk_dir = get_nested(config, "project.chunk_dir")
    if not chunk_dir or str(chunk_dir).startswith(PLACEHOLDER_PREFIX):
        errors.append("Missing or placeholder: Signal2chunk output directory (project.chunk_dir)")
    elif not Path(chunk_dir).is_dir():
        errors.append(f"Chunk directory not found: {chunk_dir} (project.chunk_dir)")

    output_dir = get_nested(config, "project.output_dir")
    if not output_dir or str(output_dir).startswith(PLACEHOLDER_PREFIX):
        errors.append("Missing or placeholder: Output directory (project.output_dir)")

    _check_fraction(config, "qc.center_cutoff", errors)
    _check_fraction(config, "qc.flank_cutoff", errors)

    k = get_nested(config, "clustering.k")
    try:
        if int(k) < 1:
            errors.append(f"clustering.k must be >= 1, got {k}")
    except (ValueError, TypeError):
        errors.append(f"clustering.k must be an integer, got {k}")

    method = get_nested(config, "clustering.method")
    if method not in LINKAGE_METHODS:
        errors.append(f"clustering.method must be one of {', '.join(LINKAGE_METHODS)}, got {method}")

    window = get_nested(config, "clustering.window")
    if window is not None:
        try:
            if int(window) < 0:
                errors.append(f"clustering.window must be >= 0, got {window}")
        except (ValueError, TypeError):
            errors.append(f"clustering.window must be an integer, got {window}")

    binwidth = get_nested(config, "plots.length_binwidth")
    try:
        if float(binwidth) <= 0:
            errors.append(f"plots.length_binwidth must be > 0, got {binwidth}")
    except (ValueError, TypeError):
        errors.append(f"plots.length_binwidth must be a number, got {binwidth}")

    return len(errors) == 0, errors


def print_config_summary(config: Dict[str, Any]) -> None:
    """Print a human-readable config summary."""
    print("=" * 60)
    print("NanoSatellite Pipeline Configuration Summary")
    print("=" * 60)

    sections = [
        ("Project", [
            ("project.chunk_dir", "Signal2chunk Directory"),
            ("project.output_dir", "Output Directory"),
        ]),
        ("QC", [
            ("qc.auto_cutoff", "Automatic Cutoffs"),
            ("qc.center_cutoff", "Center Cutoff"),
            ("qc.flank_cutoff", "Flank Cutoff"),
        ]),
        ("Clustering", [
            ("clustering.k", "Clusters"),
            ("clustering.method", "Linkage"),
            ("clustering.window", "DTW Window"),
            ("clustering.n_jobs", "Jobs"),
        ]),
        ("Plots", [
            ("plots.heatmap_lwd", "Dendrogram Line Width"),
            ("plots.heatmap_max_dist", "Heatmap Max Distance"),
            ("plots.heatmap_rm0", "Heatmap Hide Zeros"),
            ("plots.length_binwidth", "Length Bin Width"),
        ]),
    ]

    for section_name, fields in sections:
        print(f"\n{section_name}:")
        for key_path, label in fields:
            value = get_nested(config, key_path, "not set")
            print(f"  {label}: {value}")

    print("\n" + "=" * 60)


def main():
    parser = argparse.ArgumentParser(
        description="NanoSatellite Pipeline Configuration Parser",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        "config",
        help="Path to YAML configuration file"
    )

    parser.add_argument(
        "--get",
        metavar="KEY",
        help="Get single value using dot notation (e.g., project.chunk_dir)"
    )

    parser.add_argument(
        "--export",
        action="store_true",
        help="Export all config as shell variable assignments"
    )

    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration and report errors"
    )

    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print configuration summary"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON (for --get with complex values)"
    )

    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except yaml.YAMLError as e:
        print(f"Error parsing YAML: {e}", file=sys.stderr)
        sys.exit(1)

    if args.get:
        value = get_nested(config, args.get)
        if value is None:
            print(f"Key not found: {args.get}", file=sys.stderr)
            sys.exit(1)
        if args.json:
            print(json.dumps(value))
        else:
            print(value)

    elif args.export:
        print(export_as_shell(config))

    elif args.validate:
        is_valid, errors = validate_config(config)
        if is_valid:
            print("Configuration is valid!")
            sys.exit(0)
        else:
            print("Configuration errors:", file=sys.stderr)
            for error in errors:
                print(f"  - {error}", file=sys.stderr)
            sys.exit(1)

    else:
        print_config_summary(config)


if __name__ == "__main__":
    main()
