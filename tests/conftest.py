"""
Pytest configuration and fixtures for NanoSatellite Pipeline tests.
"""

import pytest
import tempfile
from pathlib import Path

import pandas as pd


# ============================================================================
# Path Fixtures
# ============================================================================

@pytest.fixture
def project_root():
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def scripts_dir(project_root):
    """Return the scripts directory."""
    return project_root / "scripts"


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ============================================================================
# Summary Table Fixtures
# ============================================================================

@pytest.fixture
def summary_rows():
    """Per-sample summary rows as written by Signal2chunk."""
    return {
        "sampleA_run1": [
            ("readA", 0.10, 0.20, 12, "positive"),
            ("readB", 0.15, 0.25, 14, "negative"),
            ("readC", 0.90, 0.22, 30, "positive"),
        ],
        "sampleB_run7": [
            ("readD", 0.12, 0.80, 11, "negative"),
            ("readE", 0.11, 0.21, 13, "positive"),
        ],
    }


def _write_summary(path: Path, rows) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(
        rows,
        columns=["name", "avg_flank_normdist", "avg_center_normdist", "repeat_units", "strand"],
    )
    df.to_csv(path, sep="\t", index=False)


@pytest.fixture
def summary_dir(temp_dir, summary_rows):
    """Directory tree with one .table file per sample."""
    root = temp_dir / "chunks"
    for sample_dir, rows in summary_rows.items():
        _write_summary(root / sample_dir / "summary.table", rows)
    return root


@pytest.fixture
def summary_df():
    """Small in-memory summary table."""
    return pd.DataFrame({
        "name": ["r1", "r2", "r3", "r4", "r5", "r6"],
        "avg_flank_normdist": [0.10, 0.20, 0.30, 0.40, 0.50, 0.99],
        "avg_center_normdist": [0.05, 0.10, 0.15, 0.20, 0.25, 0.30],
        "sample": ["A", "A", "A", "B", "B", "B"],
        "strand": ["positive", "negative", "positive", "negative", "positive", "negative"],
        "repeat_units": [10, 12, 11, 30, 31, 29],
    })


# ============================================================================
# Chunk Fixtures
# ============================================================================

@pytest.fixture
def write_chunk():
    """Factory fixture writing a chunk file with a signal column."""
    def _write_chunk(path: Path, signal, extra_columns=True):
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {"signal": signal}
        if extra_columns:
            data = {"pos": list(range(1, len(signal) + 1)), **data}
        pd.DataFrame(data).to_csv(path, sep="\t", index=False)
        return path
    return _write_chunk


@pytest.fixture
def chunk_dir(temp_dir, write_chunk):
    """Signal2chunk-like tree with positive and negative chunk files."""
    root = temp_dir / "chunks"
    pos = root / "sampleA_run1" / "positive"
    neg = root / "sampleA_run1" / "negative"
    write_chunk(pos / "readA_x_1.chunk", [1.0, 2.0, 3.0, 4.0])
    write_chunk(pos / "readA_x_2.chunk", [2.0, 4.0, 6.0])
    write_chunk(pos / "readB_x_1.chunk", [5.0, 1.0, 5.0, 1.0, 5.0])
    write_chunk(neg / "readC_y_1.chunk", [10.0, 20.0, 30.0])
    write_chunk(neg / "readD_y_1.chunk", [3.0, 1.0, 2.0])
    return root


# ============================================================================
# Clustering Fixtures
# ============================================================================

@pytest.fixture
def two_shape_squiggles():
    """Squiggles from two clearly different shapes (ramps up vs. ramps down)."""
    return {
        "readA_x_1.chunk": [0.0, 1.0, 2.0, 3.0, 4.0],
        "readA_x_2.chunk": [0.1, 1.1, 2.0, 3.1, 4.0, 4.1],
        "readB_x_1.chunk": [0.0, 0.9, 2.1, 3.0],
        "readB_x_2.chunk": [4.0, 3.0, 2.0, 1.0, 0.0],
        "readC_x_1.chunk": [4.1, 3.0, 2.1, 0.9, 0.0, -0.1],
        "readC_x_2.chunk": [4.0, 2.9, 2.0, 1.1],
    }


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config(temp_dir):
    """Provide a sample configuration dictionary."""
    chunk_dir = temp_dir / "chunks"
    chunk_dir.mkdir(exist_ok=True)
    return {
        "project": {
            "chunk_dir": str(chunk_dir),
            "output_dir": str(temp_dir / "results"),
        },
        "qc": {
            "auto_cutoff": False,
            "center_cutoff": 0.3,
            "flank_cutoff": 0.4,
        },
        "clustering": {
            "k": 3,
            "method": "ward",
            "window": None,
            "n_jobs": 4,
        },
    }
