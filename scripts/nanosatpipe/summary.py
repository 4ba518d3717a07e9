"""
Signal2chunk Summary Tables: Loading, QC Cutoffs and Read Filtering

Signal2chunk writes one tab-separated ``.table`` file per run, one row per
sequencing read. Files are laid out per sample:

    <root>/<sampleID>_<suffix>/<anything>.table

Columns used here:
    name                  Read identifier
    avg_flank_normdist    Normalized DTW distance of flank delineation
    avg_center_normdist   Normalized DTW distance of repeat-unit segmentation
    repeat_units          Number of tandem repeat units (optional, plotting)
    strand                positive/negative (optional, plotting)

Quality Control:
----------------
Reads whose delineation or segmentation distance is an outlier are
removed. The suggested cutoff for each metric is the upper whisker of a
standard boxplot: the largest observation within 1.5 x IQR of the upper
hinge, with hinges computed by Tukey's five-number summary.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Union

import numpy as np
import pandas as pd

from .errors import NotFoundError, ParseError, SchemaError

logger = logging.getLogger(__name__)

SUMMARY_SUFFIX = ".table"
NAME_COLUMN = "name"
FLANK_COLUMN = "avg_flank_normdist"
CENTER_COLUMN = "avg_center_normdist"
REQUIRED_COLUMNS = (FLANK_COLUMN, CENTER_COLUMN)

# Normalized distances lie in [0, 1]
NO_CUTOFF = 1.0


@dataclass(frozen=True)
class CutoffPair:
    """Suggested distance cutoffs for read filtering."""
    flank_cutoff: float
    center_cutoff: float


def sample_from_path(path: Union[str, Path]) -> str:
    """
    Derive the sample label of a summary file from its parent directory.

    Examples:
        >>> sample_from_path("/data/sampleA_run1/x.table")
        'sampleA'
        >>> sample_from_path("/data/sampleB/x.table")
        'sampleB'
    """
    return Path(path).parent.name.split("_", 1)[0]


def read_table(path: Union[str, Path]) -> pd.DataFrame:
    """
    Read one tab-separated table with header.

    Read names are kept as text, so numeric-looking names such as "0123"
    are not converted to numbers.

    Raises:
        ParseError: If the file is empty or not a valid delimited table
    """
    try:
        with open(path, "r") as handle:
            return pd.read_csv(handle, sep="\t", dtype={NAME_COLUMN: str})
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ParseError(f"Cannot parse table {path}: {e}", path=str(path)) from e


def find_summary_files(root_dir: Union[str, Path]) -> List[Path]:
    """
    Recursively list ``.table`` files below root_dir in sorted order.

    Raises:
        NotFoundError: If root_dir does not exist or holds no .table files
    """
    root = Path(root_dir)
    if not root.is_dir():
        raise NotFoundError(f"Summary directory not found: {root_dir}", path=str(root_dir))

    files = sorted(p for p in root.rglob(f"*{SUMMARY_SUFFIX}") if p.is_file())
    if not files:
        raise NotFoundError(
            f"No {SUMMARY_SUFFIX} files found under {root_dir}", path=str(root_dir)
        )
    return files


def load_summary(root_dir: Union[str, Path]) -> pd.DataFrame:
    """
    Load and combine all Signal2chunk summary tables below a directory.

    Every row gets a ``sample`` column taken from the name of its file's
    parent directory, truncated at the first underscore.

    Args:
        root_dir: Signal2chunk output directory

    Returns:
        DataFrame with the rows of all tables, in sorted file order

    Raises:
        NotFoundError: Directory missing or no .table files
        SchemaError: Required column missing, or column sets differ between files
        ParseError: A file is not a valid tab-separated table

    Examples:
        >>> df = load_summary("/storage/NanoSatellite_chunks/")
        >>> df.groupby("sample").size()
    """
    files = find_summary_files(root_dir)
    logger.info(f"Found {len(files)} summary tables under {root_dir}")

    frames = []
    columns = None
    for path in files:
        table = read_table(path)

        missing = [c for c in REQUIRED_COLUMNS if c not in table.columns]
        if missing:
            raise SchemaError(
                f"{path}: missing required column(s) {', '.join(missing)}",
                path=str(path),
                missing=missing,
            )

        if columns is None:
            columns = list(table.columns)
        elif set(table.columns) != set(columns):
            extra = sorted(set(table.columns) - set(columns))
            absent = sorted(set(columns) - set(table.columns))
            raise SchemaError(
                f"{path}: columns do not match {files[0]} "
                f"(unexpected: {extra}, missing: {absent})",
                path=str(path),
                missing=absent,
            )

        table = table[columns].copy()
        table["sample"] = sample_from_path(path)
        frames.append(table)

    summary = pd.concat(frames, ignore_index=True)
    logger.info(f"Loaded {len(summary)} reads from {summary['sample'].nunique()} samples")
    return summary


def fivenum(values: Sequence[float]) -> np.ndarray:
    """
    Tukey's five-number summary (minimum, lower hinge, median, upper hinge, maximum).

    NaN values are ignored.

    Examples:
        >>> fivenum([1, 2, 3, 4, 5, 100]).tolist()
        [1.0, 2.0, 3.5, 5.0, 100.0]
    """
    x = np.sort(np.asarray(values, dtype=float))
    x = x[~np.isnan(x)]
    n = len(x)
    if n == 0:
        raise ValueError("fivenum() requires at least one non-NaN value")

    n4 = np.floor((n + 3) / 2) / 2
    d = np.array([1, n4, (n + 1) / 2, n + 1 - n4, n])
    lo = np.floor(d).astype(int) - 1
    hi = np.ceil(d).astype(int) - 1
    return 0.5 * (x[lo] + x[hi])


def boxplot_upper_whisker(values: Sequence[float], coef: float = 1.5) -> float:
    """
    Upper whisker of a standard boxplot.

    The whisker is the largest observation that is not an outlier, i.e.
    not above ``upper_hinge + coef * (upper_hinge - lower_hinge)``.

    Args:
        values: Numeric observations (NaN ignored)
        coef: Whisker length in IQR units

    Returns:
        Upper whisker value (always an observed value)

    Examples:
        >>> boxplot_upper_whisker([1, 2, 3, 4, 5, 100])
        5.0
        >>> boxplot_upper_whisker([0.1, 0.2, 0.3])
        0.3
    """
    x = np.asarray(values, dtype=float)
    x = x[~np.isnan(x)]
    stats = fivenum(x)
    iqr = stats[3] - stats[1]
    inside = (x >= stats[1] - coef * iqr) & (x <= stats[3] + coef * iqr)
    return float(x[inside].max())


def summary_qc(df: pd.DataFrame) -> CutoffPair:
    """
    Suggest flank and center distance cutoffs for a summary table.

    The table is not modified. Plotting of the same statistics lives in
    ``nanosatpipe.plotting.plot_summary_qc``.

    Args:
        df: DataFrame from load_summary()

    Returns:
        CutoffPair of boxplot upper whiskers

    Examples:
        >>> qc = summary_qc(load_summary("/storage/NanoSatellite_chunks/"))
        >>> qc.center_cutoff
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise SchemaError(f"Summary table missing column(s) {', '.join(missing)}", missing=missing)

    return CutoffPair(
        flank_cutoff=boxplot_upper_whisker(df[FLANK_COLUMN]),
        center_cutoff=boxplot_upper_whisker(df[CENTER_COLUMN]),
    )


def qual_reads(
    df: pd.DataFrame,
    center_cutoff: float = NO_CUTOFF,
    flank_cutoff: float = NO_CUTOFF,
) -> pd.DataFrame:
    """
    Keep reads whose center and flank distances are at or below the cutoffs.

    Args:
        df: DataFrame from load_summary()
        center_cutoff: Maximum avg_center_normdist (default 1, no filtering)
        flank_cutoff: Maximum avg_flank_normdist (default 1, no filtering)

    Returns:
        Subset of df with its original index; may be empty

    Examples:
        >>> qc = summary_qc(df)
        >>> passed = qual_reads(df, qc.center_cutoff)
    """
    mask = (df[CENTER_COLUMN] <= center_cutoff) & (df[FLANK_COLUMN] <= flank_cutoff)
    return df[mask]


def summarize_by_sample(df: pd.DataFrame) -> pd.DataFrame:
    """Per-sample read counts, split by strand when a strand column exists."""
    counts = df.groupby("sample").size().rename("reads").to_frame()
    if "strand" in df.columns:
        by_strand = df.groupby(["sample", "strand"]).size().unstack(fill_value=0)
        counts = counts.join(by_strand).fillna(0)
    return counts.reset_index()
