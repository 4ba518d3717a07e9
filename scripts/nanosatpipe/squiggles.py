"""
Raw Squiggle Chunk Loading

Signal2chunk stores the raw current trace of every tandem-repeat unit
("chunk") of every read in its own tab-separated file with a ``signal``
column. Strand orientation is encoded in the directory structure:

    <root>/<sampleID>_<suffix>/.../positive/<readID>_<token>_<chunk>.chunk
    <root>/<sampleID>_<suffix>/.../negative/<readID>_<token>_<chunk>.chunk

Chunk identifiers are parsed once, at discovery time, into ChunkId
objects. Each chunk signal is z-score normalized on its own (sample mean,
sample standard deviation), never across a read or a dataset.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .errors import IdentifierParseError, NotFoundError, ParseError, SchemaError

logger = logging.getLogger(__name__)

CHUNK_SUFFIX = ".chunk"
SIGNAL_COLUMN = "signal"


class Strand(str, Enum):
    """Sequencing orientation of the originating molecule."""
    POSITIVE = "positive"
    NEGATIVE = "negative"


@dataclass(frozen=True)
class ChunkId:
    """Structured identity of one chunk file."""
    read_name: str
    token: str
    chunk_number: int
    file_name: str

    @classmethod
    def parse(cls, file_name: str) -> "ChunkId":
        """
        Parse a chunk file name of the form ``<readID>_<token>_<chunk>.chunk``.

        Trailing underscore-separated fields after the chunk number are ignored.

        Raises:
            IdentifierParseError: Fewer than three fields, or non-integer chunk number

        Examples:
            >>> ChunkId.parse("readA_x_3.chunk").chunk_number
            3
            >>> ChunkId.parse("readA_x_3.chunk").read_name
            'readA'
        """
        stem = file_name.replace(CHUNK_SUFFIX, "")
        fields = stem.split("_")
        if len(fields) < 3 or not fields[0]:
            raise IdentifierParseError(
                f"Chunk identifier '{file_name}' does not match <read>_<token>_<chunk>{CHUNK_SUFFIX}",
                identifier=file_name,
            )
        try:
            chunk_number = int(fields[2])
        except ValueError:
            raise IdentifierParseError(
                f"Chunk identifier '{file_name}' has non-integer chunk number '{fields[2]}'",
                identifier=file_name,
            ) from None

        return cls(
            read_name=fields[0],
            token=fields[1],
            chunk_number=chunk_number,
            file_name=file_name,
        )


@dataclass(frozen=True)
class ChunkFile:
    """A discovered chunk file with its strand and parsed identity."""
    path: Path
    strand: Strand
    chunk_id: ChunkId

    @property
    def name(self) -> str:
        return self.chunk_id.file_name


def classify_strand(relative_path: Union[str, Path]) -> Optional[Strand]:
    """
    Determine the strand of a chunk file from its path.

    The innermost path component that mentions a strand wins.

    Examples:
        >>> classify_strand("sampleA_1/positive/readX_a_1.chunk")
        <Strand.POSITIVE: 'positive'>
        >>> classify_strand("sampleA_1/readX_a_1.chunk") is None
        True
    """
    for part in reversed(Path(relative_path).parts):
        if Strand.POSITIVE.value in part:
            return Strand.POSITIVE
        if Strand.NEGATIVE.value in part:
            return Strand.NEGATIVE
    return None


def discover_chunk_files(root_dir: Union[str, Path]) -> Dict[Strand, List[ChunkFile]]:
    """
    Recursively find chunk files below root_dir, grouped by strand.

    Args:
        root_dir: Signal2chunk output directory

    Returns:
        Dict with both strands as keys; files in sorted path order

    Raises:
        NotFoundError: Directory missing or no .chunk files below it
        IdentifierParseError: A chunk file name does not follow the naming convention
    """
    root = Path(root_dir)
    if not root.is_dir():
        raise NotFoundError(f"Chunk directory not found: {root_dir}", path=str(root_dir))

    paths = sorted(p for p in root.rglob(f"*{CHUNK_SUFFIX}") if p.is_file())
    if not paths:
        raise NotFoundError(f"No {CHUNK_SUFFIX} files found under {root_dir}", path=str(root_dir))

    by_strand: Dict[Strand, List[ChunkFile]] = {s: [] for s in Strand}
    for path in paths:
        strand = classify_strand(path.relative_to(root))
        if strand is None:
            logger.debug(f"No strand in path, ignoring: {path}")
            continue
        by_strand[strand].append(
            ChunkFile(path=path, strand=strand, chunk_id=ChunkId.parse(path.name))
        )

    for strand, files in by_strand.items():
        logger.info(f"Found {len(files)} {strand.value} chunk files")
    return by_strand


def zscore(values: Sequence[float]) -> np.ndarray:
    """
    Z-score normalize one signal using the sample standard deviation.

    Missing values (NaN) are ignored for the mean and standard deviation
    and stay NaN in the output. Signals with fewer than two observed points
    or zero variance map to zeros.

    Examples:
        >>> zscore([1, 2, 3]).tolist()
        [-1.0, 0.0, 1.0]
        >>> zscore([4, 4, 4]).tolist()
        [0.0, 0.0, 0.0]
        >>> zscore([1, 2, float("nan"), 3]).tolist()
        [-1.0, 0.0, nan, 1.0]
    """
    x = np.asarray(values, dtype=float)
    observed = ~np.isnan(x)
    if observed.sum() < 2:
        return np.where(observed, 0.0, np.nan)
    sd = np.nanstd(x, ddof=1)
    if sd == 0 or not np.isfinite(sd):
        return np.where(observed, 0.0, np.nan)
    return (x - np.nanmean(x)) / sd


def read_chunk_signal(path: Union[str, Path]) -> np.ndarray:
    """
    Read the raw ``signal`` column of one chunk file.

    Raises:
        ParseError: The file is not a tab-separated table, or the signal is
            not numeric, empty or has missing values
        SchemaError: No signal column
    """
    try:
        with open(path, "r") as handle:
            table = pd.read_csv(handle, sep="\t")
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ParseError(f"Cannot parse chunk {path}: {e}", path=str(path)) from e

    if SIGNAL_COLUMN not in table.columns:
        raise SchemaError(
            f"{path}: missing required column '{SIGNAL_COLUMN}'",
            path=str(path),
            missing=[SIGNAL_COLUMN],
        )

    try:
        signal = table[SIGNAL_COLUMN].to_numpy(dtype=float)
    except (TypeError, ValueError) as e:
        raise ParseError(f"{path}: non-numeric signal values: {e}", path=str(path)) from e

    if len(signal) == 0:
        raise ParseError(f"{path}: chunk has no signal rows", path=str(path))
    missing = np.flatnonzero(np.isnan(signal))
    if len(missing):
        raise ParseError(
            f"{path}: {len(missing)} missing signal value(s), first at row {missing[0] + 1}",
            path=str(path),
        )
    return signal


def filter_chunk_files(chunk_files: List[ChunkFile], read_names) -> List[ChunkFile]:
    """Keep chunk files whose read identifier is in read_names."""
    wanted = {str(name) for name in read_names}
    return [c for c in chunk_files if c.chunk_id.read_name in wanted]


def load_squiggles(
    root_dir: Union[str, Path],
    df: Optional[pd.DataFrame] = None,
) -> Dict[str, Dict[str, np.ndarray]]:
    """
    Load z-score normalized squiggles of all chunks, split by strand.

    Args:
        root_dir: Signal2chunk output directory
        df: Optional DataFrame from qual_reads(); only reads in its
            ``name`` column are loaded

    Returns:
        {"positive": {chunk_file_name: signalz}, "negative": {...}}

    Raises:
        NotFoundError, IdentifierParseError, ParseError, SchemaError

    Examples:
        >>> df2 = qual_reads(df, qc.center_cutoff)
        >>> squiggles = load_squiggles("/storage/NanoSatellite_chunks/", df2)
        >>> len(squiggles["positive"])
    """
    by_strand = discover_chunk_files(root_dir)

    if df is not None:
        if "name" not in df.columns:
            raise SchemaError("Read filter table has no 'name' column", missing=["name"])
        by_strand = {
            strand: filter_chunk_files(files, df["name"])
            for strand, files in by_strand.items()
        }

    squiggles: Dict[str, Dict[str, np.ndarray]] = {}
    for strand, files in by_strand.items():
        loaded: Dict[str, np.ndarray] = {}
        for chunk in files:
            signal = read_chunk_signal(chunk.path)
            if len(signal) < 2 or np.all(signal == signal[0]):
                logger.warning(f"Constant or single-point signal, normalized to zeros: {chunk.path}")
            loaded[chunk.name] = zscore(signal)
        logger.info(f"Loaded {len(loaded)} {strand.value} squiggles")
        squiggles[strand.value] = loaded
    return squiggles
