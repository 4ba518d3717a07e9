"""
NanoSatellite Pipeline - Core Library

Post-processing of Signal2chunk output for tandem repeat squiggle analysis:
- Summary table loading, QC cutoffs and read filtering
- Raw squiggle chunk loading and per-chunk normalization
- DTW-based hierarchical clustering and reshaping of cluster results
- Diagnostic plots (see nanosatpipe.plotting)
"""

from .errors import (
    NanoSatError,
    NotFoundError,
    SchemaError,
    ParseError,
    IdentifierParseError,
)

from .summary import (
    CutoffPair,
    load_summary,
    summary_qc,
    qual_reads,
    boxplot_upper_whisker,
    summarize_by_sample,
)

from .squiggles import (
    Strand,
    ChunkId,
    ChunkFile,
    discover_chunk_files,
    load_squiggles,
    zscore,
)

from .clusters import (
    ClusteringResult,
    LINKAGE_METHODS,
    hierarchical_linkage,
    cluster_squiggles,
    extract_centroids,
    clusters_per_read,
)

__version__ = "1.0.0"

__all__ = [
    # Errors
    "NanoSatError",
    "NotFoundError",
    "SchemaError",
    "ParseError",
    "IdentifierParseError",
    # Summary
    "CutoffPair",
    "load_summary",
    "summary_qc",
    "qual_reads",
    "boxplot_upper_whisker",
    "summarize_by_sample",
    # Squiggles
    "Strand",
    "ChunkId",
    "ChunkFile",
    "discover_chunk_files",
    "load_squiggles",
    "zscore",
    # Clusters
    "ClusteringResult",
    "LINKAGE_METHODS",
    "hierarchical_linkage",
    "cluster_squiggles",
    "extract_centroids",
    "clusters_per_read",
]
