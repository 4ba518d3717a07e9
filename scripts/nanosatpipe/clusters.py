"""
Clustering of Tandem-Repeat Unit Squiggles

Distances and clustering are delegated to existing libraries:
- tslearn computes the pairwise DTW distance matrix (series may differ in length)
- scipy builds the hierarchical tree and cuts it into k clusters

Each cluster is represented by its medoid: the member squiggle with the
smallest summed DTW distance to the other members.

The reshaping helpers (extract_centroids, clusters_per_read) only need an
object exposing ``centroids`` and ``cluster_assignments``, so results from
any clustering backend with that shape can be passed in.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import fcluster, linkage
from scipy.spatial.distance import squareform
from tslearn.metrics import cdist_dtw
from tslearn.utils import to_time_series_dataset

from .squiggles import ChunkId

logger = logging.getLogger(__name__)

# R hclust names; scipy's "ward" is ward.D2
WARD_D = "ward.D"
WARD_D2 = "ward.D2"
LINKAGE_METHODS = (
    WARD_D, WARD_D2, "ward", "single", "complete", "average", "weighted", "centroid", "median",
)


@dataclass
class ClusteringResult:
    """Output of cluster_squiggles()."""
    labels: List[str]
    distmat: np.ndarray
    linkage: np.ndarray
    centroids: List[np.ndarray]
    cluster_assignments: Dict[str, int] = field(default_factory=dict)

    @property
    def k(self) -> int:
        """Number of clusters actually formed."""
        return len(self.centroids)

    def cluster_sizes(self) -> Dict[int, int]:
        sizes: Dict[int, int] = {}
        for label in self.cluster_assignments.values():
            sizes[label] = sizes.get(label, 0) + 1
        return dict(sorted(sizes.items()))


def dtw_distance_matrix(
    series: Sequence[Sequence[float]],
    window: Optional[int] = None,
    n_jobs: Optional[int] = None,
) -> np.ndarray:
    """
    Pairwise DTW distances between variable-length series.

    Args:
        series: Sequence of 1D signals
        window: Optional Sakoe-Chiba radius; None means unconstrained
        n_jobs: Parallel jobs passed to tslearn

    Returns:
        Symmetric (n x n) matrix with zero diagonal
    """
    dataset = to_time_series_dataset([np.asarray(s, dtype=float) for s in series])
    if window is None:
        distmat = cdist_dtw(dataset, n_jobs=n_jobs)
    else:
        distmat = cdist_dtw(
            dataset,
            global_constraint="sakoe_chiba",
            sakoe_chiba_radius=window,
            n_jobs=n_jobs,
        )
    distmat = np.asarray(distmat, dtype=float)
    # tslearn leaves tiny float asymmetries
    distmat = (distmat + distmat.T) / 2
    np.fill_diagonal(distmat, 0.0)
    return distmat


def medoid_index(distmat: np.ndarray, members: Sequence[int]) -> int:
    """Index of the member with the smallest summed distance to the other members."""
    members = list(members)
    sub = distmat[np.ix_(members, members)]
    return members[int(np.argmin(sub.sum(axis=1)))]


def hierarchical_linkage(distmat: np.ndarray, method: str = WARD_D) -> np.ndarray:
    """
    Linkage matrix of a square distance matrix.

    ``ward.D`` applies the Ward update to the distances themselves rather
    than to their squares: scipy's ward runs on sqrt(d) and the merge
    heights are squared back.

    Examples:
        >>> d = np.array([[0, 1, 2], [1, 0, 2], [2, 2, 0]], dtype=float)
        >>> hierarchical_linkage(d, "ward.D")[:, 2].round(4).tolist()
        [1.0, 2.3333]
    """
    if method not in LINKAGE_METHODS:
        raise ValueError(f"Unknown linkage method '{method}', expected one of {', '.join(LINKAGE_METHODS)}")
    condensed = squareform(np.asarray(distmat, dtype=float), checks=False)
    if method == WARD_D:
        tree = linkage(np.sqrt(condensed), method="ward")
        tree[:, 2] = tree[:, 2] ** 2
        return tree
    if method == WARD_D2:
        method = "ward"
    return linkage(condensed, method=method)


def cluster_squiggles(
    squiggles: Mapping[str, Sequence[float]],
    k: int = 2,
    method: str = WARD_D,
    window: Optional[int] = None,
    n_jobs: Optional[int] = None,
) -> ClusteringResult:
    """
    Hierarchically cluster squiggles on their DTW distances.

    Args:
        squiggles: Mapping chunk identifier -> normalized signal, e.g.
            load_squiggles(...)["positive"]
        k: Number of clusters to cut the tree into
        method: Linkage method, ``ward.D`` (default), ``ward.D2`` or a
            scipy method name
        window: Optional Sakoe-Chiba radius for DTW
        n_jobs: Parallel jobs for the distance matrix

    Returns:
        ClusteringResult with 1-based cluster labels in input order

    Raises:
        ValueError: Fewer than two squiggles, k outside [1, n] or an
            unknown method

    Examples:
        >>> squiggles = load_squiggles("/storage/NanoSatellite_chunks/", df2)
        >>> result = cluster_squiggles(squiggles["positive"], k=2)
        >>> cent = extract_centroids(result)
    """
    labels = list(squiggles.keys())
    n = len(labels)
    if n < 2:
        raise ValueError(f"Need at least 2 squiggles to cluster, got {n}")
    if k < 1 or k > n:
        raise ValueError(f"k must be between 1 and {n}, got {k}")

    series = [np.asarray(squiggles[name], dtype=float) for name in labels]
    logger.info(f"Computing DTW distances for {n} squiggles")
    distmat = dtw_distance_matrix(series, window=window, n_jobs=n_jobs)

    tree = hierarchical_linkage(distmat, method)
    assignments = fcluster(tree, t=k, criterion="maxclust")

    centroids = []
    for cluster in sorted(set(assignments)):
        members = np.flatnonzero(assignments == cluster)
        centroids.append(series[medoid_index(distmat, members)])

    result = ClusteringResult(
        labels=labels,
        distmat=distmat,
        linkage=tree,
        centroids=centroids,
        cluster_assignments={name: int(c) for name, c in zip(labels, assignments)},
    )
    logger.info(f"Formed {result.k} clusters, sizes: {result.cluster_sizes()}")
    return result


def extract_centroids(result) -> pd.DataFrame:
    """
    Flatten cluster centroids into a long table.

    Args:
        result: Object with a ``centroids`` sequence (ClusteringResult)

    Returns:
        DataFrame with columns signal, cluster (1-based), pos (1-based),
        ordered by cluster then position

    Examples:
        >>> cent = extract_centroids(result)
        >>> cent.groupby("cluster")["pos"].max()
    """
    signal: List[float] = []
    cluster: List[int] = []
    pos: List[int] = []
    for c, centroid in enumerate(result.centroids, start=1):
        values = np.asarray(centroid, dtype=float)
        signal.extend(values.tolist())
        cluster.extend([c] * len(values))
        pos.extend(range(1, len(values) + 1))

    return pd.DataFrame({
        "signal": pd.Series(signal, dtype=float),
        "cluster": pd.Series(cluster, dtype=int),
        "pos": pd.Series(pos, dtype=int),
    })


def clusters_per_read(result) -> pd.DataFrame:
    """
    Series of repeat-unit clusters per read, in chunk order.

    Args:
        result: Object with a ``cluster_assignments`` mapping of chunk file
            name -> cluster label (ClusteringResult)

    Returns:
        DataFrame with columns name and clusters (comma-joined labels,
        ascending chunk number), one row per read, sorted by read name

    Raises:
        IdentifierParseError: A key is not <read>_<token>_<chunk>.chunk

    Examples:
        >>> cpr = clusters_per_read(result)
        >>> cpr.loc[cpr["name"] == "readA", "clusters"].item()
        '2,2,1'
    """
    rows = []
    for identifier, label in result.cluster_assignments.items():
        chunk_id = ChunkId.parse(identifier)
        rows.append((chunk_id.read_name, chunk_id.chunk_number, label))

    if not rows:
        return pd.DataFrame({"name": pd.Series(dtype=str), "clusters": pd.Series(dtype=str)})

    chunks = pd.DataFrame(rows, columns=["name", "chunk_number", "cluster"])
    chunks = chunks.sort_values(["name", "chunk_number"], kind="mergesort")

    series = (
        chunks.groupby("name", sort=True)["cluster"]
        .agg(lambda labels: ",".join(str(label) for label in labels))
    )
    return pd.DataFrame({"name": series.index.tolist(), "clusters": series.tolist()})
