"""
Diagnostic Figures

- plot_summary_qc: distance scatter and boxplots with suggested cutoffs
- plot_lengths: tandem repeat length per sample, colored by strand
- plot_centroids: centroid squiggle per cluster
- ns_heatmap: DTW distance heatmap with dendrograms of adjustable line width

Every function saves its figure to ``path``, closes it and returns it.
"""

import math
from pathlib import Path
from typing import Optional, Union

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.colors import LinearSegmentedColormap
from scipy.cluster.hierarchy import dendrogram

from .clusters import WARD_D, hierarchical_linkage
from .errors import SchemaError
from .summary import CENTER_COLUMN, FLANK_COLUMN, CutoffPair
from .squiggles import Strand

STRAND_COLORS = {
    Strand.POSITIVE.value: "red",
    Strand.NEGATIVE.value: "blue",
}


def _require_columns(df: pd.DataFrame, columns, what: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise SchemaError(f"{what} needs column(s) {', '.join(missing)}", missing=missing)


def _save(fig, path: Union[str, Path], **kwargs):
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, **kwargs)
    plt.close(fig)
    return fig


def plot_summary_qc(df: pd.DataFrame, cutoffs: CutoffPair, path: Union[str, Path]):
    """
    Scatter of flank vs center distance and one boxplot per metric.

    Cutoff values are drawn as red lines.
    """
    _require_columns(df, (FLANK_COLUMN, CENTER_COLUMN), "Summary QC plot")

    fig, axes = plt.subplots(2, 2, figsize=(10, 10))

    ax = axes[0, 0]
    ax.scatter(df[CENTER_COLUMN], df[FLANK_COLUMN], s=8, facecolors="none", edgecolors="black")
    ax.axvline(cutoffs.center_cutoff, color="red")
    ax.axhline(cutoffs.flank_cutoff, color="red")
    ax.set_xlabel("Mean center normalized distance")
    ax.set_ylabel("Mean flank normalized distance")

    ax = axes[0, 1]
    ax.boxplot(df[FLANK_COLUMN].dropna())
    ax.axhline(cutoffs.flank_cutoff, color="red")
    ax.set_ylabel("Mean flank normalized distance")

    ax = axes[1, 0]
    ax.boxplot(df[CENTER_COLUMN].dropna(), orientation="horizontal")
    ax.axvline(cutoffs.center_cutoff, color="red")
    ax.set_xlabel("Mean center normalized distance")

    axes[1, 1].axis("off")
    fig.tight_layout()
    return _save(fig, path)


def plot_lengths(df: pd.DataFrame, path: Union[str, Path], binwidth: float = 5):
    """
    Tandem repeat units per read, one panel per sample.

    Reads are binned on ``repeat_units`` (bin width ``binwidth``) and
    stacked horizontally around the panel center; positive strand reads
    are red and negative strand reads blue.
    """
    _require_columns(df, ("sample", "repeat_units", "strand"), "Length plot")
    if binwidth <= 0:
        raise ValueError(f"binwidth must be positive, got {binwidth}")

    samples = sorted(df["sample"].unique())
    n_panels = max(len(samples), 1)
    fig, axes = plt.subplots(1, n_panels, figsize=(2.5 * n_panels, 6), sharey=True, squeeze=False)

    strand_order = {s.value: i for i, s in enumerate(Strand)}
    for ax, sample in zip(axes[0], samples):
        reads = df[df["sample"] == sample].copy()
        reads["bin"] = np.round(reads["repeat_units"] / binwidth) * binwidth
        reads["strand_rank"] = reads["strand"].map(strand_order).fillna(len(strand_order))
        reads = reads.sort_values(["bin", "strand_rank"], kind="mergesort")

        offsets = reads.groupby("bin").cumcount()
        counts = reads.groupby("bin")["bin"].transform("size")
        x = offsets - (counts - 1) / 2

        colors = reads["strand"].map(STRAND_COLORS).fillna("grey")
        ax.scatter(x, reads["bin"], c=colors.tolist(), s=20)
        ax.set_title(str(sample), fontweight="bold", fontsize=8)
        ax.set_xticks([])
        ax.grid(axis="x", visible=False)

    fig.tight_layout()
    return _save(fig, path)


def plot_centroids(centroids: pd.DataFrame, path: Union[str, Path]):
    """Centroid signal against position, one panel per cluster."""
    _require_columns(centroids, ("signal", "cluster", "pos"), "Centroid plot")

    clusters = sorted(centroids["cluster"].unique())
    n_panels = max(len(clusters), 1)
    fig, axes = plt.subplots(1, n_panels, figsize=(4 * n_panels, 4), sharey=True, squeeze=False)
    colors = plt.get_cmap("tab10")

    for i, (ax, cluster) in enumerate(zip(axes[0], clusters)):
        points = centroids[centroids["cluster"] == cluster].sort_values("pos")
        ax.plot(points["pos"], points["signal"], marker="o", markersize=3, color=colors(i % 10))
        ax.set_title(f"cluster {cluster}")
        ax.set_xlabel("pos")
    axes[0, 0].set_ylabel("signal")

    fig.tight_layout()
    return _save(fig, path)


def heatmap_colormap(n_colors: int = 15) -> LinearSegmentedColormap:
    """Black (low) to white to red (high) palette; masked cells stay white."""
    cmap = LinearSegmentedColormap.from_list("ns_heatmap", ["black", "white", "red"], N=n_colors)
    return cmap.with_extremes(bad="white")


def ns_heatmap(
    distmat: np.ndarray,
    path: Union[str, Path],
    lwd: float = 10,
    max_dist: Optional[float] = None,
    rm0: bool = False,
    size_px: int = 10000,
    dpi: int = 100,
):
    """
    Write a heatmap of a squiggle distance matrix ordered by a ward.D dendrogram.

    Large matrices are expected, so the figure is square and sized in pixels.

    Args:
        distmat: Square distance matrix (ClusteringResult.distmat)
        path: Output image file
        lwd: Dendrogram line width
        max_dist: Hide distances above this value
        rm0: Hide distances equal to zero
        size_px: Width and height of the image in pixels
        dpi: Image resolution

    Examples:
        >>> result = cluster_squiggles(squiggles["positive"], k=2)
        >>> ns_heatmap(result.distmat, "positive_heatmap.png", max_dist=200, rm0=True)
    """
    distmat = np.asarray(distmat, dtype=float)
    if distmat.ndim != 2 or distmat.shape[0] != distmat.shape[1]:
        raise ValueError(f"distmat must be square, got shape {distmat.shape}")
    n = distmat.shape[0]
    if n < 2:
        raise ValueError("distmat must have at least 2 rows and 2 columns")

    # Ordering uses the unmasked distances
    tree = hierarchical_linkage(distmat, WARD_D)

    heat = distmat.copy()
    if max_dist is not None and not math.isnan(max_dist):
        heat[heat > max_dist] = np.nan
    if rm0:
        heat[heat == 0] = np.nan

    inches = size_px / dpi
    fig = plt.figure(figsize=(inches, inches))
    grid = fig.add_gridspec(2, 2, width_ratios=[1, 4], height_ratios=[1, 4], wspace=0.01, hspace=0.01)

    ax_top = fig.add_subplot(grid[0, 1])
    top = dendrogram(tree, ax=ax_top, no_labels=True, link_color_func=lambda _: "black")
    ax_left = fig.add_subplot(grid[1, 0])
    dendrogram(tree, ax=ax_left, orientation="left", no_labels=True, link_color_func=lambda _: "black")
    for ax in (ax_top, ax_left):
        for collection in ax.collections:
            collection.set_linewidth(lwd)
        ax.set_axis_off()

    order = top["leaves"]
    ax_heat = fig.add_subplot(grid[1, 1])
    ax_heat.imshow(
        np.ma.masked_invalid(heat[np.ix_(order, order)]),
        cmap=heatmap_colormap(),
        aspect="auto",
        origin="lower",
        interpolation="nearest",
        extent=(0, n, 0, n),
    )
    ax_heat.set_xticks([])
    ax_heat.set_yticks([])

    return _save(fig, path, dpi=dpi)
