#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Cluster Tandem Repeat Unit Squiggles

Loads normalized chunk squiggles (optionally only reads passing QC),
clusters each strand on DTW distances and writes centroid and per-read
cluster series tables plus figures.

Input:
    - {CHUNK_DIR}/**/positive|negative/*.chunk
    - {OUTPUT_DIR}/qc/filtered_reads.tsv (optional, from 1_summary_qc.py)

Output ({OUTPUT_DIR}/clustering/):
    - {strand}_centroids.tsv          signal / cluster / pos
    - {strand}_clusters_per_read.tsv  name / clusters
    - {strand}_assignments.tsv        chunk / cluster
    - {strand}_centroids.png
    - {strand}_heatmap.png

Usage:
    python 2_cluster_squiggles.py --input /storage/NanoSatellite_chunks -k 2
    python 2_cluster_squiggles.py --config config.yaml --reads results/qc/filtered_reads.tsv
    python 2_cluster_squiggles.py --strand positive --max-dist 200 --rm0
"""

import os
import sys
import argparse
import logging

import pandas as pd

_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
_SCRIPTS_DIR = os.path.dirname(_SCRIPT_DIR)
_PROJECT_DIR = os.path.dirname(_SCRIPTS_DIR)
sys.path.insert(0, _SCRIPTS_DIR)

from nanosatpipe import (
    NanoSatError,
    Strand,
    load_squiggles,
    cluster_squiggles,
    extract_centroids,
    clusters_per_read,
)
from nanosatpipe.plotting import plot_centroids, ns_heatmap
from utils.config_parser import load_config, get_nested

CHUNK_DIR = os.environ.get("NS_CHUNK_DIR", os.path.join(_PROJECT_DIR, "NanoSatellite_chunks"))
OUTPUT_DIR = os.environ.get("NS_OUTPUT_DIR", os.path.join(_PROJECT_DIR, "nanosat_results"))

logger = logging.getLogger(__name__)


def setup_logging(output_dir: str) -> None:
    os.makedirs(output_dir, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(os.path.join(output_dir, "cluster_squiggles.log")),
        ],
    )


def load_read_filter(reads_file):
    """Read the filtered read table written by 1_summary_qc.py, or None."""
    if not reads_file:
        return None
    if not os.path.exists(reads_file):
        logger.warning(f"Read filter not found, loading all reads: {reads_file}")
        return None
    df = pd.read_csv(reads_file, sep="\t", dtype={"name": str})
    logger.info(f"Restricting to {len(df)} reads from {reads_file}")
    return df


def cluster_strand(strand: str, squiggles: dict, out_dir: str, params: dict) -> dict:
    """Cluster one strand and write its tables and figures."""
    result = cluster_squiggles(
        squiggles,
        k=params["k"],
        method=params["method"],
        window=params["window"],
        n_jobs=params["n_jobs"],
    )

    centroids = extract_centroids(result)
    centroids.to_csv(os.path.join(out_dir, f"{strand}_centroids.tsv"), sep="\t", index=False)

    per_read = clusters_per_read(result)
    per_read.to_csv(os.path.join(out_dir, f"{strand}_clusters_per_read.tsv"), sep="\t", index=False)

    pd.DataFrame(
        list(result.cluster_assignments.items()), columns=["chunk", "cluster"]
    ).to_csv(os.path.join(out_dir, f"{strand}_assignments.tsv"), sep="\t", index=False)

    if not params["no_plots"]:
        plot_centroids(centroids, os.path.join(out_dir, f"{strand}_centroids.png"))
        ns_heatmap(
            result.distmat,
            os.path.join(out_dir, f"{strand}_heatmap.png"),
            lwd=params["lwd"],
            max_dist=params["max_dist"],
            rm0=params["rm0"],
            size_px=params["size_px"],
        )

    return {
        "strand": strand,
        "chunks": len(squiggles),
        "reads": len(per_read),
        "clusters": result.cluster_sizes(),
    }


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="DTW hierarchical clustering of repeat unit squiggles")
    parser.add_argument("--config", "-c", help="YAML configuration file")
    parser.add_argument("--input", "-i", help=f"Signal2chunk output directory (default: {CHUNK_DIR})")
    parser.add_argument("--output", "-o", help=f"Output directory (default: {OUTPUT_DIR})")
    parser.add_argument("--reads", help="Filtered reads table (default: <output>/qc/filtered_reads.tsv)")
    parser.add_argument("--all-reads", action="store_true", help="Ignore any read filter table")
    parser.add_argument("--strand", choices=[s.value for s in Strand], help="Only cluster this strand")
    parser.add_argument("-k", type=int, help="Number of clusters")
    parser.add_argument("--method", help="Linkage method (default: ward.D)")
    parser.add_argument("--window", type=int, help="Sakoe-Chiba radius for DTW")
    parser.add_argument("--jobs", type=int, help="Parallel jobs for DTW distances")
    parser.add_argument("--lwd", type=float, help="Dendrogram line width")
    parser.add_argument("--max-dist", type=float, help="Hide heatmap distances above this value")
    parser.add_argument("--rm0", action="store_true", help="Hide zero distances in heatmap")
    parser.add_argument("--heatmap-size", type=int, help="Heatmap width and height in pixels")
    parser.add_argument("--no-plots", action="store_true", help="Skip figures")
    return parser.parse_args()


def _pick(cli_value, config, key_path):
    return cli_value if cli_value is not None else get_nested(config, key_path)


def main():
    args = parse_args()
    config = load_config(args.config) if args.config else {}

    chunk_dir = args.input or get_nested(config, "project.chunk_dir", CHUNK_DIR)
    output_dir = args.output or get_nested(config, "project.output_dir", OUTPUT_DIR)
    out_dir = os.path.join(output_dir, "clustering")
    setup_logging(out_dir)

    params = {
        "k": int(_pick(args.k, config, "clustering.k")),
        "method": _pick(args.method, config, "clustering.method"),
        "window": _pick(args.window, config, "clustering.window"),
        "n_jobs": _pick(args.jobs, config, "clustering.n_jobs"),
        "lwd": float(_pick(args.lwd, config, "plots.heatmap_lwd")),
        "max_dist": _pick(args.max_dist, config, "plots.heatmap_max_dist"),
        "rm0": args.rm0 or bool(get_nested(config, "plots.heatmap_rm0")),
        "size_px": int(_pick(args.heatmap_size, config, "plots.heatmap_size_px")),
        "no_plots": args.no_plots,
    }

    logger.info("=" * 60)
    logger.info("NanoSatellite Squiggle Clustering")
    logger.info(f"Input: {chunk_dir}")
    logger.info(f"Output: {out_dir}")
    logger.info(f"k={params['k']}, method={params['method']}, window={params['window']}")
    logger.info("=" * 60)

    reads_file = None if args.all_reads else (
        args.reads or os.path.join(output_dir, "qc", "filtered_reads.tsv")
    )

    results = []
    try:
        squiggles = load_squiggles(chunk_dir, load_read_filter(reads_file))
        strands = [args.strand] if args.strand else [s.value for s in Strand]
        for strand in strands:
            if len(squiggles[strand]) < 2:
                logger.warning(f"{strand}: {len(squiggles[strand])} squiggles, skipping clustering")
                continue
            logger.info(f"Clustering {strand} strand ({len(squiggles[strand])} squiggles)")
            results.append(cluster_strand(strand, squiggles[strand], out_dir, params))
    except (NanoSatError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)

    print(f"\nClustering complete:")
    for r in results:
        print(f"  {r['strand']}: {r['chunks']} chunks, {r['reads']} reads, cluster sizes {r['clusters']}")
    print(f"  Output: {out_dir}")


if __name__ == "__main__":
    main()
