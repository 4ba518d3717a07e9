#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Summary QC of NanoSatellite Delineation and Segmentation

Loads all Signal2chunk summary tables, suggests flank/center distance
cutoffs (boxplot upper whiskers) and writes the reads passing them.

Input:
    - {CHUNK_DIR}/<sampleID>_<suffix>/**/*.table

Output ({OUTPUT_DIR}/qc/):
    - summary.tsv          All reads with sample column
    - cutoffs.tsv          flank_cutoff / center_cutoff used
    - filtered_reads.tsv   Reads passing both cutoffs
    - sample_counts.tsv    Reads per sample (and strand) before/after filtering
    - summary_qc.png       Distance scatter and boxplots
    - lengths.png          Repeat units per sample (if repeat_units/strand present)

Usage:
    python 1_summary_qc.py --input /storage/NanoSatellite_chunks --output results
    python 1_summary_qc.py --config config.yaml
    python 1_summary_qc.py --center-cutoff 0.2 --flank-cutoff 0.3
"""

import os
import sys
import argparse
import logging

_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
_SCRIPTS_DIR = os.path.dirname(_SCRIPT_DIR)
_PROJECT_DIR = os.path.dirname(_SCRIPTS_DIR)
sys.path.insert(0, _SCRIPTS_DIR)

from nanosatpipe import (
    NanoSatError,
    CutoffPair,
    load_summary,
    summary_qc,
    qual_reads,
    summarize_by_sample,
)
from nanosatpipe.plotting import plot_summary_qc, plot_lengths
from nanosatpipe.summary import NO_CUTOFF
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
            logging.FileHandler(os.path.join(output_dir, "summary_qc.log")),
        ],
    )


def config_cutoff(config, key_path: str) -> float:
    """Cutoff from the config; an explicit null means no cutoff."""
    value = get_nested(config, key_path)
    return NO_CUTOFF if value is None else float(value)


def resolve_cutoffs(df, args, config) -> CutoffPair:
    """Command-line cutoffs win over config; automatic whiskers unless disabled."""
    auto = get_nested(config, "qc.auto_cutoff") and not args.no_auto
    suggested = summary_qc(df)
    logger.info(
        f"Suggested cutoffs: flank={suggested.flank_cutoff:.4f}, center={suggested.center_cutoff:.4f}"
    )

    center = args.center_cutoff
    if center is None:
        center = suggested.center_cutoff if auto else config_cutoff(config, "qc.center_cutoff")
    flank = args.flank_cutoff
    if flank is None:
        flank = suggested.flank_cutoff if auto else config_cutoff(config, "qc.flank_cutoff")
    return CutoffPair(flank_cutoff=flank, center_cutoff=center)


def run_qc(chunk_dir: str, output_dir: str, args, config) -> dict:
    """Run summary QC and write all outputs, return a small result dict."""
    qc_dir = os.path.join(output_dir, "qc")
    os.makedirs(qc_dir, exist_ok=True)

    df = load_summary(chunk_dir)
    df.to_csv(os.path.join(qc_dir, "summary.tsv"), sep="\t", index=False)

    cutoffs = resolve_cutoffs(df, args, config)
    with open(os.path.join(qc_dir, "cutoffs.tsv"), "w") as f:
        f.write("metric\tcutoff\n")
        f.write(f"flank_cutoff\t{cutoffs.flank_cutoff}\n")
        f.write(f"center_cutoff\t{cutoffs.center_cutoff}\n")

    passed = qual_reads(df, center_cutoff=cutoffs.center_cutoff, flank_cutoff=cutoffs.flank_cutoff)
    passed.to_csv(os.path.join(qc_dir, "filtered_reads.tsv"), sep="\t", index=False)
    logger.info(f"Reads passing QC: {len(passed)}/{len(df)}")

    counts = summarize_by_sample(df)
    passed_per_sample = passed.groupby("sample").size()
    counts["reads_passed"] = counts["sample"].map(passed_per_sample).fillna(0).astype(int)
    counts.to_csv(os.path.join(qc_dir, "sample_counts.tsv"), sep="\t", index=False)

    if not args.no_plots:
        plot_summary_qc(df, cutoffs, os.path.join(qc_dir, "summary_qc.png"))
        if {"repeat_units", "strand"}.issubset(passed.columns) and len(passed):
            binwidth = args.binwidth or float(get_nested(config, "plots.length_binwidth"))
            plot_lengths(passed, os.path.join(qc_dir, "lengths.png"), binwidth=binwidth)
        else:
            logger.info("Skipping length plot (no repeat_units/strand columns or no reads)")

    return {
        "total_reads": len(df),
        "passed_reads": len(passed),
        "cutoffs": cutoffs,
        "output_dir": qc_dir,
    }


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Summary QC and read filtering of Signal2chunk output")
    parser.add_argument("--config", "-c", help="YAML configuration file")
    parser.add_argument("--input", "-i", help=f"Signal2chunk output directory (default: {CHUNK_DIR})")
    parser.add_argument("--output", "-o", help=f"Output directory (default: {OUTPUT_DIR})")
    parser.add_argument("--center-cutoff", type=float, help="Maximum avg_center_normdist")
    parser.add_argument("--flank-cutoff", type=float, help="Maximum avg_flank_normdist")
    parser.add_argument("--no-auto", action="store_true", help="Do not use suggested cutoffs")
    parser.add_argument("--binwidth", type=float, help="Bin width of the length plot")
    parser.add_argument("--no-plots", action="store_true", help="Skip figures")
    return parser.parse_args()


def main():
    args = parse_args()
    config = load_config(args.config) if args.config else {}

    chunk_dir = args.input or get_nested(config, "project.chunk_dir", CHUNK_DIR)
    output_dir = args.output or get_nested(config, "project.output_dir", OUTPUT_DIR)
    setup_logging(output_dir)

    logger.info("=" * 60)
    logger.info("NanoSatellite Summary QC")
    logger.info(f"Input: {chunk_dir}")
    logger.info(f"Output: {output_dir}")
    logger.info("=" * 60)

    try:
        result = run_qc(chunk_dir, output_dir, args, config)
    except NanoSatError as e:
        logger.error(str(e))
        sys.exit(1)

    print(f"\nSummary QC complete:")
    print(f"  Reads: {result['total_reads']}")
    print(f"  Passed: {result['passed_reads']}")
    print(f"  Flank cutoff: {result['cutoffs'].flank_cutoff:.4f}")
    print(f"  Center cutoff: {result['cutoffs'].center_cutoff:.4f}")
    print(f"  Output: {result['output_dir']}")


if __name__ == "__main__":
    main()
