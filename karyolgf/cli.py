#!/usr/bin/env python3
"""
Batch interpretation of karyotypes into Loss/Gain/Fusion tables.

Each input karyotype is interpreted independently. Decoded clones are written
as one row of per-band loss/gain/fusion counts; karyotypes that could not be
decoded are listed with their token errors and suggested corrections.

USAGE:
    karyolgf \\
        -i karyotypes.txt \\
        -o lgf.csv \\
        --json results.json \\
        --stats band_stats.csv \\
        --errors undecoded.csv \\
        -j 4

    # CSV input with a karyotype column
    karyolgf -i cases.csv --column karyotype -o lgf.csv
"""

import argparse
import json
import sys
from dataclasses import dataclass
from multiprocessing import Pool
from pathlib import Path

import numpy as np
import pandas as pd

from .bands import BandIndex, get_band_index
from .runner import FinalResult, KaryotypeRunner
from .utils import (
    ProgressReporter,
    read_karyotypes,
    setup_logging,
    validate_karyotypes,
    write_csv,
)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class BatchConfig:
    """Resolved batch options."""
    input_file: str
    output_file: str | None = None
    json_file: str | None = None
    stats_file: str | None = None
    errors_file: str | None = None
    column: str | None = None
    jobs: int = 1
    show_progress: bool = True


METADATA_COLUMNS = ['karyotype', 'clone', 'clone_code', 'cell_count', 'relationship']
ERROR_COLUMNS = ['karyotype', 'lexer_parser_error', 'validation_error', 'errors', 'revised_karyotype']


# =============================================================================
# INTERPRETATION
# =============================================================================

_worker_runner = None


def _interpret_one(karyotype: str) -> FinalResult:
    """Pool worker: one runner per process."""
    global _worker_runner
    if _worker_runner is None:
        _worker_runner = KaryotypeRunner()
    return _worker_runner.get_final_result(karyotype)


def interpret_batch(
    karyotypes: list[str],
    jobs: int = 1,
    show_progress: bool = True,
    logger=None
) -> list[FinalResult]:
    """
    Interpret karyotypes, optionally across worker processes.

    Args:
        karyotypes: Input strings
        jobs: Number of worker processes (1 = in-process)
        show_progress: Report progress
        logger: Optional logger

    Returns:
        One FinalResult per karyotype, in input order
    """
    progress = ProgressReporter(
        total=len(karyotypes), desc="Interpreting", enabled=show_progress, logger=logger
    )

    results = []
    if jobs > 1:
        with Pool(processes=jobs) as pool:
            for result in pool.imap(_interpret_one, karyotypes, chunksize=16):
                results.append(result)
                progress.update()
    else:
        runner = KaryotypeRunner(logger=logger)
        for karyotype in karyotypes:
            results.append(runner.get_final_result(karyotype))
            progress.update()

    progress.finish()
    return results


# =============================================================================
# TABLES
# =============================================================================

def build_lgf_table(results: list[FinalResult], index: BandIndex | None = None) -> pd.DataFrame:
    """
    One row per decoded clone, one column per band and vector.

    Columns: metadata, then '<band>_loss', '<band>_gain', '<band>_fusion'.
    """
    index = index or get_band_index()
    columns = (
        [f"{band}_loss" for band in index.bands]
        + [f"{band}_gain" for band in index.bands]
        + [f"{band}_fusion" for band in index.bands]
    )

    metadata = []
    vectors = []
    for result in results:
        for number, outcome in enumerate(result.outcomes, start=1):
            metadata.append({
                'karyotype': result.karyotype,
                'clone': number,
                'clone_code': result.clone_codes[number - 1],
                'cell_count': result.cell_counts[number - 1],
                'relationship': result.relationships[number - 1],
            })
            vectors.append(np.concatenate([outcome.loss, outcome.gain, outcome.fusion]))

    if not vectors:
        return pd.DataFrame(columns=METADATA_COLUMNS + columns)

    counts = pd.DataFrame(np.vstack(vectors), columns=columns)
    return pd.concat([pd.DataFrame(metadata, columns=METADATA_COLUMNS), counts], axis=1)


def build_band_statistics(results: list[FinalResult], index: BandIndex | None = None) -> pd.DataFrame:
    """
    Per-band totals over every decoded clone.

    Columns: band, loss/gain/fusion (clones affected) and the matching
    frequencies (fraction of decoded clones).
    """
    index = index or get_band_index()
    outcomes = [outcome for result in results for outcome in result.outcomes]

    stats = pd.DataFrame({'band': list(index.bands)})
    for name in ('loss', 'gain', 'fusion'):
        if outcomes:
            affected = np.vstack([getattr(o, name) for o in outcomes]) > 0
            stats[name] = affected.sum(axis=0)
            stats[f"{name}_frequency"] = stats[name] / len(outcomes)
        else:
            stats[name] = 0
            stats[f"{name}_frequency"] = 0.0
    return stats


def error_rows(results: list[FinalResult]) -> list[dict]:
    """Rows describing karyotypes that produced no outcome."""
    rows = []
    for result in results:
        if not result.undecoded:
            continue
        rows.append({
            'karyotype': result.karyotype,
            'lexer_parser_error': result.lexer_parser_error,
            'validation_error': result.validation_error,
            'errors': '; '.join(result.token_errors + result.error_messages),
            'revised_karyotype': result.revised_karyotype or '',
        })
    return rows


def write_json(results: list[FinalResult], filepath: str | Path) -> None:
    """Write every result, including errors, as a JSON list."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    index = get_band_index()
    with open(filepath, 'w') as f:
        json.dump([result.to_dict(index) for result in results], f, indent=2)


# =============================================================================
# MAIN
# =============================================================================

def main_cli() -> None:
    """Entry point for command-line usage."""
    parser = argparse.ArgumentParser(
        description='Interpret karyotypes into Loss/Gain/Fusion tables',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    # Input
    parser.add_argument(
        '-i', '--input',
        required=True,
        help='Karyotype file (one per line, or CSV with --column)'
    )
    parser.add_argument(
        '--column',
        help='CSV column holding karyotypes'
    )

    # Output
    parser.add_argument(
        '-o', '--output',
        help='Output CSV of per-clone band counts'
    )
    parser.add_argument(
        '--json',
        help='Output JSON with full results'
    )
    parser.add_argument(
        '--stats',
        help='Output CSV of per-band statistics'
    )
    parser.add_argument(
        '--errors',
        help='Output CSV of undecoded karyotypes'
    )

    # Options
    parser.add_argument(
        '-j', '--jobs',
        type=int,
        default=1,
        help='Worker processes (default: 1)'
    )
    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable progress display'
    )

    # Logging
    parser.add_argument(
        '--log',
        help='Log file path'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Verbose output'
    )

    args = parser.parse_args()

    level = 'DEBUG' if args.verbose else 'INFO'
    logger = setup_logging(args.log, level=level, name='karyolgf')

    if not (args.output or args.json or args.stats or args.errors):
        parser.error("at least one of --output, --json, --stats or --errors is required")

    config = BatchConfig(
        input_file=args.input,
        output_file=args.output,
        json_file=args.json,
        stats_file=args.stats,
        errors_file=args.errors,
        column=args.column,
        jobs=max(1, args.jobs),
        show_progress=not args.no_progress,
    )

    try:
        run_batch(config, logger=logger)
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)


def run_batch(config: BatchConfig, logger=None) -> list[FinalResult]:
    """Core batch logic."""
    if logger:
        logger.info(f"Reading karyotypes from: {config.input_file}")
    karyotypes = read_karyotypes(config.input_file, column=config.column)

    messages = validate_karyotypes(karyotypes)
    for msg in messages:
        if logger:
            if msg.startswith("ERROR"):
                logger.error(msg)
            else:
                logger.warning(msg)
    if any(msg.startswith("ERROR") for msg in messages):
        raise ValueError("Input validation failed")

    results = interpret_batch(
        karyotypes,
        jobs=config.jobs,
        show_progress=config.show_progress,
        logger=logger
    )

    undecoded = sum(1 for result in results if result.undecoded)
    if logger:
        logger.info(
            f"Decoded {len(results) - undecoded:,}/{len(results):,} karyotypes "
            f"({sum(len(r.outcomes) for r in results):,} clones)"
        )

    if config.output_file:
        if logger:
            logger.info(f"Writing band counts to: {config.output_file}")
        Path(config.output_file).parent.mkdir(parents=True, exist_ok=True)
        build_lgf_table(results).to_csv(config.output_file, index=False)

    if config.stats_file:
        if logger:
            logger.info(f"Writing band statistics to: {config.stats_file}")
        Path(config.stats_file).parent.mkdir(parents=True, exist_ok=True)
        build_band_statistics(results).to_csv(config.stats_file, index=False)

    if config.json_file:
        if logger:
            logger.info(f"Writing JSON results to: {config.json_file}")
        write_json(results, config.json_file)

    if config.errors_file:
        if logger:
            logger.info(f"Writing {undecoded:,} undecoded karyotypes to: {config.errors_file}")
        write_csv(config.errors_file, error_rows(results), ERROR_COLUMNS)

    if logger:
        logger.info("Done!")
    return results


# Entry point
if __name__ == '__main__':
    main_cli()
