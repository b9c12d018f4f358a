#!/usr/bin/env python3
"""
Integration tests for the karyolgf batch interface.

These tests verify the end-to-end behavior of a batch run, specifically:
    1. Every decoded clone becomes one row of per-band counts
    2. Undecoded karyotypes are reported with token errors and corrections
    3. The command line writes the requested outputs
"""

import csv
import json
import subprocess
import sys
from pathlib import Path

import pandas as pd
import pytest

from karyolgf.bands import get_band_index
from karyolgf.cli import (
    ERROR_COLUMNS,
    METADATA_COLUMNS,
    BatchConfig,
    build_band_statistics,
    build_lgf_table,
    error_rows,
    interpret_batch,
    main_cli,
    run_batch,
)

from tests.conftest import MIXED_KARYOTYPE, STANDARD_KARYOTYPES

REPO_ROOT = Path(__file__).parent.parent

INVALID_KARYOTYPE = "46,XX,del(5)(q13-q31)"


# =============================================================================
# TEST: interpret_batch and tables
# =============================================================================

class TestInterpretBatch:
    """Tests for in-process batch interpretation."""

    def test_results_in_input_order(self):
        """Should return one result per karyotype in order."""
        karyotypes = STANDARD_KARYOTYPES + [MIXED_KARYOTYPE]
        results = interpret_batch(karyotypes, show_progress=False)
        assert [r.karyotype for r in results] == karyotypes
        assert all(not r.undecoded for r in results)

    def test_undecoded_kept(self):
        """Should keep undecoded karyotypes in the results."""
        results = interpret_batch(["47,XY,+8", INVALID_KARYOTYPE], show_progress=False)
        assert [r.undecoded for r in results] == [False, True]

    @pytest.mark.slow
    def test_worker_processes(self):
        """Should give the same results with worker processes."""
        karyotypes = STANDARD_KARYOTYPES + [MIXED_KARYOTYPE, INVALID_KARYOTYPE]
        serial = interpret_batch(karyotypes, jobs=1, show_progress=False)
        parallel = interpret_batch(karyotypes, jobs=2, show_progress=False)

        assert [r.karyotype for r in parallel] == karyotypes
        for one, other in zip(serial, parallel):
            assert one.interpretations == other.interpretations
            assert one.token_errors == other.token_errors


class TestTables:
    """Tests for the tabular outputs."""

    @pytest.fixture
    def results(self):
        karyotypes = STANDARD_KARYOTYPES + [MIXED_KARYOTYPE, INVALID_KARYOTYPE]
        return interpret_batch(karyotypes, show_progress=False)

    def test_lgf_table_shape(self, results):
        """Should have one row per decoded clone and three columns per band."""
        table = build_lgf_table(results)
        n_bands = len(get_band_index())
        assert len(table) == 7
        assert list(table.columns[:len(METADATA_COLUMNS)]) == METADATA_COLUMNS
        assert table.shape[1] == len(METADATA_COLUMNS) + 3 * n_bands

    def test_lgf_table_counts(self, results):
        """Should place counts in the band columns."""
        table = build_lgf_table(results)
        trisomy = table[table['karyotype'] == "47,XY,+8"].iloc[0]
        assert trisomy['8q24.3_gain'] == 1
        assert trisomy['8q24.3_loss'] == 0

        deletion = table[table['karyotype'] == "46,XX,del(5)(q13q31)"].iloc[0]
        assert deletion['5q21.1_loss'] == 1
        assert deletion['5q13.1_fusion'] == 1

    def test_lgf_table_clones(self, results):
        """Should number clones and keep cell counts."""
        table = build_lgf_table(results)
        clones = table[table['karyotype'] == "47,XX,+8[15]/46,XX[5]"]
        assert list(clones['clone']) == [1, 2]
        assert list(clones['cell_count']) == [15, 5]

    def test_empty_lgf_table(self):
        """Should return an empty table with all columns."""
        table = build_lgf_table([])
        assert table.empty
        assert list(table.columns[:len(METADATA_COLUMNS)]) == METADATA_COLUMNS

    def test_band_statistics(self, results):
        """Should count affected clones per band."""
        stats = build_band_statistics(results).set_index('band')
        assert len(stats) == len(get_band_index())
        assert stats.loc['8p10', 'gain'] == 2
        assert stats.loc['8p10', 'gain_frequency'] == pytest.approx(2 / 7)
        assert stats.loc['7p22.3', 'gain'] == 1
        assert stats.loc['1p10', 'loss'] == 0

    def test_error_rows(self, results):
        """Should list only undecoded karyotypes."""
        rows = error_rows(results)
        assert len(rows) == 1
        assert rows[0]['karyotype'] == INVALID_KARYOTYPE
        assert rows[0]['lexer_parser_error'] is True
        assert rows[0]['errors'] == "-: mismatched input '-' expecting breakpoint"
        assert rows[0]['revised_karyotype'] == "46,XX,del(5)(q13q31)"


# =============================================================================
# TEST: run_batch
# =============================================================================

class TestRunBatch:
    """Tests for the file-based batch run."""

    def test_all_outputs(self, karyotype_file, tmp_path):
        """Should write band counts, statistics, JSON and errors."""
        out_dir = tmp_path / "out"
        config = BatchConfig(
            input_file=str(karyotype_file),
            output_file=str(out_dir / "lgf.csv"),
            json_file=str(out_dir / "results.json"),
            stats_file=str(out_dir / "stats.csv"),
            errors_file=str(out_dir / "errors.csv"),
            show_progress=False,
        )

        results = run_batch(config)

        assert len(results) == 7

        lgf = pd.read_csv(out_dir / "lgf.csv")
        assert len(lgf) == 7

        stats = pd.read_csv(out_dir / "stats.csv")
        assert len(stats) == len(get_band_index())

        with open(out_dir / "results.json") as f:
            data = json.load(f)
        assert len(data) == 7
        assert data[0]['karyotype'] == "46,XX"
        assert data[-1]['clones'] == []
        assert data[-1]['revised_karyotype'] == "46,XX,del(5)(q13q31)"

        with open(out_dir / "errors.csv", newline='') as f:
            rows = list(csv.DictReader(f))
        assert list(rows[0].keys()) == ERROR_COLUMNS
        assert [row['karyotype'] for row in rows] == [INVALID_KARYOTYPE]

    def test_csv_input(self, tmp_path):
        """Should read karyotypes from a CSV column."""
        input_file = tmp_path / "cases.csv"
        input_file.write_text('case,karyotype\nA,"47,XY,+8"\nB,"46,XX"\n')
        config = BatchConfig(
            input_file=str(input_file),
            column='karyotype',
            json_file=str(tmp_path / "results.json"),
            show_progress=False,
        )

        results = run_batch(config)

        assert [r.karyotype for r in results] == ["47,XY,+8", "46,XX"]

    def test_empty_input(self, tmp_path):
        """Should refuse an input without karyotypes."""
        input_file = tmp_path / "empty.txt"
        input_file.write_text("# nothing here\n")
        config = BatchConfig(input_file=str(input_file), show_progress=False)

        with pytest.raises(ValueError, match="Input validation failed"):
            run_batch(config)


# =============================================================================
# TEST: command line
# =============================================================================

class TestCommandLine:
    """Tests for main_cli."""

    def test_main_cli(self, karyotype_file, tmp_path, monkeypatch):
        """Should run a batch from command-line arguments."""
        output = tmp_path / "lgf.csv"
        errors = tmp_path / "errors.csv"
        monkeypatch.setattr(sys, 'argv', [
            'karyolgf', '-i', str(karyotype_file), '-o', str(output),
            '--errors', str(errors), '--no-progress',
        ])

        main_cli()

        assert len(pd.read_csv(output)) == 7
        assert errors.exists()

    def test_missing_input_exits(self, tmp_path, monkeypatch):
        """Should exit with status 1 when the input file is missing."""
        monkeypatch.setattr(sys, 'argv', [
            'karyolgf', '-i', str(tmp_path / "missing.txt"),
            '-o', str(tmp_path / "lgf.csv"), '--no-progress',
        ])

        with pytest.raises(SystemExit) as excinfo:
            main_cli()
        assert excinfo.value.code == 1

    def test_output_required(self, karyotype_file, monkeypatch):
        """Should refuse to run without any output option."""
        monkeypatch.setattr(sys, 'argv', ['karyolgf', '-i', str(karyotype_file)])

        with pytest.raises(SystemExit) as excinfo:
            main_cli()
        assert excinfo.value.code == 2

    @pytest.mark.slow
    def test_module_entry_point(self, karyotype_file, tmp_path):
        """Should run as 'python -m karyolgf.cli'."""
        output = tmp_path / "results.json"
        result = subprocess.run(
            [
                sys.executable, "-m", "karyolgf.cli",
                "-i", str(karyotype_file),
                "--json", str(output),
                "--no-progress",
            ],
            cwd=REPO_ROOT,
            capture_output=True,
            text=True,
            check=False,
        )
        assert result.returncode == 0, result.stderr

        with open(output) as f:
            data = json.load(f)
        assert len(data) == 7
        assert "Done!" in result.stderr


# =============================================================================
# RUN TESTS
# =============================================================================

if __name__ == '__main__':
    pytest.main([__file__, '-v'])
