#!/usr/bin/env python3
"""
Unit tests for bands.py

Tests the band index, the resolution fallback chain and band utilities.
"""

import threading

import pytest

from karyolgf import bands
from karyolgf.bands import (
    BandIndex,
    arm_of,
    build_band_table,
    chromosome_of,
    get_band_index,
    is_telomere,
    opposite_arm,
    strip_trailing_decimal,
    telomere_band,
)


# =============================================================================
# TEST: band table
# =============================================================================

class TestBuildBandTable:
    """Tests for the ordered band table."""

    def test_starts_with_chromosome_1_centromere(self):
        """Should start at 1p10."""
        assert build_band_table()[0] == '1p10'

    def test_ends_with_y_q_arm(self):
        """Should end with the most distal Yq band."""
        assert build_band_table()[-1] == 'yq12'

    def test_names_are_unique(self):
        """Should not contain duplicate band names."""
        table = build_band_table()
        assert len(table) == len(set(table))

    def test_every_arm_has_centromere(self):
        """Should contain p10 and q10 for every chromosome."""
        table = set(build_band_table())
        for chromosome in bands.CHROMOSOMES:
            assert f"{chromosome}p10" in table
            assert f"{chromosome}q10" in table

    def test_arm_order_is_centromere_outward(self):
        """Should place p-arm bands between p10 and q10, increasing outward."""
        table = build_band_table()
        assert table.index('7p10') < table.index('7p13') < table.index('7p22.3')
        assert table.index('7p22.3') < table.index('7q10') < table.index('7q36.3')

    def test_chromosome_order(self):
        """Should order chromosomes 1..22, X, Y."""
        table = build_band_table()
        assert table.index('9q34.3') < table.index('10p10')
        assert table.index('22q13.33') < table.index('xp10') < table.index('yp10')


# =============================================================================
# TEST: BandIndex
# =============================================================================

class TestBandIndex:
    """Tests for index lookup and decoding."""

    def test_bijection(self, band_index):
        """Should resolve every decoded band back to its own position."""
        for i in range(len(band_index)):
            assert band_index.resolve(band_index.decode(i)) == i

    def test_decode_out_of_range(self, band_index):
        """Should raise IndexError outside the table."""
        with pytest.raises(IndexError):
            band_index.decode(len(band_index))
        with pytest.raises(IndexError):
            band_index.decode(-1)

    def test_decode_is_lowercase(self, band_index):
        """Should return lowercase names."""
        assert band_index.decode(band_index.index_of('Xq28')) == 'xq28'

    def test_contains(self, band_index):
        """Should support membership by band name."""
        assert '16p11.2' in band_index
        assert '16p11' not in band_index

    def test_bands_are_immutable(self, band_index):
        """Should expose bands as a tuple."""
        assert isinstance(band_index.bands, tuple)

    def test_custom_table(self):
        """Should index an arbitrary table."""
        index = BandIndex(['1p10', '1p11', '1q10', '1q11'])
        assert len(index) == 4
        assert index.resolve('1q11') == 3


# =============================================================================
# TEST: resolution fallback chain
# =============================================================================

class TestResolve:
    """Tests for breakpoint token resolution."""

    def test_exact_match_case_insensitive(self, band_index):
        """Should match exact names regardless of case."""
        assert band_index.resolve('16P11.2') == band_index.index_of('16p11.2')

    def test_first_sub_band(self, band_index):
        """Should treat a region without sub-band as its .1 sub-band."""
        assert band_index.decode(band_index.resolve('16p11')) == '16p11.1'

    def test_stripped_decimal(self, band_index):
        """Should match decimal-stripped forms in index order."""
        assert band_index.decode(band_index.resolve('16p13')) == '16p13.11'
        assert band_index.decode(band_index.resolve('8q21')) == '8q21.11'

    def test_unknown_sub_band_uses_region(self, band_index):
        """Should fall back to the region for an unknown sub-band."""
        assert band_index.decode(band_index.resolve('8q21.4')) == '8q21.11'

    def test_prefix_scan_in_index_order(self, band_index):
        """Should return the first band, in index order, starting with the token."""
        assert band_index.decode(band_index.resolve('9q3')) == '9q31.1'

    def test_telomere_tokens(self, band_index):
        """Should resolve telomeres to the most distal band of the arm."""
        assert band_index.decode(band_index.resolve('7pter')) == '7p22.3'
        assert band_index.decode(band_index.resolve('7qter')) == '7q36.3'
        assert band_index.decode(band_index.resolve('Xqter')) == 'xq28'

    def test_region_past_arm_end(self, band_index):
        """Should clamp a region beyond the arm to the distal band."""
        assert band_index.decode(band_index.resolve('15q31')) == '15q26.3'

    def test_region_past_arm_end_unclamped(self, band_index):
        """Should not clamp when clamping is turned off."""
        assert band_index.resolve('15q31', clamp=False) is None
        assert band_index.resolve('7q99', clamp=False) is None
        assert band_index.decode(band_index.resolve('15q21', clamp=False)) == '15q21.1'

    def test_unresolvable(self, band_index):
        """Should return None when nothing matches."""
        assert band_index.resolve('15q19') is None
        assert band_index.resolve('zz') is None
        assert band_index.resolve('') is None
        assert band_index.resolve('25p11') is None

    def test_whitespace_ignored(self, band_index):
        """Should ignore surrounding whitespace."""
        assert band_index.resolve(' 5q31.1 ') == band_index.index_of('5q31.1')


# =============================================================================
# TEST: arms
# =============================================================================

class TestBandsOfArm:
    """Tests for listing an arm."""

    def test_short_arm(self, band_index):
        """Should list 13p bands only."""
        arm = band_index.bands_of_arm('13p')
        assert '13p10' in arm
        assert any(band.startswith('13p13') for band in arm)
        assert not any(band.startswith('13q') for band in arm)

    def test_split_arguments(self, band_index):
        """Should accept chromosome and arm separately."""
        assert band_index.bands_of_arm('13', 'p') == band_index.bands_of_arm('13p')

    def test_case_insensitive(self, band_index):
        """Should accept uppercase chromosome names."""
        assert band_index.bands_of_arm('Xq') == band_index.bands_of_arm('xq')

    def test_no_prefix_collision(self, band_index):
        """Should not include chromosome 10 bands in chromosome 1."""
        assert not any(band.startswith('10') for band in band_index.bands_of_arm('1p'))

    def test_index_order(self, band_index):
        """Should return bands in index order."""
        arm = band_index.bands_of_arm('7q')
        positions = [band_index.index_of(band) for band in arm]
        assert positions == sorted(positions)
        assert arm[0] == '7q10'
        assert arm[-1] == '7q36.3'


# =============================================================================
# TEST: band utilities
# =============================================================================

class TestBandUtilities:
    """Tests for chromosome/arm helpers."""

    def test_chromosome_of(self):
        """Should extract the chromosome."""
        assert chromosome_of('10p11.1') == '10'
        assert chromosome_of('Xq28') == 'x'
        assert chromosome_of('q21') is None

    def test_arm_of(self):
        """Should extract chromosome plus arm."""
        assert arm_of('16p11.2') == '16p'
        assert arm_of('7qter') == '7q'
        assert arm_of('7') is None

    def test_opposite_arm(self):
        """Should swap p and q."""
        assert opposite_arm('16p') == '16q'
        assert opposite_arm('xq') == 'xp'

    def test_telomere_band(self):
        """Should return the most distal band."""
        assert telomere_band('7q') == '7q36.3'
        assert telomere_band('1p') == '1p36.33'
        assert telomere_band('25q') is None

    def test_is_telomere(self):
        """Should detect pter and qter."""
        assert is_telomere('7pter')
        assert is_telomere('13QTER')
        assert not is_telomere('7q11')

    def test_strip_trailing_decimal(self):
        """Should drop the sub-band decimal."""
        assert strip_trailing_decimal('8q21.11') == '8q21'
        assert strip_trailing_decimal('8q21') == '8q21'


# =============================================================================
# TEST: shared instance
# =============================================================================

class TestGetBandIndex:
    """Tests for the lazily built shared index."""

    def test_same_instance(self):
        """Should return the same index on every call."""
        assert get_band_index() is get_band_index()

    def test_concurrent_first_use(self, monkeypatch):
        """Should build exactly one index under concurrent first calls."""
        monkeypatch.setattr(bands, '_band_index', None)
        built = []
        original = bands.BandIndex

        def counting_index(table):
            built.append(1)
            return original(table)

        monkeypatch.setattr(bands, 'BandIndex', counting_index)

        results = []
        threads = [
            threading.Thread(target=lambda: results.append(get_band_index()))
            for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(built) == 1
        assert all(result is results[0] for result in results)
