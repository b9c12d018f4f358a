#!/usr/bin/env python3
"""
Pytest configuration and shared fixtures for karyolgf tests.
"""

import pytest
import sys
from pathlib import Path

import numpy as np

# Add repository root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


# =============================================================================
# SHARED TEST DATA
# =============================================================================

RING_CLAUSE = "der(7)(::7q11->7q31::)"
DICENTRIC_CLAUSE = "der(13;15)(13pter->13q10::15q10->15q21)"
HSR_CLAUSE = "der(8)(8pter->8q21::hsr::8q24->8qter)"
MULTI_FRAGMENT_CLAUSE = "der(13)(13pter->13q10::15q21->15q31::13q14->13qter)"

MIXED_KARYOTYPE = "46,XX,+7,del(5)(q13q31)," + MULTI_FRAGMENT_CLAUSE

STANDARD_KARYOTYPES = [
    "46,XX",
    "47,XY,+8",
    "46,XX,del(5)(q13q31)",
    "46,XY,t(9;22)(q34;q11.2)",
    "47,XX,+8[15]/46,XX[5]",
]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def band_index():
    """Shared band index."""
    from karyolgf.bands import get_band_index

    return get_band_index()


@pytest.fixture
def runner():
    """Runner with default collaborators."""
    from karyolgf.runner import KaryotypeRunner

    return KaryotypeRunner()


@pytest.fixture
def karyotype_file(tmp_path):
    """Text file with one karyotype per line."""
    path = tmp_path / "karyotypes.txt"
    lines = ["# test batch"] + STANDARD_KARYOTYPES + [MIXED_KARYOTYPE, "46,XX,del(5)(q13-q31)"]
    path.write_text("\n".join(lines) + "\n")
    return path


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def bands_with(vector, index=None):
    """
    Return the set of band names with a non-zero count.

    Args:
        vector: Loss, gain or fusion array
        index: Band index (defaults to the shared index)
    """
    from karyolgf.bands import get_band_index

    index = index or get_band_index()
    return {index.decode(int(i)) for i in np.flatnonzero(vector)}


def count_at(vector, band, index=None):
    """Count stored for one exact band name."""
    from karyolgf.bands import get_band_index

    index = index or get_band_index()
    return int(vector[index.index_of(band)])


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks integration tests"
    )


# =============================================================================
# TEST COLLECTION HOOKS
# =============================================================================

def pytest_collection_modifyitems(config, items):
    """
    Modify test collection to add markers based on test names/locations.
    """
    for item in items:
        # Mark tests in test_integration.py as integration tests
        if "integration" in item.fspath.basename:
            item.add_marker(pytest.mark.integration)
