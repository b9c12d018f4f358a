"""
karyolgf Test Suite

Tests for karyolgf, the Loss/Gain/Fusion interpreter for ISCN karyotypes.

Test Organization:
- test_bands.py: Unit tests for the band index and band utilities
- test_band_ranges.py: Unit tests for range queries between breakpoints
- test_outcome.py: Unit tests for outcome vectors and merging
- test_detailed_formula.py: Unit tests for detailed derivative formulas
- test_iscn_parser.py: Unit tests for the standard parser and cleaner
- test_standard_events.py: Unit tests for standard event interpretation
- test_runner.py: Unit tests for classification, routing and recovery
- test_utils.py: Unit tests for I/O and progress utilities
- test_integration.py: End-to-end batch tests

Run tests with:
    pytest                      # Run all tests
    pytest -v                   # Verbose output
    pytest tests/test_bands.py  # Run specific file
    pytest -m "not slow"       # Skip slow tests
    pytest -m integration      # Run only integration tests
"""
