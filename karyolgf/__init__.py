"""
karyolgf - Loss/Gain/Fusion interpretation of ISCN karyotypes

This package turns cytogenetic karyotype notation into per-band loss, gain
and fusion counts:
- bands: Band index (band name <-> position) and band utilities
- band_ranges: Range queries between breakpoints
- outcome: BiologicalOutcome vectors and merging
- detailed_formula: Interpreter for detailed derivative formulas
- iscn_parser: Standard ISCN parser, token errors and cleaner
- standard_events: Interpreter for standard events and count validation
- runner: Classification, routing and syntax-error recovery
- cli: Batch command-line interface
- utils: Shared utility functions
"""

__version__ = "1.0.0"
