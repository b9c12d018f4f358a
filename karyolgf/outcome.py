"""
Loss/Gain/Fusion outcome of one interpreted clone.

Each outcome owns three integer vectors indexed by band position. Values are
counts: overlapping events accumulate rather than saturate.
"""

from dataclasses import dataclass, field

import numpy as np

from .bands import BandIndex, get_band_index


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass
class BiologicalOutcome:
    """Loss/Gain/Fusion counts plus free-text notes for one clone."""
    loss: np.ndarray
    gain: np.ndarray
    fusion: np.ndarray
    uncertain_events: list[str] = field(default_factory=list)
    detailed_system: list[str] = field(default_factory=list)

    @classmethod
    def empty(cls, index: BandIndex | None = None) -> 'BiologicalOutcome':
        """Create an outcome with freshly allocated zero vectors."""
        size = len(index or get_band_index())
        return cls(
            loss=np.zeros(size, dtype=np.int64),
            gain=np.zeros(size, dtype=np.int64),
            fusion=np.zeros(size, dtype=np.int64),
        )

    @property
    def lgf(self) -> np.ndarray:
        """Stacked 3 x n_bands array (loss, gain, fusion)."""
        return np.vstack([self.loss, self.gain, self.fusion])

    def is_empty(self) -> bool:
        return not (self.loss.any() or self.gain.any() or self.fusion.any())

    def add_loss(self, bands: list[str], index: BandIndex | None = None, count: int = 1) -> None:
        _credit(self.loss, bands, index, count)

    def add_gain(self, bands: list[str], index: BandIndex | None = None, count: int = 1) -> None:
        _credit(self.gain, bands, index, count)

    def add_fusion(self, position: int, count: int = 1) -> None:
        self.fusion[position] += count

    def to_dict(self, index: BandIndex | None = None) -> dict:
        """Sparse dict representation: band -> count for each vector."""
        index = index or get_band_index()
        return {
            'loss': _sparse(self.loss, index),
            'gain': _sparse(self.gain, index),
            'fusion': _sparse(self.fusion, index),
            'uncertain_events': list(self.uncertain_events),
            'detailed_system': list(self.detailed_system),
        }


def _credit(vector: np.ndarray, bands: list[str], index: BandIndex | None, count: int) -> None:
    index = index or get_band_index()
    for band in bands:
        position = index.index_of(band)
        if position is not None:
            vector[position] += count


def _sparse(vector: np.ndarray, index: BandIndex) -> dict[str, int]:
    return {index.decode(int(i)): int(vector[i]) for i in np.flatnonzero(vector)}


# =============================================================================
# MERGING
# =============================================================================

def merge_outcomes(
    first: BiologicalOutcome | None,
    second: BiologicalOutcome | None
) -> BiologicalOutcome | None:
    """
    Combine two partial outcomes of the same clone.

    Args:
        first: Outcome from one pipeline, or None
        second: Outcome from the other pipeline, or None

    Returns:
        Element-wise sum with concatenated notes; the other side unchanged
        if one is None; None if both are None
    """
    if first is None:
        return second
    if second is None:
        return first

    return BiologicalOutcome(
        loss=first.loss + second.loss,
        gain=first.gain + second.gain,
        fusion=first.fusion + second.fusion,
        uncertain_events=first.uncertain_events + second.uncertain_events,
        detailed_system=first.detailed_system + second.detailed_system,
    )


# =============================================================================
# INTERPRETATION TEXT
# =============================================================================

def describe_outcome(outcome: BiologicalOutcome, index: BandIndex | None = None) -> str:
    """
    Render an outcome as readable text, e.g. '5q21.1(L), 7q11.1(G), 8q21.11(F)'.

    Counts above one are written as a multiplier: '7q11.1(Gx2)'.
    """
    index = index or get_band_index()
    parts = []
    for label, vector in (('L', outcome.loss), ('G', outcome.gain), ('F', outcome.fusion)):
        for i in np.flatnonzero(vector):
            count = int(vector[i])
            suffix = label if count == 1 else f"{label}x{count}"
            parts.append(f"{index.decode(int(i))}({suffix})")
    return ', '.join(parts)
