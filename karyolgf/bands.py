"""
Cytogenetic band index for karyotype interpretation.

Every band of the 850-band-level human ideogram is assigned a stable integer
position. Loss/Gain/Fusion vectors are indexed by these positions, so the
table order is the single source of truth for array layout.

Ordering, per chromosome (1..22, X, Y in turn):
    p10, p-arm bands from the centromere outward, q10, q-arm bands from the
    centromere outward.

USAGE:
    from karyolgf.bands import get_band_index

    index = get_band_index()
    index.resolve("16p13")     # -> position of 16p13.11
    index.decode(0)            # -> '1p10'
"""

import re
import threading
from types import MappingProxyType


# =============================================================================
# CONSTANTS
# =============================================================================

CHROMOSOMES = tuple([str(n) for n in range(1, 23)] + ['x', 'y'])

TELOMERE_MARKERS = ('pter', 'qter')

# Bands per arm, listed from the centromere outward (p10/q10 are implicit)
ARM_BANDS = {
    '1': (
        "11.1 11.2 12 13.1 13.2 13.3 21.1 21.2 21.3 22.1 22.2 22.3 31.1 31.2 "
        "31.3 32.1 32.2 32.3 33 34.1 34.2 34.3 35.1 35.2 35.3 36.11 36.12 "
        "36.13 36.21 36.22 36.23 36.31 36.32 36.33",
        "11 12 21.1 21.2 21.3 22 23.1 23.2 23.3 24.1 24.2 24.3 25.1 25.2 25.3 "
        "31.1 31.2 31.3 32.1 32.2 32.3 41 42.11 42.12 42.13 42.2 42.3 43 44",
    ),
    '2': (
        "11.1 11.2 12 13.1 13.2 13.3 14 15 16.1 16.2 16.3 21 22.1 22.2 22.3 "
        "23.1 23.2 23.3 24.1 24.2 24.3 25.1 25.2 25.3",
        "11.1 11.2 12.1 12.2 12.3 13 14.1 14.2 14.3 21.1 21.2 21.3 22.1 22.2 "
        "22.3 23.1 23.2 23.3 24.1 24.2 24.3 31.1 31.2 31.3 32.1 32.2 32.3 "
        "33.1 33.2 33.3 34 35 36.1 36.2 36.3 37.1 37.2 37.3",
    ),
    '3': (
        "11.1 11.2 12.1 12.2 12.3 13 14.1 14.2 14.3 21.1 21.2 21.31 21.32 "
        "21.33 22.1 22.2 22.3 23 24.1 24.2 24.3 25.1 25.2 25.3 26.1 26.2 26.3",
        "11.1 11.2 12.1 12.2 12.3 13.11 13.12 13.13 13.2 13.31 13.32 13.33 "
        "21.1 21.2 21.3 22.1 22.2 22.3 23 24 25.1 25.2 25.31 25.32 25.33 26.1 "
        "26.2 26.31 26.32 26.33 27.1 27.2 27.3 28 29",
    ),
    '4': (
        "11 12 13 14 15.1 15.2 15.31 15.32 15.33 16.1 16.2 16.3",
        "11 12 13.1 13.2 13.3 21.1 21.21 21.22 21.23 21.3 22.1 22.2 22.3 23 "
        "24 25 26 27 28.1 28.2 28.3 31.1 31.21 31.22 31.23 31.3 32.1 32.2 "
        "32.3 33 34.1 34.2 34.3 35.1 35.2",
    ),
    '5': (
        "11 12 13.1 13.2 13.3 14.1 14.2 14.3 15.1 15.2 15.31 15.32 15.33",
        "11.1 11.2 12.1 12.2 12.3 13.1 13.2 13.3 14.1 14.2 14.3 15 21.1 21.2 "
        "21.3 22.1 22.2 22.3 23.1 23.2 23.3 31.1 31.2 31.3 32 33.1 33.2 33.3 "
        "34 35.1 35.2 35.3",
    ),
    '6': (
        "11.1 11.2 12.1 12.2 12.3 21.1 21.2 21.31 21.32 21.33 22.1 22.2 22.3 "
        "23 24.1 24.2 24.3 25.1 25.2 25.3",
        "11.1 11.2 12 13 14.1 14.2 14.3 15 16.1 16.2 16.3 21 22.1 22.2 22.31 "
        "22.32 22.33 23.1 23.2 23.3 24.1 24.2 24.3 25.1 25.2 25.3 26 27",
    ),
    '7': (
        "11.1 11.2 12.1 12.2 12.3 13 14.1 14.2 14.3 15.1 15.2 15.3 21.1 21.2 "
        "21.3 22.1 22.2 22.3",
        "11.1 11.21 11.22 11.23 21.11 21.12 21.13 21.2 21.3 22.1 22.2 22.3 "
        "31.1 31.2 31.31 31.32 31.33 32.1 32.2 32.3 33 34 35 36.1 36.2 36.3",
    ),
    '8': (
        "11.1 11.21 11.22 11.23 12 21.1 21.2 21.3 22 23.1 23.2 23.3",
        "11.1 11.21 11.22 11.23 12.1 12.2 12.3 13.1 13.2 13.3 21.11 21.12 "
        "21.13 21.2 21.3 22.1 22.2 22.3 23.1 23.2 23.3 24.11 24.12 24.13 "
        "24.21 24.22 24.23 24.3",
    ),
    '9': (
        "11.1 11.2 12 13.1 13.2 13.3 21.1 21.2 21.3 22.1 22.2 22.3 23 24.1 "
        "24.2 24.3",
        "11 12 13 21.11 21.12 21.13 21.2 21.31 21.32 21.33 22.1 22.2 22.31 "
        "22.32 22.33 31.1 31.2 31.3 32 33.1 33.2 33.3 34.11 34.12 34.13 34.2 "
        "34.3",
    ),
    '10': (
        "11.1 11.21 11.22 11.23 12.1 12.2 12.31 12.32 12.33 13 14 15.1 15.2 "
        "15.3",
        "11.1 11.21 11.22 11.23 21.1 21.2 21.3 22.1 22.2 22.3 23.1 23.2 23.31 "
        "23.32 23.33 24.1 24.2 24.31 24.32 24.33 25.1 25.2 25.3 26.11 26.12 "
        "26.13 26.2 26.3",
    ),
    '11': (
        "11.11 11.12 11.2 12 13 14.1 14.2 14.3 15.1 15.2 15.3 15.4 15.5",
        "11 12.1 12.2 12.3 13.1 13.2 13.3 13.4 13.5 14.1 14.2 14.3 21 22.1 "
        "22.2 22.3 23.1 23.2 23.3 24.1 24.2 24.3 25",
    ),
    '12': (
        "11.1 11.21 11.22 11.23 12.1 12.2 12.3 13.1 13.2 13.31 13.32 13.33",
        "11 12 13.11 13.12 13.13 13.2 13.3 14.1 14.2 14.3 15 21.1 21.2 21.31 "
        "21.32 21.33 22 23.1 23.2 23.3 24.11 24.12 24.13 24.21 24.22 24.23 "
        "24.31 24.32 24.33",
    ),
    '13': (
        "11.1 11.2 12 13",
        "11 12.11 12.12 12.13 12.2 12.3 13.1 13.2 13.3 14.11 14.12 14.13 "
        "14.2 14.3 21.1 21.2 21.31 21.32 21.33 22.1 22.2 22.3 31.1 31.2 31.3 "
        "32.1 32.2 32.3 33.1 33.2 33.3 34",
    ),
    '14': (
        "11.1 11.2 12 13",
        "11.1 11.2 12 13.1 13.2 13.3 21.1 21.2 21.3 22.1 22.2 22.3 23.1 23.2 "
        "23.3 24.1 24.2 24.3 31.1 31.2 31.3 32.11 32.12 32.13 32.2 32.31 "
        "32.32 32.33",
    ),
    '15': (
        "11.1 11.2 12 13",
        "11.1 11.2 12 13.1 13.2 13.3 14 15.1 15.2 15.3 21.1 21.2 21.3 22.1 "
        "22.2 22.31 22.32 22.33 23 24.1 24.2 24.3 25.1 25.2 25.3 26.1 26.2 "
        "26.3",
    ),
    '16': (
        "11.1 11.2 12.1 12.2 12.3 13.11 13.12 13.13 13.2 13.3",
        "11.1 11.2 12.1 12.2 13 21 22.1 22.2 22.3 23.1 23.2 23.3 24.1 24.2 "
        "24.3",
    ),
    '17': (
        "11.1 11.2 12 13.1 13.2 13.3",
        "11.1 11.2 12 21.1 21.2 21.31 21.32 21.33 22 23.1 23.2 23.3 24.1 24.2 "
        "24.3 25.1 25.2 25.3",
    ),
    '18': (
        "11.1 11.21 11.22 11.23 11.31 11.32",
        "11.1 11.2 12.1 12.2 12.3 21.1 21.2 21.31 21.32 21.33 22.1 22.2 22.3 "
        "23",
    ),
    '19': (
        "11 12 13.11 13.12 13.13 13.2 13.3",
        "11 12 13.11 13.12 13.13 13.2 13.31 13.32 13.33 13.41 13.42 13.43",
    ),
    '20': (
        "11.1 11.21 11.22 11.23 12.1 12.2 12.3 13",
        "11.1 11.21 11.22 11.23 12 13.11 13.12 13.13 13.2 13.31 13.32 13.33",
    ),
    '21': (
        "11.1 11.2 12 13",
        "11.1 11.2 21.1 21.2 21.3 22.11 22.12 22.13 22.2 22.3",
    ),
    '22': (
        "11.1 11.2 12 13",
        "11.1 11.21 11.22 11.23 12.1 12.2 12.3 13.1 13.2 13.31 13.32 13.33",
    ),
    'x': (
        "11.1 11.21 11.22 11.23 11.3 11.4 21.1 21.2 21.3 22.11 22.12 22.13 "
        "22.2 22.31 22.32 22.33",
        "11.1 11.2 12 13.1 13.2 13.3 21.1 21.2 21.31 21.32 21.33 22.1 22.2 "
        "22.3 23 24 25 26.1 26.2 26.3 27.1 27.2 27.3 28",
    ),
    'y': (
        "11.1 11.2 11.31 11.32",
        "11.1 11.21 11.221 11.222 11.223 11.23 12",
    ),
}

CHROMOSOME_PATTERN = re.compile(r'^(\d+|x|y)', re.IGNORECASE)
BAND_PARTS_PATTERN = re.compile(r'^(\d+|x|y)([pq])(\d+)', re.IGNORECASE)
TELOMERE_PATTERN = re.compile(r'^(\d+|x|y)([pq])ter$', re.IGNORECASE)
TRAILING_DECIMAL_PATTERN = re.compile(r'\.\d*$')


# =============================================================================
# BAND UTILITIES
# =============================================================================

def build_band_table() -> list[str]:
    """
    Build the ordered list of band names.

    Returns:
        Lowercase band names in index order
    """
    table = []
    for chromosome in CHROMOSOMES:
        p_bands, q_bands = ARM_BANDS[chromosome]
        for arm, bands in (('p', p_bands), ('q', q_bands)):
            table.append(f"{chromosome}{arm}10")
            table.extend(f"{chromosome}{arm}{band}" for band in bands.split())
    return table


def chromosome_of(band: str) -> str | None:
    """Return the lowercase chromosome of a band token, e.g. '16p11.2' -> '16'."""
    match = CHROMOSOME_PATTERN.match(band.strip())
    return match.group(1).lower() if match else None


def arm_of(band: str) -> str | None:
    """
    Return the chromosome arm of a band token.

    Args:
        band: Band or telomere token ('16p11.2', '7qter')

    Returns:
        Chromosome plus arm ('16p'), or None if the token has no arm
    """
    band = band.strip().lower()
    chromosome = chromosome_of(band)
    if chromosome is None:
        return None
    rest = band[len(chromosome):]
    if rest[:1] in ('p', 'q'):
        return chromosome + rest[0]
    return None


def opposite_arm(arm: str) -> str:
    """Return the other arm of the same chromosome ('16p' -> '16q')."""
    arm = arm.strip().lower()
    return arm[:-1] + ('q' if arm.endswith('p') else 'p')


def is_telomere(token: str) -> bool:
    """True if the token names a telomere (pter/qter)."""
    token = token.lower()
    return any(marker in token for marker in TELOMERE_MARKERS)


def strip_trailing_decimal(token: str) -> str:
    """Drop the sub-band decimal of a band name ('8q21.11' -> '8q21')."""
    return TRAILING_DECIMAL_PATTERN.sub('', token)


# =============================================================================
# BAND INDEX
# =============================================================================

class BandIndex:
    """
    Immutable bijection between band names and integer positions.

    Example:
        index = BandIndex(build_band_table())
        i = index.resolve('7q11')
        index.decode(i)   # '7q11.1'
    """

    def __init__(self, bands: list[str]):
        self._bands = tuple(band.lower() for band in bands)
        self._positions = MappingProxyType(
            {band: i for i, band in enumerate(self._bands)}
        )

        # First entry (in index order) for each decimal-stripped name
        stripped = {}
        for i, band in enumerate(self._bands):
            stripped.setdefault(strip_trailing_decimal(band), i)
        self._stripped = MappingProxyType(stripped)

        # Index range of every arm, used for telomere lookup and clamping
        arm_ranges = {}
        for i, band in enumerate(self._bands):
            arm = arm_of(band)
            first, _ = arm_ranges.get(arm, (i, i))
            arm_ranges[arm] = (first, i)
        self._arm_ranges = MappingProxyType(arm_ranges)

    def __len__(self) -> int:
        return len(self._bands)

    def __contains__(self, band: str) -> bool:
        return band.strip().lower() in self._positions

    @property
    def bands(self) -> tuple[str, ...]:
        return self._bands

    def decode(self, index: int) -> str:
        """
        Return the band name stored at a position.

        Raises:
            IndexError: If index is outside the table
        """
        if index < 0 or index >= len(self._bands):
            raise IndexError(f"Band index out of range: {index}")
        return self._bands[index]

    def index_of(self, band: str) -> int | None:
        """Exact (case-insensitive) lookup, no fallback."""
        return self._positions.get(band.strip().lower())

    def resolve(self, token: str, clamp: bool = True) -> int | None:
        """
        Resolve a breakpoint token at any precision to a band position.

        Fallback chain, first hit wins:
            1. exact match
            2. token + '.1'
            3. decimal-stripped token against decimal-stripped entries
            4. first entry, in index order, starting with the token
            5. telomere token -> most distal band of the arm
            6. region past the end of a known arm -> most distal band
               (only with clamp=True)

        Range endpoints are clamped; fusion points are not, so an
        out-of-range breakpoint marks no fusion.

        Args:
            token: Breakpoint token such as '16p13', '8q21.4' or '7qter'
            clamp: Apply step 6

        Returns:
            Band position, or None if the token cannot be resolved
        """
        token = token.strip().lower()
        if not token:
            return None

        position = self._positions.get(token)
        if position is not None:
            return position

        position = self._positions.get(token + '.1')
        if position is not None:
            return position

        position = self._stripped.get(strip_trailing_decimal(token))
        if position is not None:
            return position

        for i, band in enumerate(self._bands):
            if band.startswith(token):
                return i

        telomere = TELOMERE_PATTERN.match(token)
        if telomere:
            arm_range = self._arm_ranges.get(telomere.group(1) + telomere.group(2))
            return arm_range[1] if arm_range else None

        if not clamp:
            return None
        return self._clamp_to_arm_end(token)

    def _clamp_to_arm_end(self, token: str) -> int | None:
        """Map a region beyond the last region of an arm onto its distal band."""
        parts = BAND_PARTS_PATTERN.match(token)
        if not parts:
            return None

        arm = parts.group(1) + parts.group(2)
        arm_range = self._arm_ranges.get(arm)
        if arm_range is None:
            return None

        first, last = arm_range
        last_region = max(
            int(BAND_PARTS_PATTERN.match(band).group(3))
            for band in self._bands[first:last + 1]
        )
        if int(parts.group(3)) > last_region:
            return last
        return None

    def arm_range(self, arm: str) -> tuple[int, int] | None:
        """Return (first, last) positions of an arm such as '16p'."""
        return self._arm_ranges.get(arm.strip().lower())

    def bands_of_arm(self, chromosome: str, arm: str | None = None) -> list[str]:
        """
        List every band of a chromosome arm in index order.

        Args:
            chromosome: Chromosome ('13') or chromosome plus arm ('13p')
            arm: Arm letter, if not already part of chromosome

        Returns:
            Band names starting with the chromosome+arm prefix
        """
        prefix = (chromosome + (arm or '')).strip().lower()
        return [band for band in self._bands if arm_of(band) == prefix]

    def telomere_band(self, arm: str) -> str | None:
        """Return the most distal band of an arm ('7q' -> '7q36.3')."""
        arm_range = self.arm_range(arm)
        return self._bands[arm_range[1]] if arm_range else None


# =============================================================================
# SHARED INSTANCE
# =============================================================================

_band_index: BandIndex | None = None
_band_index_lock = threading.Lock()


def get_band_index() -> BandIndex:
    """
    Return the process-wide band index, building it on first use.

    Construction is guarded so that concurrent first calls build the table
    exactly once; subsequent reads take no lock.
    """
    global _band_index
    if _band_index is None:
        with _band_index_lock:
            if _band_index is None:
                _band_index = BandIndex(build_band_table())
    return _band_index


def telomere_band(arm: str) -> str | None:
    """Most distal band of an arm, using the shared index."""
    return get_band_index().telomere_band(arm)
