"""
Interval queries over the band index.

Breakpoint pairs from karyotype events are turned into the ordered list of
bands they span. Telomere-anchored queries (pter/qter) follow their own
rules; everything else is an inclusive slice of the index.

USAGE:
    from karyolgf.band_ranges import bands_between, bands_of_arm

    bands_between("16p13", "16p11")   # ['16p11.1', ..., '16p13.11']
    bands_of_arm("13p")               # ['13p10', '13p11.1', ...]
"""

from .bands import BandIndex, arm_of, chromosome_of, get_band_index


# =============================================================================
# RANGE QUERIES
# =============================================================================

def bands_between(
    start: str,
    end: str,
    index: BandIndex | None = None
) -> list[str]:
    """
    Return the bands spanned by two breakpoints, in index order.

    Args:
        start: Start breakpoint token ('16p13', '7pter')
        end: End breakpoint token ('16q22', '8qter')
        index: Band index (defaults to the shared index)

    Returns:
        Band names; empty if either endpoint cannot be resolved
    """
    index = index or get_band_index()
    start = start.strip().lower()
    end = end.strip().lower()

    if 'pter' in start:
        return _from_p_telomere(start, end, index)
    if 'qter' in end:
        return _to_q_telomere(start, index)
    if 'qter' in start:
        return _from_q_telomere(start, end, index)
    if 'pter' in end:
        return _to_p_telomere(start, index)

    start_arm = arm_of(start)
    end_arm = arm_of(end)
    if (
        start_arm and end_arm and start_arm != end_arm
        and chromosome_of(start) == chromosome_of(end)
    ):
        return _across_centromere(start, end, index)

    lo = index.resolve(start)
    hi = index.resolve(end)
    if lo is None or hi is None:
        return []
    if lo > hi:
        lo, hi = hi, lo
    return list(index.bands[lo:hi + 1])


def bands_of_arm(
    chromosome: str,
    arm: str | None = None,
    index: BandIndex | None = None
) -> list[str]:
    """
    Return every band of a chromosome arm in index order.

    Accepts either bands_of_arm('13', 'p') or bands_of_arm('13p').
    """
    index = index or get_band_index()
    return index.bands_of_arm(chromosome, arm)


def bands_of_chromosome(chromosome: str, index: BandIndex | None = None) -> list[str]:
    """Both arms of a chromosome, p arm first."""
    index = index or get_band_index()
    return index.bands_of_arm(chromosome, 'p') + index.bands_of_arm(chromosome, 'q')


# =============================================================================
# TELOMERE-ANCHORED BRANCHES
# =============================================================================

def _from_p_telomere(start: str, end: str, index: BandIndex) -> list[str]:
    """
    Range from a p telomere: centromere of the start arm up to the end band.

    The range is not reordered, so an end band sitting before the centromere
    in index order yields nothing.
    """
    chromosome = chromosome_of(start)
    arm = arm_of(start)
    if chromosome is None or arm is None:
        return []

    if 'qter' in end and chromosome_of(end) == chromosome:
        return bands_of_chromosome(chromosome, index)

    centromere = index.resolve(arm + '10')
    stop = index.resolve(end)
    if centromere is None or stop is None:
        return []

    return [band for band in index.bands[centromere:stop + 1] if arm_of(band) == arm]


def _to_q_telomere(start: str, index: BandIndex) -> list[str]:
    """
    Range from a breakpoint out to the q telomere of its chromosome.

    A p-arm start also contributes the p bands between the centromere and
    the breakpoint.
    """
    chromosome = chromosome_of(start)
    position = index.resolve(start)
    if chromosome is None or position is None:
        return []

    bands = []
    p_arm = chromosome + 'p'
    if arm_of(start) == p_arm:
        centromere = index.index_of(p_arm + '10')
        outer = _outermost(start, index)
        if centromere is not None and outer is not None:
            bands.extend(index.bands[centromere:outer + 1])

    q_arm = chromosome + 'q'
    for band in index.bands[position:]:
        if chromosome_of(band) != chromosome:
            break
        if arm_of(band) == q_arm:
            bands.append(band)
    return bands


def _from_q_telomere(start: str, end: str, index: BandIndex) -> list[str]:
    """Range written backwards from a q telomere: q bands from the end band outward."""
    chromosome = chromosome_of(start)
    position = index.resolve(end)
    if chromosome is None or position is None:
        return []

    q_arm = chromosome + 'q'
    bands = []
    for band in index.bands[position:]:
        if chromosome_of(band) != chromosome:
            break
        if arm_of(band) == q_arm:
            bands.append(band)
    return bands


def _to_p_telomere(start: str, index: BandIndex) -> list[str]:
    """Range from a p-arm breakpoint out to the p telomere."""
    chromosome = chromosome_of(start)
    position = index.resolve(start)
    if chromosome is None or position is None:
        return []

    p_arm = chromosome + 'p'
    bands = []
    for band in index.bands[position:]:
        if arm_of(band) != p_arm:
            break
        bands.append(band)
    return bands


# =============================================================================
# CROSS-ARM BRANCH
# =============================================================================

def _across_centromere(start: str, end: str, index: BandIndex) -> list[str]:
    """
    Range spanning the centromere: p10 out to the p-side breakpoint, then
    q10 out to the q-side breakpoint. Each side extends to the outermost
    sub-band of its breakpoint.
    """
    chromosome = chromosome_of(start)
    p_token, q_token = (start, end) if arm_of(start).endswith('p') else (end, start)

    p_centromere = index.index_of(chromosome + 'p10')
    q_centromere = index.index_of(chromosome + 'q10')
    p_outer = _outermost(p_token, index)
    q_outer = _outermost(q_token, index)
    if None in (p_centromere, q_centromere, p_outer, q_outer):
        return []

    return list(index.bands[p_centromere:p_outer + 1]) + list(index.bands[q_centromere:q_outer + 1])


def _outermost(token: str, index: BandIndex) -> int | None:
    """
    Most distal position covered by a token: the exact band, else the
    highest-index band starting with the token, else the resolved band.
    """
    position = index.index_of(token)
    if position is not None:
        return position

    outer = None
    for i, band in enumerate(index.bands):
        if band.startswith(token):
            outer = i
    if outer is not None:
        return outer

    return index.resolve(token)
