"""
Interpreter for detailed derivative formulas.

Detailed ISCN describes a rearranged chromosome fragment by fragment:

    der(13)(13pter->13q10::15q21->15q31::13q14->13qter)
    der(13;15)(13pter->13q10::15q10->15q21)        # dicentric
    der(7)(::7q11->7q31::)                          # ring
    der(8)(8pter->8q21::hsr::8q24->8qter)           # amplified region

A clause is tokenized into a typed sequence of segments and markers, then
interpreted into Loss/Gain/Fusion counts:
- fragments from a base chromosome keep their material; the gaps between
  them (and the ends not reaching a telomere) are lost
- fragments from any other chromosome are gained
- every non-telomeric fragment end is a fusion point

USAGE:
    from karyolgf.detailed_formula import parse_detailed_formula

    outcome = parse_detailed_formula("der(7)(::7q11->7q31::)")
"""

import logging
import re
from dataclasses import dataclass, field
from functools import cmp_to_key

from .band_ranges import bands_between, bands_of_chromosome
from .bands import BandIndex, chromosome_of, get_band_index, is_telomere
from .outcome import BiologicalOutcome


# =============================================================================
# CONSTANTS
# =============================================================================

FUSION_SEPARATOR = '::'
SEGMENT_ARROW = '->'
HSR = 'hsr'

# Keywords that open a clause anywhere; 'r(' only opens one at a clause start
CLAUSE_KEYWORDS = ('der', 'dic')
RING_KEYWORD = 'r'

CHROMOSOMELESS_BAND = re.compile(r'^[pq](?:\d|ter)')


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class Segment:
    """Directed chromosome fragment, e.g. 13pter->13q10."""
    start: str
    end: str

    @property
    def chromosome(self) -> str | None:
        return chromosome_of(self.start)


@dataclass(frozen=True)
class Breakpoint:
    """Standalone breakpoint between two fusion markers."""
    token: str


@dataclass(frozen=True)
class HsrMarker:
    """Homogeneously staining region of unknown band composition."""
    token: str = HSR


@dataclass
class DetailedFormula:
    """One parsed clause: base chromosomes plus its segment/marker sequence."""
    keyword: str
    base_chromosomes: tuple[str, ...]
    elements: list = field(default_factory=list)
    is_ring: bool = False
    text: str = ''

    @property
    def segments(self) -> list[Segment]:
        return [element for element in self.elements if isinstance(element, Segment)]

    @property
    def is_dicentric(self) -> bool:
        return len(self.base_chromosomes) > 1

    def native_segments(self, chromosome: str) -> list[Segment]:
        return [segment for segment in self.segments if segment.chromosome == chromosome]


@dataclass(frozen=True)
class ClauseMatch:
    """Location of a detailed clause inside a larger karyotype string."""
    text: str
    start: int
    end: int


# =============================================================================
# CLAUSE EXTRACTION
# =============================================================================

def _consume_group(text: str, position: int) -> int | None:
    """
    Consume a parenthesis group by depth counting.

    Args:
        text: Full string
        position: Index of the opening '('

    Returns:
        Index just past the matching ')', or None if unbalanced
    """
    if position >= len(text) or text[position] != '(':
        return None

    depth = 0
    for i in range(position, len(text)):
        if text[i] == '(':
            depth += 1
        elif text[i] == ')':
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def _keyword_at(lowered: str, position: int) -> str | None:
    for keyword in CLAUSE_KEYWORDS:
        if lowered.startswith(keyword + '(', position):
            return keyword
    if lowered.startswith(RING_KEYWORD + '(', position):
        if position == 0 or lowered[position - 1] == ',':
            return RING_KEYWORD
    return None


def extract_detailed_clauses(text: str) -> list[ClauseMatch]:
    """
    Find every detailed clause in a karyotype string.

    A candidate is a keyword plus its chromosome group plus, when it follows
    immediately, a second group. Candidates without '->' or '::' are
    ordinary notation (e.g. der(9)t(9;17)(q11;q34)) and are skipped.

    Args:
        text: Karyotype string

    Returns:
        Clause matches in order of appearance
    """
    lowered = text.lower()
    clauses = []
    position = 0

    while position < len(text):
        keyword = _keyword_at(lowered, position)
        if keyword is None:
            position += 1
            continue

        first_end = _consume_group(text, position + len(keyword))
        if first_end is None:
            position += 1
            continue

        end = first_end
        second_end = _consume_group(text, first_end)
        if second_end is not None:
            end = second_end

        candidate = text[position:end]
        if SEGMENT_ARROW in candidate or FUSION_SEPARATOR in candidate:
            clauses.append(ClauseMatch(text=candidate, start=position, end=end))
        position = end

    return clauses


def is_detailed_formula(text: str) -> bool:
    """True if the string contains at least one detailed clause."""
    return bool(extract_detailed_clauses(text))


# =============================================================================
# CLAUSE PARSING
# =============================================================================

def tokenize_body(body: str, base_chromosomes: tuple[str, ...] = ()) -> tuple[list, bool]:
    """
    Split a clause body into segments and markers.

    Args:
        body: Text between the second pair of parentheses
        base_chromosomes: Used to qualify bands written without a chromosome
            when the clause has a single base chromosome

    Returns:
        Tuple of (elements, is_ring)
    """
    body = body.strip()
    is_ring = (
        len(body) >= 2 * len(FUSION_SEPARATOR)
        and body.startswith(FUSION_SEPARATOR)
        and body.endswith(FUSION_SEPARATOR)
    )
    if is_ring:
        body = body[len(FUSION_SEPARATOR):-len(FUSION_SEPARATOR)]

    default_chromosome = base_chromosomes[0] if len(base_chromosomes) == 1 else None

    elements = []
    for piece in body.split(FUSION_SEPARATOR):
        piece = piece.strip().lower()
        if not piece:
            continue
        if piece == HSR:
            elements.append(HsrMarker())
            continue

        parts = [_qualify(part.strip(), default_chromosome) for part in piece.split(SEGMENT_ARROW)]
        if len(parts) == 2:
            elements.append(Segment(start=parts[0], end=parts[1]))
        elif len(parts) == 1:
            elements.append(Breakpoint(token=parts[0]))
        # More than one arrow is malformed and contributes nothing

    return elements, is_ring


def _qualify(token: str, chromosome: str | None) -> str:
    """Prefix a bare band ('q21', 'pter') with the clause's chromosome."""
    if chromosome and CHROMOSOMELESS_BAND.match(token):
        return chromosome + token
    return token


def parse_clause(clause: str) -> DetailedFormula | None:
    """
    Parse one clause such as 'der(13;15)(13pter->13q10::15q10->15q21)'.

    Returns:
        Parsed formula, or None if the clause is not well formed
    """
    clause = clause.strip()
    opening = clause.find('(')
    if opening <= 0:
        return None

    keyword = clause[:opening].lower()
    first_end = _consume_group(clause, opening)
    second_end = _consume_group(clause, first_end) if first_end is not None else None
    if second_end is None:
        return None

    base_text = clause[opening + 1:first_end - 1]
    base_chromosomes = tuple(
        part.strip().lower() for part in base_text.split(';') if part.strip()
    )
    if not base_chromosomes:
        return None

    body = clause[first_end + 1:second_end - 1]
    elements, is_ring = tokenize_body(body, base_chromosomes)

    return DetailedFormula(
        keyword=keyword,
        base_chromosomes=base_chromosomes,
        elements=elements,
        is_ring=is_ring,
        text=clause,
    )


# =============================================================================
# INTERPRETATION
# =============================================================================

def compare_breakpoints(first: str, second: str, index: BandIndex) -> int:
    """
    Order two breakpoints along the chromosome.

    pter sorts first, qter last, resolvable bands by index, anything else
    lexically.
    """
    if first == second:
        return 0
    if 'pter' in first:
        return -1
    if 'pter' in second:
        return 1
    if 'qter' in first:
        return 1
    if 'qter' in second:
        return -1

    first_position = index.resolve(first)
    second_position = index.resolve(second)
    if first_position is not None and second_position is not None:
        return (first_position > second_position) - (first_position < second_position)
    return (first > second) - (first < second)


def mark_fusion(token: str, outcome: BiologicalOutcome, index: BandIndex) -> None:
    """Add one fusion count at a breakpoint; telomeres and hsr are skipped."""
    if is_telomere(token) or token.lower() == HSR:
        return
    position = index.resolve(token, clamp=False)
    if position is not None:
        outcome.add_fusion(position)


def record_losses(
    chromosome: str,
    segments: list[Segment],
    outcome: BiologicalOutcome,
    index: BandIndex
) -> None:
    """
    Credit losses of one base chromosome from the fragments it retains.

    Args:
        chromosome: Base chromosome ('13')
        segments: All directed segments of the clause
        outcome: Outcome receiving the loss counts
        index: Band index
    """
    native = [segment for segment in segments if segment.chromosome == chromosome]
    if not native:
        outcome.add_loss(bands_of_chromosome(chromosome, index), index)
        return

    native.sort(key=cmp_to_key(lambda a, b: compare_breakpoints(a.start, b.start, index)))

    first = native[0]
    if 'pter' not in first.start:
        outcome.add_loss(bands_between(chromosome + 'pter', first.start, index), index)

    for current, following in zip(native, native[1:]):
        if current.end != following.start:
            outcome.add_loss(bands_between(current.end, following.start, index), index)

    last = native[-1]
    if 'qter' not in last.end:
        outcome.add_loss(bands_between(last.end, chromosome + 'qter', index), index)


def interpret_formula(
    formula: DetailedFormula,
    outcome: BiologicalOutcome,
    index: BandIndex | None = None
) -> BiologicalOutcome:
    """
    Accumulate the Loss/Gain/Fusion contribution of one clause.

    Args:
        formula: Parsed clause
        outcome: Outcome to add counts to
        index: Band index (defaults to the shared index)

    Returns:
        The same outcome, for chaining
    """
    index = index or get_band_index()
    base = set(formula.base_chromosomes)

    for element in formula.elements:
        if isinstance(element, Segment):
            mark_fusion(element.start, outcome, index)
            mark_fusion(element.end, outcome, index)
            if element.chromosome not in base:
                outcome.add_gain(bands_between(element.start, element.end, index), index)
        elif isinstance(element, Breakpoint):
            mark_fusion(element.token, outcome, index)

    segments = formula.segments
    for chromosome in formula.base_chromosomes:
        record_losses(chromosome, segments, outcome, index)

    return outcome


def clean_formula_text(text: str) -> str:
    """Strip whitespace, surrounding quotes and '?' uncertainty markers."""
    text = text.strip().strip('"\'')
    return re.sub(r'\s+', '', text).replace('?', '')


def parse_detailed_formula(
    text: str,
    index: BandIndex | None = None,
    logger: logging.Logger | None = None
) -> BiologicalOutcome:
    """
    Interpret every detailed clause of a karyotype string.

    Malformed clauses, and clauses left without any fragment or breakpoint
    once malformed pieces are dropped, contribute nothing; the result is
    never None.

    Args:
        text: Karyotype string or a single clause
        index: Band index (defaults to the shared index)
        logger: Optional logger

    Returns:
        Outcome with one detailed-system entry per interpreted clause
    """
    index = index or get_band_index()
    outcome = BiologicalOutcome.empty(index)

    for clause in extract_detailed_clauses(clean_formula_text(text)):
        formula = parse_clause(clause.text)
        if formula is None or not formula.elements:
            if logger:
                logger.debug(f"Skipping malformed detailed clause: {clause.text}")
            continue

        interpret_formula(formula, outcome, index)
        outcome.detailed_system.append(clause.text)
        if logger:
            logger.debug(
                f"Interpreted {clause.text}: {len(formula.segments)} segments, "
                f"ring={formula.is_ring}"
            )

    return outcome
