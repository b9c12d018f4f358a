"""
Loss/Gain/Fusion interpretation of standard ISCN events.

Works on the clone records produced by iscn_parser. Numerical changes gain or
lose whole chromosomes; structural events credit the bands between or
distal to their breakpoints.
"""

import re

from .band_ranges import bands_between, bands_of_arm, bands_of_chromosome
from .bands import (
    BandIndex,
    arm_of,
    chromosome_of,
    get_band_index,
    is_telomere,
    opposite_arm,
)
from .iscn_parser import Clone, KaryotypeEvent
from .outcome import BiologicalOutcome


# =============================================================================
# CONSTANTS
# =============================================================================

# Copies added by each duplication-type event
DUPLICATION_COPIES = {'dup': 1, 'trp': 2, 'qdp': 3}

# Events that need a breakpoint group to be interpreted
STRUCTURAL_KINDS = (
    'del', 'dup', 'inv', 't', 'add', 'i', 'idic', 'ins',
    'trp', 'qdp', 'dic', 'r', 'hsr', 'fra',
)

DIPLOID_COUNT = 46
AUTOSOME_COUNT = 44
NEAR_DIPLOID_RANGE = (35, 57)


# =============================================================================
# INTERPRETER
# =============================================================================

class StandardEventInterpreter:
    """
    Turn standard karyotype events into BiologicalOutcome vectors.

    Example:
        interpreter = StandardEventInterpreter()
        result = IscnParser().parse("46,XX,del(5)(q13q31)")
        outcomes = interpreter.get_multiple_clone_row_outcome(result.clones)
    """

    def __init__(self, index: BandIndex | None = None):
        self.index = index or get_band_index()

    # -- band utilities -------------------------------------------------------

    def chromosome_of(self, band: str) -> str | None:
        return chromosome_of(band)

    def arm_of(self, band: str) -> str | None:
        return arm_of(band)

    def opposite_arm(self, arm: str) -> str:
        return opposite_arm(arm)

    def telomere_band(self, arm: str) -> str | None:
        return self.index.telomere_band(arm)

    # -- pre-processing -------------------------------------------------------

    def process_missing_breakpoints(self, clones: list[Clone]) -> None:
        """Flag structural events written without breakpoints as uncertain."""
        for event in _all_events(clones):
            if event.kind in STRUCTURAL_KINDS and not event.breakpoints:
                event.uncertain = True

    def mark_uncertain_der_event(self, clones: list[Clone]) -> None:
        """Flag derivatives that do not say how they were derived."""
        for event in _all_events(clones):
            if event.kind == 'der' and not event.components and not event.breakpoints:
                event.uncertain = True

    def validate_clones(self, clones: list[Clone]) -> list[str]:
        return validate_clones(clones)

    # -- interpretation -------------------------------------------------------

    def get_multiple_clone_row_outcome(self, clones: list[Clone]) -> list[BiologicalOutcome]:
        """One freshly allocated outcome per clone."""
        return [self.get_karyotype_outcome(clone.events) for clone in clones]

    def get_karyotype_outcome(self, events: list[KaryotypeEvent]) -> BiologicalOutcome:
        """
        Interpret the events of one clone.

        Args:
            events: Parsed events

        Returns:
            Outcome with accumulated loss/gain/fusion counts
        """
        outcome = BiologicalOutcome.empty(self.index)
        for event in events:
            self.apply_event(event, outcome)
        return outcome

    def apply_event(self, event: KaryotypeEvent, outcome: BiologicalOutcome) -> None:
        if event.is_numerical:
            bands = bands_of_chromosome(event.chromosomes[0], self.index)
            if event.kind == '+':
                outcome.add_gain(bands, self.index)
            else:
                outcome.add_loss(bands, self.index)
            return

        if event.kind == 'mar':
            outcome.uncertain_events.append(event.text)
            return

        # A signed structural event adds or removes a whole abnormal chromosome
        if event.sign and event.chromosomes:
            bands = bands_of_chromosome(event.chromosomes[0], self.index)
            if event.sign == '+':
                outcome.add_gain(bands, self.index)
            else:
                outcome.add_loss(bands, self.index)
                return

        if event.uncertain or (event.kind in STRUCTURAL_KINDS and not event.breakpoints):
            outcome.uncertain_events.append(event.text)
            return

        handler = getattr(self, f"_apply_{event.kind}", None)
        if handler is None:
            outcome.uncertain_events.append(event.text)
            return
        handler(event, outcome)

    # -- event handlers -------------------------------------------------------

    def _apply_del(self, event: KaryotypeEvent, outcome: BiologicalOutcome) -> None:
        chromosome = event.chromosomes[0]
        breakpoints = event.breakpoints[0]
        if len(breakpoints) == 1:
            outcome.add_loss(self._distal(chromosome, breakpoints[0]), self.index)
        else:
            outcome.add_loss(
                bands_between(chromosome + breakpoints[0], chromosome + breakpoints[-1], self.index),
                self.index
            )
        self._fuse_all(chromosome, breakpoints, outcome)

    def _apply_dup(self, event: KaryotypeEvent, outcome: BiologicalOutcome) -> None:
        chromosome = event.chromosomes[0]
        breakpoints = event.breakpoints[0]
        copies = DUPLICATION_COPIES[event.kind]
        start, end = breakpoints[0], breakpoints[-1]
        outcome.add_gain(
            bands_between(chromosome + start, chromosome + end, self.index),
            self.index, count=copies
        )
        self._fuse_all(chromosome, breakpoints, outcome)

    _apply_trp = _apply_dup
    _apply_qdp = _apply_dup

    def _apply_inv(self, event: KaryotypeEvent, outcome: BiologicalOutcome) -> None:
        self._fuse_all(event.chromosomes[0], event.breakpoints[0], outcome)

    _apply_hsr = _apply_inv
    _apply_fra = _apply_inv

    def _apply_add(self, event: KaryotypeEvent, outcome: BiologicalOutcome) -> None:
        chromosome = event.chromosomes[0]
        breakpoint = event.breakpoints[0][0]
        outcome.add_loss(self._distal(chromosome, breakpoint), self.index)
        self._fuse(chromosome, breakpoint, outcome)
        outcome.uncertain_events.append(event.text)

    def _apply_t(self, event: KaryotypeEvent, outcome: BiologicalOutcome) -> None:
        for chromosome, breakpoints in zip(event.chromosomes, event.breakpoints):
            self._fuse_all(chromosome, breakpoints, outcome)

    _apply_ins = _apply_t

    def _apply_i(self, event: KaryotypeEvent, outcome: BiologicalOutcome) -> None:
        chromosome = event.chromosomes[0]
        arm = chromosome + event.breakpoints[0][0][0]
        outcome.add_gain(bands_of_arm(arm, index=self.index), self.index)
        outcome.add_loss(bands_of_arm(opposite_arm(arm), index=self.index), self.index)

    def _apply_idic(self, event: KaryotypeEvent, outcome: BiologicalOutcome) -> None:
        chromosome = event.chromosomes[0]
        breakpoint = event.breakpoints[0][0]
        distal = self._distal(chromosome, breakpoint)
        lost = set(distal)
        retained = [
            band for band in bands_of_chromosome(chromosome, self.index)
            if band not in lost
        ]
        outcome.add_loss(distal, self.index)
        outcome.add_gain(retained, self.index)
        self._fuse(chromosome, breakpoint, outcome)

    def _apply_r(self, event: KaryotypeEvent, outcome: BiologicalOutcome) -> None:
        chromosome = event.chromosomes[0]
        for breakpoint in event.breakpoints[0]:
            outcome.add_loss(self._distal(chromosome, breakpoint), self.index)
            self._fuse(chromosome, breakpoint, outcome)

    def _apply_dic(self, event: KaryotypeEvent, outcome: BiologicalOutcome) -> None:
        for chromosome, breakpoints in zip(event.chromosomes, event.breakpoints):
            for breakpoint in breakpoints:
                outcome.add_loss(self._distal(chromosome, breakpoint), self.index)
                self._fuse(chromosome, breakpoint, outcome)

    def _apply_der(self, event: KaryotypeEvent, outcome: BiologicalOutcome) -> None:
        derivative = event.chromosomes[0]

        # Whole-arm derivative such as der(1;7)(q10;p10): the opposite arms are lost
        if event.breakpoints and not event.components:
            for chromosome, breakpoints in zip(event.chromosomes, event.breakpoints):
                for breakpoint in breakpoints:
                    arm = chromosome + breakpoint[0]
                    outcome.add_loss(bands_of_arm(opposite_arm(arm), index=self.index), self.index)
                    self._fuse(chromosome, breakpoint, outcome)
            return

        for component in event.components:
            if not component.breakpoints:
                outcome.uncertain_events.append(component.text)
            elif component.kind == 't':
                self._apply_derivative_translocation(derivative, component, outcome)
            else:
                handler = getattr(self, f"_apply_{component.kind}", None)
                if handler is None:
                    outcome.uncertain_events.append(component.text)
                else:
                    handler(component, outcome)

    def _apply_derivative_translocation(
        self,
        derivative: str,
        translocation: KaryotypeEvent,
        outcome: BiologicalOutcome
    ) -> None:
        """
        Derivative of a (possibly multi-way) translocation: the derivative
        keeps its own chromosome up to the breakpoint and carries the distal
        segment of the preceding chromosome in the translocation cycle.
        """
        chromosomes = translocation.chromosomes
        groups = translocation.breakpoints
        if derivative not in chromosomes or len(groups) != len(chromosomes):
            outcome.uncertain_events.append(translocation.text)
            return

        position = chromosomes.index(derivative)
        donor = position - 1  # wraps to the last chromosome for position 0

        outcome.add_loss(self._distal(derivative, groups[position][0]), self.index)
        outcome.add_gain(self._distal(chromosomes[donor], groups[donor][0]), self.index)
        for chromosome, breakpoints in zip(chromosomes, groups):
            self._fuse_all(chromosome, breakpoints, outcome)

    # -- helpers --------------------------------------------------------------

    def _distal(self, chromosome: str, breakpoint: str) -> list[str]:
        """Bands from a breakpoint out to the telomere of its arm."""
        if breakpoint == 'cen':
            breakpoint = 'p10'
        telomere = 'pter' if breakpoint.startswith('p') else 'qter'
        return bands_between(chromosome + breakpoint, chromosome + telomere, self.index)

    def _fuse(self, chromosome: str, breakpoint: str, outcome: BiologicalOutcome) -> None:
        """
        Mark a fusion at one breakpoint. A centromeric breakpoint also marks
        the centromere band of the other arm.
        """
        if breakpoint == 'cen':
            breakpoint = 'p10'
        band = chromosome + breakpoint
        if is_telomere(band):
            return
        position = self.index.resolve(band, clamp=False)
        if position is None:
            return
        outcome.add_fusion(position)

        if breakpoint in ('p10', 'q10'):
            other = self.index.index_of(opposite_arm(chromosome + breakpoint[0]) + '10')
            if other is not None:
                outcome.add_fusion(other)

    def _fuse_all(self, chromosome: str, breakpoints: list[str], outcome: BiologicalOutcome) -> None:
        for breakpoint in breakpoints:
            self._fuse(chromosome, breakpoint, outcome)


def _all_events(clones: list[Clone]):
    for clone in clones:
        for event in clone.events:
            yield event
            yield from event.components


# =============================================================================
# VALIDATION
# =============================================================================

def validate_clones(clones: list[Clone]) -> list[str]:
    """
    Check clone relationships and near-diploid chromosome counts.

    Args:
        clones: Parsed clones of one row

    Returns:
        List of error messages (empty if all valid)
    """
    messages = []

    if clones and clones[0].relationship:
        messages.append(
            f"ERROR: First clone '{clones[0].code}' cannot reference "
            f"'{clones[0].relationship}'"
        )

    for number, clone in enumerate(clones, start=1):
        if not re.fullmatch(r'\d+', clone.count):
            continue
        declared = int(clone.count)
        if not NEAR_DIPLOID_RANGE[0] <= declared <= NEAR_DIPLOID_RANGE[1]:
            continue

        sex_count = len(clone.sex) if clone.sex else DIPLOID_COUNT - AUTOSOME_COUNT
        expected = AUTOSOME_COUNT + sex_count
        for event in clone.events:
            change = event.copies if event.kind == 'mar' else 1
            if '+' in (event.kind, event.sign):
                expected += change
            elif '-' in (event.kind, event.sign):
                expected -= change

        if expected != declared:
            messages.append(
                f"ERROR: Clone {number} '{clone.code}' declares {declared} "
                f"chromosomes but its events imply {expected}"
            )

    return messages
