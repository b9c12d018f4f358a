"""
Top-level interpretation of one karyotype string.

A karyotype may be written in standard ISCN, in detailed derivative
notation, or in a mix of both, and may describe several clones. The runner
classifies the input, sends each part to the right pipeline, merges partial
outcomes and turns parser rejections into structured errors.

Routing:
    standard only            -> IscnParser + StandardEventInterpreter
    detailed only            -> detailed_formula interpreter
    standard + detailed      -> both, merged element-wise
    multi-clone + detailed   -> whole row through the standard parser; if it
                                is rejected, each clone is routed on its own

USAGE:
    from karyolgf.runner import get_final_result

    result = get_final_result("46,XX,+7,del(5)(q13q31)")
    result.outcomes[0].gain
"""

import logging
import re
from dataclasses import dataclass, field

from .bands import BandIndex, get_band_index
from .detailed_formula import (
    ClauseMatch,
    clean_formula_text,
    extract_detailed_clauses,
    parse_detailed_formula,
)
from .iscn_parser import IscnParser, KaryotypeCleaner, ParseResult
from .outcome import BiologicalOutcome, describe_outcome, merge_outcomes
from .standard_events import StandardEventInterpreter


# =============================================================================
# CONSTANTS
# =============================================================================

CLONE_SEPARATOR = ']/'

STANDARD_EVENT_PATTERN = re.compile(
    r'(?:del|dup|inv|t|add|i|idic|ins|trp|qdp|der|dic|r)\(|[+\-]',
    re.IGNORECASE
)
COUNT_AND_SEX_PATTERN = re.compile(r'^\d+(?:~\d+)?,(?:[XY]+)?,?', re.IGNORECASE)
TRAILING_CELL_COUNT_PATTERN = re.compile(r'\[(?:cp)?(\d+)\]?$', re.IGNORECASE)


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass
class InputClassification:
    multi_clone: bool
    detailed: bool
    mixed: bool


@dataclass
class FinalResult:
    """Everything produced for one karyotype string."""
    karyotype: str = ''
    outcomes: list[BiologicalOutcome] = field(default_factory=list)
    interpretations: list[str] = field(default_factory=list)
    clone_codes: list[str] = field(default_factory=list)
    cell_counts: list[int | None] = field(default_factory=list)
    relationships: list[str] = field(default_factory=list)
    token_errors: list[str] = field(default_factory=list)
    revised_karyotype: str | None = None
    lexer_parser_error: bool = False
    validation_error: bool = False
    error_messages: list[str] = field(default_factory=list)

    @property
    def undecoded(self) -> bool:
        """True when no outcome could be produced."""
        return not self.outcomes

    def add_outcome(
        self,
        outcome: BiologicalOutcome,
        code: str,
        cell_count: int | None = None,
        relationship: str = '',
        index: BandIndex | None = None
    ) -> None:
        self.outcomes.append(outcome)
        self.interpretations.append(describe_outcome(outcome, index))
        self.clone_codes.append(code)
        self.cell_counts.append(cell_count)
        self.relationships.append(relationship)

    def extend(self, other: 'FinalResult') -> None:
        """Append the clones and errors of another result."""
        self.outcomes.extend(other.outcomes)
        self.interpretations.extend(other.interpretations)
        self.clone_codes.extend(other.clone_codes)
        self.cell_counts.extend(other.cell_counts)
        self.relationships.extend(other.relationships)
        self.token_errors.extend(other.token_errors)
        self.error_messages.extend(other.error_messages)
        self.lexer_parser_error = self.lexer_parser_error or other.lexer_parser_error
        self.validation_error = self.validation_error or other.validation_error
        if self.revised_karyotype is None:
            self.revised_karyotype = other.revised_karyotype

    def to_dict(self, index: BandIndex | None = None) -> dict:
        return {
            'karyotype': self.karyotype,
            'clones': [
                {
                    'clone_code': code,
                    'cell_count': cell_count,
                    'relationship': relationship,
                    'interpretation': interpretation,
                    **outcome.to_dict(index),
                }
                for outcome, interpretation, code, cell_count, relationship in zip(
                    self.outcomes, self.interpretations, self.clone_codes,
                    self.cell_counts, self.relationships
                )
            ],
            'token_errors': list(self.token_errors),
            'revised_karyotype': self.revised_karyotype,
            'lexer_parser_error': self.lexer_parser_error,
            'validation_error': self.validation_error,
            'error_messages': list(self.error_messages),
        }


# =============================================================================
# CLASSIFICATION
# =============================================================================

def normalize_karyotype(text: str) -> str:
    """
    Strip whitespace, quotes and '?' markers.

    The position of a removed '?' is not kept: a band that followed it is
    treated as certain.
    """
    return clean_formula_text(text)


def has_standard_events(residue: str) -> bool:
    """True if text, ignoring its modal count and sex, holds a standard event."""
    return bool(STANDARD_EVENT_PATTERN.search(COUNT_AND_SEX_PATTERN.sub('', residue)))


def remove_detailed_clauses(text: str, clauses: list[ClauseMatch]) -> str:
    """
    Cut detailed clauses out of a karyotype and tidy the commas left behind.

    Example:
        '46,XX,del(5)(q13q31),der(13)(...)' -> '46,XX,del(5)(q13q31)'
    """
    residue = text
    for clause in sorted(clauses, key=lambda c: c.start, reverse=True):
        residue = residue[:clause.start] + residue[clause.end:]

    residue = re.sub(r',{2,}', ',', residue)
    residue = residue.replace(',)', ')')
    residue = re.sub(r',(?=[\[/])', '', residue)
    return residue.rstrip(',')


def classify_karyotype(text: str) -> InputClassification:
    """
    Classify a normalized karyotype string.

    Args:
        text: Karyotype with whitespace, quotes and '?' removed

    Returns:
        InputClassification flags used for routing
    """
    clauses = extract_detailed_clauses(text)
    detailed = bool(clauses)
    mixed = detailed and has_standard_events(remove_detailed_clauses(text, clauses))
    return InputClassification(
        multi_clone=CLONE_SEPARATOR in text,
        detailed=detailed,
        mixed=mixed,
    )


def split_clones(text: str) -> list[tuple[str, int | None]]:
    """
    Split a multi-clone row at ']/' and detach each clone's cell count.

    Returns:
        List of (clone text without '[n]', cell count or None)
    """
    pieces = text.split(CLONE_SEPARATOR)
    clones = []
    for i, piece in enumerate(pieces):
        if i < len(pieces) - 1:
            piece += ']'
        clones.append(strip_cell_count(piece))
    return clones


def strip_cell_count(text: str) -> tuple[str, int | None]:
    """'46,XX[20]' -> ('46,XX', 20)"""
    match = TRAILING_CELL_COUNT_PATTERN.search(text)
    if match is None:
        return text, None
    return text[:match.start()], int(match.group(1))


# =============================================================================
# RUNNER
# =============================================================================

class KaryotypeRunner:
    """
    Route karyotype strings through the standard and detailed pipelines.

    The standard parser, event interpreter and cleaner can be replaced by
    any objects with the same methods.

    Example:
        runner = KaryotypeRunner(logger=logger)
        result = runner.get_final_result("47,XX,+8[15]/46,XX[5]")
    """

    def __init__(
        self,
        parser: IscnParser | None = None,
        interpreter: StandardEventInterpreter | None = None,
        cleaner: KaryotypeCleaner | None = None,
        index: BandIndex | None = None,
        logger: logging.Logger | None = None
    ):
        self.index = index or get_band_index()
        self.parser = parser or IscnParser()
        self.interpreter = interpreter or StandardEventInterpreter(self.index)
        self.cleaner = cleaner or KaryotypeCleaner()
        self.logger = logger

    def get_final_result(self, text: str) -> FinalResult:
        """
        Interpret one karyotype string.

        Never raises on malformed input: parser rejections, validation
        failures and undecodable input are reported on the result.

        Args:
            text: Raw karyotype, optionally quoted or containing whitespace

        Returns:
            FinalResult with one outcome per decoded clone
        """
        result = FinalResult(karyotype=text)
        karyotype = normalize_karyotype(text)
        if not karyotype:
            result.error_messages.append("ERROR: Empty karyotype")
            return result

        self._route(karyotype, result)

        if self.logger and result.undecoded:
            self.logger.debug(f"Undecoded karyotype: {text}")
        return result

    # -- routing --------------------------------------------------------------

    def _route(self, text: str, result: FinalResult) -> None:
        classification = classify_karyotype(text)
        if self.logger:
            self.logger.debug(f"Classified {text}: {classification}")

        if classification.detailed and classification.multi_clone:
            self._run_multi_clone(text, result)
        elif not classification.detailed:
            self._run_standard(text, result)
        elif not classification.mixed:
            self._run_detailed(text, result)
        else:
            self._run_mixed(text, result)

    def _run_standard(self, text: str, result: FinalResult) -> None:
        parsed = self.parser.parse(text)
        if not parsed.ok:
            result.lexer_parser_error = True
            self._recover(text, result)
            return
        self._interpret_parsed(parsed, result)

    def _interpret_parsed(self, parsed: ParseResult, result: FinalResult) -> None:
        clones = parsed.clones
        self.interpreter.process_missing_breakpoints(clones)

        messages = self.interpreter.validate_clones(clones)
        if messages:
            result.validation_error = True
            result.error_messages.extend(messages)
            if self.logger:
                for message in messages:
                    self.logger.warning(message)
            return

        self.interpreter.mark_uncertain_der_event(clones)
        outcomes = self.interpreter.get_multiple_clone_row_outcome(clones)
        for clone, outcome in zip(clones, outcomes):
            result.add_outcome(
                outcome, clone.code, clone.cell_count, clone.relationship, self.index
            )

    def _run_detailed(self, text: str, result: FinalResult) -> None:
        code, cell_count = strip_cell_count(text)
        outcome = parse_detailed_formula(code, self.index, self.logger)
        result.add_outcome(outcome, code, cell_count, index=self.index)

    def _run_mixed(self, text: str, result: FinalResult) -> None:
        code, cell_count = strip_cell_count(text)
        clauses = extract_detailed_clauses(code)
        residue = remove_detailed_clauses(code, clauses)

        standard_outcome = None
        relationship = ''
        parsed = self.parser.parse(residue)
        if parsed.ok:
            clone = parsed.clones[0]
            self.interpreter.process_missing_breakpoints(parsed.clones)
            self.interpreter.mark_uncertain_der_event(parsed.clones)
            standard_outcome = self.interpreter.get_karyotype_outcome(clone.events)
            relationship = clone.relationship
        else:
            result.lexer_parser_error = True
            self._recover(residue, result)
            if self.logger:
                self.logger.debug("Using detailed clauses only")

        detailed_outcome = parse_detailed_formula(code, self.index, self.logger)
        merged = merge_outcomes(standard_outcome, detailed_outcome)
        if merged is not None:
            result.add_outcome(merged, code, cell_count, relationship, self.index)

    def _run_multi_clone(self, text: str, result: FinalResult) -> None:
        parsed = self.parser.parse(text)
        if parsed.ok:
            self._interpret_parsed(parsed, result)
            return

        if self.logger:
            self.logger.debug("Row rejected as a whole; interpreting clones separately")

        for clone_text, cell_count in split_clones(text):
            clone_result = FinalResult(karyotype=clone_text)
            self._route(clone_text, clone_result)
            clone_result.cell_counts = [
                cell_count if count is None else count
                for count in clone_result.cell_counts
            ]
            result.extend(clone_result)

    # -- recovery -------------------------------------------------------------

    def _recover(self, text: str, result: FinalResult) -> None:
        """
        Collect positional token errors and, separately, try the cleaner.
        A rewrite that parses is offered as a suggestion only.
        """
        errors = self.parser.collect_token_errors(text)
        result.token_errors.extend(error.describe(text) for error in errors)

        revised = self.cleaner.clean(text)
        if revised != text and self.parser.parse(revised).ok:
            result.revised_karyotype = revised

        if self.logger:
            self.logger.warning(
                f"Could not parse '{text}': {len(errors)} token error(s)"
                + (f", suggested correction: {result.revised_karyotype}"
                   if result.revised_karyotype else "")
            )


def get_final_result(
    text: str,
    parser: IscnParser | None = None,
    interpreter: StandardEventInterpreter | None = None,
    cleaner: KaryotypeCleaner | None = None,
    logger: logging.Logger | None = None
) -> FinalResult:
    """Interpret one karyotype with a one-off KaryotypeRunner."""
    runner = KaryotypeRunner(
        parser=parser, interpreter=interpreter, cleaner=cleaner, logger=logger
    )
    return runner.get_final_result(text)
