"""
Parser for standard (short-form) ISCN karyotype notation.

Turns a karyotype row such as

    47,XX,+8,t(9;22)(q34;q11.2)[15]/46,XX[5]

into typed clone and event records. Rejected input is reported as data: a
list of positional token errors, never an exception. A cleaner offers an
automatic rewrite of common mistakes that callers may show as a suggested
correction.

Grammar (informal):
    row       := clone ('/' clone)*
    clone     := count (',' item)* cellcount?
    count     := NUMBER ('~' NUMBER)?
    cellcount := '[' 'cp'? NUMBER ']'
    item      := sex | 'idem' | 'sl' | 'sdl' NUMBER?
               | ('+' | '-')? (chromosome | event | NUMBER? 'mar')
    event     := KEYWORD '(' chromosomes ')' ('(' breakpoints ')')?
               | 'der' '(' chromosomes ')' event* ('(' breakpoints ')')?
"""

import re
from dataclasses import dataclass, field


# =============================================================================
# CONSTANTS
# =============================================================================

EVENT_KEYWORDS = (
    'del', 'dup', 'inv', 't', 'add', 'i', 'idic', 'ins',
    'trp', 'qdp', 'der', 'dic', 'r', 'hsr', 'fra',
)

RELATIONSHIPS = ('idem', 'sl', 'sdl')

SEX_PATTERN = re.compile(r'^[XY]+$', re.IGNORECASE)
SEX_CHROMOSOME_PATTERN = re.compile(r'^[XY]$', re.IGNORECASE)

TOKEN_PATTERN = re.compile(
    r'(?P<BAND>[pq](?:ter|\d+(?:\.\d+)?)|cen)'
    r'|(?P<NUMBER>\d+)'
    r'|(?P<WORD>[A-Za-z]+)'
    r'|(?P<LPAREN>\()'
    r'|(?P<RPAREN>\))'
    r'|(?P<LBRACKET>\[)'
    r'|(?P<RBRACKET>\])'
    r'|(?P<SEMI>;)'
    r'|(?P<COMMA>,)'
    r'|(?P<SLASH>/)'
    r'|(?P<PLUS>\+)'
    r'|(?P<MINUS>-)'
    r'|(?P<TILDE>~)',
    re.IGNORECASE
)

MAX_ERROR_DISPLAY = 100


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass
class TokenError:
    """Position and message of one lexer or parser error."""
    offset: int
    length: int
    message: str

    def describe(self, text: str) -> str:
        """
        Render the error against the input it was found in.

        Args:
            text: The string that was parsed

        Returns:
            '<offending substring>: <message>'
        """
        start = max(0, self.offset)
        if start >= len(text):
            tail = text[-MAX_ERROR_DISPLAY:]
            return f"[Full input: {tail}]: {self.message}"

        offending = text[start:min(len(text), self.offset + self.length)]
        if len(offending) > MAX_ERROR_DISPLAY:
            offending = offending[:MAX_ERROR_DISPLAY] + '...'
        return f"{offending}: {self.message}"


@dataclass
class Token:
    kind: str
    value: str
    start: int

    @property
    def end(self) -> int:
        return self.start + len(self.value)


@dataclass
class KaryotypeEvent:
    """One numerical or structural abnormality."""
    kind: str                      # '+'/'-' for numerical, else keyword or 'mar'
    chromosomes: list[str] = field(default_factory=list)
    breakpoints: list[list[str]] = field(default_factory=list)  # one group per chromosome
    sign: str = ''                 # '+'/'-' prefix on a structural event or marker
    components: list['KaryotypeEvent'] = field(default_factory=list)  # der() sub-events
    copies: int = 1
    text: str = ''
    uncertain: bool = False

    @property
    def is_numerical(self) -> bool:
        return self.kind in ('+', '-')


@dataclass
class Clone:
    """One cell line of a karyotype row."""
    count: str
    sex: str = ''
    events: list[KaryotypeEvent] = field(default_factory=list)
    cell_count: int | None = None
    relationship: str = ''
    code: str = ''


@dataclass
class ParseResult:
    """Either parsed clones or the errors that rejected the input."""
    clones: list[Clone] = field(default_factory=list)
    errors: list[TokenError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class _ParseFailure(Exception):
    def __init__(self, error: TokenError):
        super().__init__(error.message)
        self.error = error


# =============================================================================
# LEXER
# =============================================================================

def tokenize(text: str) -> tuple[list[Token], list[TokenError]]:
    """
    Split a karyotype string into tokens.

    Unrecognized characters are skipped and reported.

    Returns:
        Tuple of (tokens, lexer errors)
    """
    tokens = []
    errors = []
    position = 0

    while position < len(text):
        match = TOKEN_PATTERN.match(text, position)
        if match is None:
            errors.append(TokenError(
                position, 1, f"token recognition error at: '{text[position]}'"
            ))
            position += 1
            continue
        tokens.append(Token(match.lastgroup, match.group(), position))
        position = match.end()

    return tokens, errors


# =============================================================================
# PARSER
# =============================================================================

class _RowParser:
    """Recursive-descent parser over a token list."""

    def __init__(self, text: str, tokens: list[Token]):
        self.text = text
        self.tokens = tokens
        self.position = 0
        self.last_end = 0

    # -- token helpers --------------------------------------------------------

    def peek(self) -> Token | None:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def peek_word(self) -> str | None:
        token = self.peek()
        if token is not None and token.kind == 'WORD':
            return token.value.lower()
        return None

    def advance(self) -> Token:
        token = self.tokens[self.position]
        self.position += 1
        self.last_end = token.end
        return token

    def accept(self, kind: str) -> Token | None:
        token = self.peek()
        if token is not None and token.kind == kind:
            return self.advance()
        return None

    def expect(self, kind: str, description: str | None = None) -> Token:
        token = self.accept(kind)
        if token is None:
            self.fail(f"expecting {description or kind}")
        return token

    def fail(self, expectation: str) -> None:
        token = self.peek()
        if token is None:
            raise _ParseFailure(TokenError(
                len(self.text), 0, f"missing input at '<EOF>', {expectation}"
            ))
        raise _ParseFailure(TokenError(
            token.start, len(token.value),
            f"mismatched input '{token.value}' {expectation}"
        ))

    # -- grammar --------------------------------------------------------------

    def parse_row(self) -> list[Clone]:
        clones = [self.parse_clone()]
        while self.accept('SLASH'):
            clones.append(self.parse_clone())
        if self.peek() is not None:
            self.fail("expecting '/' or end of input")
        return clones

    def parse_clone(self) -> Clone:
        first = self.peek()
        start = first.start if first is not None else len(self.text)

        count = self.expect('NUMBER', 'chromosome count').value
        if self.accept('TILDE'):
            count += '~' + self.expect('NUMBER', 'chromosome count').value

        clone = Clone(count=count)
        while self.accept('COMMA'):
            self.parse_clone_item(clone)

        if self.accept('LBRACKET'):
            if self.peek_word() == 'cp':
                self.advance()
            clone.cell_count = int(self.expect('NUMBER', 'cell count').value)
            self.expect('RBRACKET', "']'")

        clone.code = self.text[start:self.last_end]
        return clone

    def parse_clone_item(self, clone: Clone) -> None:
        word = self.peek_word()
        if word is not None and SEX_PATTERN.match(word) and not clone.sex and not clone.events:
            clone.sex = self.advance().value.upper()
            return
        if word in ('idem', 'sl'):
            self.advance()
            clone.relationship = word
            return
        if word == 'sdl':
            self.advance()
            self.accept('NUMBER')
            clone.relationship = word
            return
        clone.events.append(self.parse_item())

    def parse_item(self) -> KaryotypeEvent:
        start_token = self.peek()
        sign = ''
        if self.accept('PLUS'):
            sign = '+'
        elif self.accept('MINUS'):
            sign = '-'

        token = self.peek()
        if token is None:
            self.fail("expecting chromosome or event")

        if token.kind == 'NUMBER':
            number = self.advance().value
            if self.peek_word() == 'mar':
                self.advance()
                return self._event('mar', start_token, sign=sign, copies=int(number))
            if not sign:
                self.fail("expecting '+' or '-' before chromosome")
            return self._event(sign, start_token, chromosomes=[number])

        word = self.peek_word()
        if word is not None and SEX_CHROMOSOME_PATTERN.match(word) and sign:
            self.advance()
            return self._event(sign, start_token, chromosomes=[word])
        if word == 'mar':
            self.advance()
            return self._event('mar', start_token, sign=sign)
        if word in EVENT_KEYWORDS:
            event = self.parse_event()
            event.sign = sign
            event.text = self.text[start_token.start:self.last_end]
            return event

        self.fail("expecting chromosome or event")

    def parse_event(self) -> KaryotypeEvent:
        start_token = self.advance()
        keyword = start_token.value.lower()
        chromosomes = self.parse_chromosome_group()

        components = []
        if keyword == 'der':
            while self.peek_word() in EVENT_KEYWORDS and self.peek_word() != 'der':
                components.append(self.parse_event())

        breakpoints = []
        token = self.peek()
        if token is not None and token.kind == 'LPAREN':
            breakpoints = self.parse_breakpoint_group()

        return self._event(
            keyword, start_token,
            chromosomes=chromosomes,
            breakpoints=breakpoints,
            components=components,
        )

    def parse_chromosome_group(self) -> list[str]:
        self.expect('LPAREN', "'('")
        chromosomes = [self._chromosome()]
        while self.accept('SEMI'):
            chromosomes.append(self._chromosome())
        self.expect('RPAREN', "')'")
        return chromosomes

    def _chromosome(self) -> str:
        token = self.accept('NUMBER')
        if token is not None:
            return token.value
        word = self.peek_word()
        if word is not None and SEX_CHROMOSOME_PATTERN.match(word):
            return self.advance().value.lower()
        self.fail("expecting chromosome")

    def parse_breakpoint_group(self) -> list[list[str]]:
        self.expect('LPAREN', "'('")
        groups = [[]]
        while True:
            if self.accept('RPAREN'):
                break
            if self.accept('SEMI'):
                groups.append([])
                continue
            band = self.expect('BAND', 'breakpoint')
            groups[-1].append(band.value.lower())

        if any(not group for group in groups):
            raise _ParseFailure(TokenError(
                self.last_end - 1, 1, "missing breakpoint"
            ))
        return groups

    def _event(self, kind: str, start_token: Token, **fields) -> KaryotypeEvent:
        text = self.text[start_token.start:self.last_end]
        return KaryotypeEvent(kind=kind, text=text, **fields)


# =============================================================================
# PUBLIC API
# =============================================================================

class IscnParser:
    """
    Standard ISCN parser.

    Example:
        result = IscnParser().parse("46,XX,del(5)(q13q31)")
        if result.ok:
            events = result.clones[0].events
    """

    def parse(self, text: str) -> ParseResult:
        """
        Parse a karyotype row.

        Args:
            text: Whitespace-free karyotype string

        Returns:
            ParseResult with clones, or with the first error that rejected it
        """
        tokens, lexer_errors = tokenize(text)
        if lexer_errors:
            return ParseResult(errors=lexer_errors[:1])

        try:
            clones = _RowParser(text, tokens).parse_row()
        except _ParseFailure as failure:
            return ParseResult(errors=[failure.error])

        _inherit_relationships(clones)
        return ParseResult(clones=clones)

    def collect_token_errors(self, text: str) -> list[TokenError]:
        """
        Permissive pass: every lexer error plus the first parser error on the
        tokens that could be recognized.
        """
        tokens, errors = tokenize(text)
        try:
            _RowParser(text, tokens).parse_row()
        except _ParseFailure as failure:
            errors.append(failure.error)
        return sorted(errors, key=lambda error: error.offset)


def _inherit_relationships(clones: list[Clone]) -> None:
    """Expand idem/sl (stemline) and sdl (previous sideline) references."""
    for i, clone in enumerate(clones):
        if i == 0 or not clone.relationship:
            continue
        source = clones[0] if clone.relationship in ('idem', 'sl') else clones[i - 1]
        clone.events = list(source.events) + clone.events
        if not clone.sex:
            clone.sex = source.sex


def parse_karyotype(text: str) -> ParseResult:
    """Parse with a default IscnParser."""
    return IscnParser().parse(text)


# =============================================================================
# CLEANER
# =============================================================================

KEYWORD_CASE_PATTERN = re.compile(
    r'(?<![A-Za-z])(' + '|'.join(sorted(EVENT_KEYWORDS, key=len, reverse=True)) + r')(?=\()',
    re.IGNORECASE
)
SEX_FIELD_PATTERN = re.compile(r'(^|/)(\d+(?:~\d+)?,)([XY]+)(?=[,\[/]|$)', re.IGNORECASE)
GROUP_PATTERN = re.compile(r'\(([^()]*)\)')
BAND_RANGE_DASH_PATTERN = re.compile(r'([pq](?:\d+(?:\.\d+)?|ter))-(?=[pq])')
UNCLOSED_COUNT_PATTERN = re.compile(r'\[(cp)?(\d+)(?=/|$)', re.IGNORECASE)

CHARACTER_REPLACEMENTS = {
    '（': '(', '）': ')', '；': ';', '，': ',',
    '［': '[', '］': ']', '／': '/',
}


class KaryotypeCleaner:
    """
    Rewrite common notation mistakes.

    The rewrite is only a suggestion: callers re-parse it and never use it to
    compute outcomes.
    """

    def clean(self, text: str) -> str:
        text = re.sub(r'\s+', '', text.strip().strip('"\''))
        for wrong, right in CHARACTER_REPLACEMENTS.items():
            text = text.replace(wrong, right)

        text = KEYWORD_CASE_PATTERN.sub(lambda m: m.group(1).lower(), text)
        text = SEX_FIELD_PATTERN.sub(
            lambda m: m.group(1) + m.group(2) + m.group(3).upper(), text
        )
        text = GROUP_PATTERN.sub(
            lambda m: '(' + m.group(1).replace(',', ';').lower() + ')', text
        )
        text = BAND_RANGE_DASH_PATTERN.sub(r'\1', text)

        text = re.sub(r',{2,}', ',', text)
        text = re.sub(r',(?=[\[/]|$)', '', text)
        text = UNCLOSED_COUNT_PATTERN.sub(
            lambda m: f"[{m.group(1) or ''}{m.group(2)}]", text
        )
        return text
