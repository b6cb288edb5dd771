"""
Query Compiler

Compiles a DSL string into a DynamoDB expression plus the
ExpressionAttributeNames / ExpressionAttributeValues maps it refers to.

Two literal grammars are supported, selected per call (LiteralGrammar):

AUTO (default)
    Literal types are inferred from the text::

        beep > 10                       -> #V1 > :V2        {':V2': {'N': '10'}}
        foo.bar = 'bazz'                -> #V1.#V2 = :V3    {':V3': {'S': 'bazz'}}
        contains(a.b[1], <AAE=>)        -> contains(#V1.#V2[1], :V3)
        SET n = if_not_exists(n, 0) + 1 -> SET #V1 = if_not_exists(#V2, :V3) + :V4
        `dotted.name` = null            -> #V1 = :V2        {'#V1': 'dotted.name'}

    The input is tokenized once and each token is rewritten by the first
    matching rule, in this order:

    1. quoted identifiers (backtick or double quote) are one opaque name
    2. single-quoted strings become S values
    3. numbers after any other token become N values (text kept verbatim)
    4. null/true/false after an operator, keyword, '(' or ',' become NULL/BOOL
    5. operands of ADD/REMOVE/DELETE clauses become names
    6. the left operand of BETWEEN/IN becomes names
    7. <...> becomes a B value
    8. the first argument of a function call becomes names
    9. a path followed by a comparator becomes names

    Every dotted segment gets its own name placeholder; ``[n]`` indexes stay
    attached to their segment. A hyphenated segment such as ``created-at``
    is one name, except directly after an operator where ``b-c`` stays a
    subtraction. Anything else passes through unchanged.

EXPLICIT
    Values are written ``TAG(payload)`` with TAG in S N BOOL NULL B BS SS NS and
    names ``$(path)``; the rest of the text passes through verbatim. Payloads
    may contain balanced parentheses: ``N(1(0)0)`` binds ``'1(0)0'``.

Placeholders are allocated from one counter per call, in source order.
Malformed input raises CompileError; no partial result is ever returned.
"""

import logging
import re
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from ..exceptions import CompileError
from ..models.enums import LiteralGrammar, WireTag
from ..models.expressions import CompiledExpression

logger = logging.getLogger(__name__)

KEYWORDS = frozenset({"SET", "ADD", "REMOVE", "DELETE", "AND", "OR", "NOT", "BETWEEN", "IN"})
CLAUSE_KEYWORDS = frozenset({"SET", "ADD", "REMOVE", "DELETE"})
OPERAND_CLAUSES = frozenset({"ADD", "REMOVE", "DELETE"})
RANGE_KEYWORDS = frozenset({"BETWEEN", "IN"})
LITERAL_WORDS = {
    "null": {WireTag.NULL.value: True},
    "true": {WireTag.BOOL.value: True},
    "false": {WireTag.BOOL.value: False},
}
NAME_QUOTES = "`\""

_SPACE_RE = re.compile(r"\s+")
_WORD_RE = re.compile(r"\w+")
_HYPHENATED_RE = re.compile(r"-[^\W\d]\w*")
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?(?!\w)")
_BINARY_RE = re.compile(r"<([^\s<>]+)>")
_OPERATOR_RE = re.compile(r"<>|<=|>=|[=<>+\-]")
_PLACEHOLDER_RE = re.compile(r"[#:]\w+")
_INDEX_RE = re.compile(r"(?:\[\d+\])+")
_TYPED_LITERAL_RE = re.compile(r"(?<![\w$])(BOOL|NULL|BS|SS|NS|S|N|B|\$)\(")


class TokenKind(Enum):
    STRING = "string"
    BINARY = "binary"
    NUMBER = "number"
    OPERATOR = "operator"
    LPAREN = "lparen"
    RPAREN = "rparen"
    COMMA = "comma"
    PLACEHOLDER = "placeholder"
    PATH = "path"
    OTHER = "other"


class Segment(NamedTuple):
    name: str
    suffix: str
    quoted: bool


class Token(NamedTuple):
    kind: TokenKind
    text: str
    offset: int
    spaced: bool
    segments: Tuple[Segment, ...] = ()
    payload: Any = None

    @property
    def bare_word(self) -> Optional[str]:
        """The identifier of a single unquoted, unindexed path segment."""
        if self.kind is TokenKind.PATH and len(self.segments) == 1:
            segment = self.segments[0]
            if not segment.quoted and not segment.suffix:
                return segment.name
        return None

    @property
    def keyword(self) -> Optional[str]:
        word = self.bare_word
        if word and word.upper() in KEYWORDS:
            return word.upper()
        return None


class CompileContext:
    """Placeholder allocation for one compile call."""

    def __init__(self, start_index: int = 1):
        self._next_index = start_index
        self.names: Dict[str, str] = {}
        self.values: Dict[str, Dict[str, Any]] = {}

    def _allocate(self) -> int:
        index = self._next_index
        self._next_index += 1
        return index

    def name(self, attribute: str) -> str:
        placeholder = f"#V{self._allocate()}"
        self.names[placeholder] = attribute
        return placeholder

    def value(self, wire: Dict[str, Any]) -> str:
        placeholder = f":V{self._allocate()}"
        self.values[placeholder] = wire
        return placeholder

    def path(self, segments: Tuple[Segment, ...]) -> str:
        return ".".join(self.name(segment.name) + segment.suffix for segment in segments)

    def result(self, expression: str) -> CompiledExpression:
        return CompiledExpression(expression=expression, names=self.names, values=self.values)


# =============================================================================
# Lexing
# =============================================================================

def _scan_segment(source: str, pos: int, hyphens: bool = False) -> Tuple[str, bool, int]:
    quote = source[pos]
    if quote in NAME_QUOTES:
        end = source.find(quote, pos + 1)
        if end == -1:
            raise CompileError("Unterminated quoted attribute name", source, pos)
        return source[pos + 1:end], True, end + 1
    match = _WORD_RE.match(source, pos)
    if match is None:
        raise CompileError(f"Expected an attribute name at offset {pos}", source, pos)
    end = match.end()
    while hyphens:
        more = _HYPHENATED_RE.match(source, end)
        if more is None:
            break
        end = more.end()
    return source[pos:end], False, end


def _starts_segment(source: str, pos: int) -> bool:
    return pos < len(source) and (source[pos] in NAME_QUOTES or _WORD_RE.match(source, pos) is not None)


def _scan_path(source: str, pos: int, hyphens: bool = False) -> Tuple[Tuple[Segment, ...], int]:
    """Scan ``seg[.seg]*`` where seg is a word or quoted name with optional [n] indexes.

    With ``hyphens`` an unspaced ``-`` followed by a letter continues the
    segment, so ``created-at`` is one name.
    """
    segments = []
    while True:
        name, quoted, pos = _scan_segment(source, pos, hyphens)
        suffix = ""
        index = _INDEX_RE.match(source, pos)
        if index:
            suffix = index.group(0)
            pos = index.end()
        segments.append(Segment(name, suffix, quoted))
        if pos < len(source) and source[pos] == "." and _starts_segment(source, pos + 1):
            pos += 1
            continue
        return tuple(segments), pos


def _scan_string(source: str, pos: int) -> Tuple[str, int]:
    chars = []
    i = pos + 1
    while i < len(source):
        ch = source[i]
        if ch == "\\" and i + 1 < len(source):
            chars.append(source[i + 1])
            i += 2
            continue
        if ch == "'":
            return "".join(chars), i + 1
        chars.append(ch)
        i += 1
    raise CompileError("Unterminated string literal", source, pos)


def _in_value_position(prev: Optional[Token]) -> bool:
    return prev is None or prev.kind in (TokenKind.OPERATOR, TokenKind.LPAREN, TokenKind.COMMA) or prev.keyword is not None


def tokenize(source: str) -> List[Token]:
    """Split a DSL string into tokens, checking parenthesis balance."""
    tokens: List[Token] = []
    open_parens: List[int] = []
    pos = 0
    spaced = False

    while pos < len(source):
        ch = source[pos]
        if ch.isspace():
            pos = _SPACE_RE.match(source, pos).end()
            spaced = True
            continue

        start = pos
        prev = tokens[-1] if tokens else None
        segments: Tuple[Segment, ...] = ()
        payload = None

        signed = ch == "-" and _in_value_position(prev) and _NUMBER_RE.match(source, pos + 1)
        number = signed or _NUMBER_RE.match(source, pos)
        binary = _BINARY_RE.match(source, pos) if ch == "<" else None

        if ch == "'":
            payload, pos = _scan_string(source, pos)
            kind = TokenKind.STRING
        elif number:
            pos = number.end()
            kind = TokenKind.NUMBER
        elif binary:
            payload = binary.group(1)
            pos = binary.end()
            kind = TokenKind.BINARY
        elif _OPERATOR_RE.match(source, pos):
            pos = _OPERATOR_RE.match(source, pos).end()
            kind = TokenKind.OPERATOR
        elif ch == "(":
            open_parens.append(pos)
            pos += 1
            kind = TokenKind.LPAREN
        elif ch == ")":
            if not open_parens:
                raise CompileError("Unbalanced ')'", source, pos)
            open_parens.pop()
            pos += 1
            kind = TokenKind.RPAREN
        elif ch == ",":
            pos += 1
            kind = TokenKind.COMMA
        elif _PLACEHOLDER_RE.match(source, pos):
            pos = _PLACEHOLDER_RE.match(source, pos).end()
            kind = TokenKind.PLACEHOLDER
        elif _starts_segment(source, pos):
            segments, pos = _scan_path(source, pos, hyphens=prev is None or prev.kind is not TokenKind.OPERATOR)
            kind = TokenKind.PATH
        else:
            pos += 1
            kind = TokenKind.OTHER

        tokens.append(Token(kind, source[start:pos], start, spaced, segments, payload))
        spaced = False

    if open_parens:
        raise CompileError("Unbalanced '(' before end of input", source, open_parens[-1])
    return tokens


# =============================================================================
# Auto-literal grammar
# =============================================================================

def _is_function_name(token: Token, nxt: Optional[Token]) -> bool:
    return (
        token.bare_word is not None
        and token.keyword is None
        and nxt is not None
        and nxt.kind is TokenKind.LPAREN
        and not nxt.spaced
    )


def _is_name_position(tokens: List[Token], i: int, clause: Optional[str], clause_depth: int, depth: int) -> bool:
    token = tokens[i]
    prev = tokens[i - 1] if i > 0 else None
    nxt = tokens[i + 1] if i + 1 < len(tokens) else None

    if _is_function_name(token, nxt):
        return False
    if any(segment.quoted for segment in token.segments):
        return True
    if prev is not None and prev.keyword in OPERAND_CLAUSES:
        return True
    if prev is not None and prev.kind is TokenKind.COMMA and clause in OPERAND_CLAUSES and depth == clause_depth:
        return True
    if nxt is not None and nxt.keyword in RANGE_KEYWORDS:
        return True
    if prev is not None and prev.kind is TokenKind.LPAREN and i >= 2 and _is_function_name(tokens[i - 2], prev):
        return True
    return nxt is not None and nxt.kind is TokenKind.OPERATOR


def _join(rendered: List[Tuple[Token, str]]) -> str:
    parts: List[str] = []
    prev: Optional[Token] = None
    for token, text in rendered:
        if (
            parts
            and token.spaced
            and prev.kind is not TokenKind.LPAREN
            and token.kind not in (TokenKind.RPAREN, TokenKind.COMMA)
        ):
            parts.append(" ")
        parts.append(text)
        prev = token
    return "".join(parts)


def _compile_auto(source: str, ctx: CompileContext) -> str:
    tokens = tokenize(source)
    rendered: List[Tuple[Token, str]] = []
    clause: Optional[str] = None
    clause_depth = 0
    depth = 0

    for i, token in enumerate(tokens):
        prev = tokens[i - 1] if i > 0 else None
        text = token.text

        if token.kind is TokenKind.STRING:
            text = ctx.value({WireTag.S.value: token.payload})
        elif token.kind is TokenKind.BINARY:
            text = ctx.value({WireTag.B.value: token.payload})
        elif token.kind is TokenKind.NUMBER:
            if prev is not None:
                text = ctx.value({WireTag.N.value: token.text})
        elif token.kind is TokenKind.LPAREN:
            depth += 1
        elif token.kind is TokenKind.RPAREN:
            depth -= 1
        elif token.kind is TokenKind.PATH:
            word = (token.bare_word or "").lower()
            if token.keyword:
                if token.keyword in CLAUSE_KEYWORDS:
                    clause, clause_depth = token.keyword, depth
            elif word in LITERAL_WORDS and prev is not None and _in_value_position(prev):
                text = ctx.value(dict(LITERAL_WORDS[word]))
            elif _is_name_position(tokens, i, clause, clause_depth, depth):
                text = ctx.path(token.segments)

        rendered.append((token, text))

    return _join(rendered)


# =============================================================================
# Explicit-constructor grammar
# =============================================================================

def _explicit_value(tag: str, payload: str, source: str, offset: int) -> Dict[str, Any]:
    if tag in (WireTag.S.value, WireTag.N.value, WireTag.B.value):
        return {tag: payload}
    if tag == WireTag.BOOL.value:
        flag = payload.strip().lower()
        if flag not in ("true", "false"):
            raise CompileError(f"BOOL literal must be true or false, got {payload!r}", source, offset)
        return {tag: flag == "true"}
    if tag == WireTag.NULL.value:
        return {tag: True}
    return {tag: [part.strip() for part in payload.split(",") if part.strip()]}


def _explicit_path(payload: str, source: str, offset: int) -> Tuple[Segment, ...]:
    text = payload.strip()
    if not text:
        raise CompileError("Empty $() attribute path", source, offset)
    segments, end = _scan_path(text, 0, hyphens=True)
    if end != len(text):
        raise CompileError(f"Invalid attribute path {payload!r}", source, offset)
    return segments


def _compile_explicit(source: str, ctx: CompileContext) -> str:
    parts: List[str] = []
    pos = 0

    while True:
        match = _TYPED_LITERAL_RE.search(source, pos)
        if match is None:
            break
        parts.append(source[pos:match.start()])

        depth = 1
        i = match.end()
        while i < len(source):
            if source[i] == "(":
                depth += 1
            elif source[i] == ")":
                depth -= 1
                if depth == 0:
                    break
            i += 1
        if depth != 0:
            raise CompileError("End of input before closing parenthesis", source, match.start())

        tag = match.group(1)
        payload = source[match.end():i]
        if tag == "$":
            parts.append(ctx.path(_explicit_path(payload, source, match.start())))
        else:
            parts.append(ctx.value(_explicit_value(tag, payload, source, match.start())))
        pos = i + 1

    parts.append(source[pos:])
    return "".join(parts).strip()


# =============================================================================
# Public API
# =============================================================================

def compile_expression(
    dsl: Optional[str],
    grammar: LiteralGrammar = LiteralGrammar.AUTO,
    start_index: int = 1
) -> CompiledExpression:
    """Compile a DSL string into a CompiledExpression.

    Args:
        dsl: Condition, key-condition, filter or update expression
        grammar: Literal grammar to parse with
        start_index: First placeholder index; lets a caller merge the result
            into maps produced by an earlier compile without collisions

    Returns:
        CompiledExpression with placeholders allocated in source order

    Raises:
        CompileError: For unbalanced parentheses, unterminated quotes and
            invalid explicit literals

    Examples:
        >>> compile_expression("beep > 10").expression
        '#V1 > :V2'
        >>> compile_expression("foo = N(1(0)0)", grammar="explicit").values
        {':V1': {'N': '1(0)0'}}
    """
    grammar = LiteralGrammar(grammar)
    source = dsl or ""
    ctx = CompileContext(start_index)

    if not source.strip():
        return ctx.result("")

    if grammar is LiteralGrammar.EXPLICIT:
        expression = _compile_explicit(source, ctx)
    else:
        expression = _compile_auto(source, ctx)

    compiled = ctx.result(expression)
    logger.debug(f"Compiled {dsl!r} -> {compiled.expression!r} "
                 f"({len(compiled.names)} names, {len(compiled.values)} values)")
    return compiled
