"""Discovers metric option literals declared in Go source files."""

from __future__ import annotations

import posixpath
import re
import string
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Iterable, Iterator, Union

from fabriclib.metrics import CounterOpts, GaugeOpts, HistogramOpts

METRICS_IMPORT_PATHS = frozenset(
    {
        "github.com/hyperledger/fabric-lib-go/common/metrics",
        "github.com/hyperledger-labs/SmartBFT/pkg/metrics",
    }
)
IGNORE_DIRECTIVE = "//gendoc:ignore"

Option = Union[CounterOpts, GaugeOpts, HistogramOpts]

_OPTION_TYPES = {
    "CounterOpts": CounterOpts,
    "GaugeOpts": GaugeOpts,
    "HistogramOpts": HistogramOpts,
}

_STRING_FIELDS = {
    "Namespace": "namespace",
    "Subsystem": "subsystem",
    "Name": "name",
    "Help": "help",
    "StatsdFormat": "statsd_format",
}


class OptionsError(ValueError):
    """A metrics option literal could not be recreated from source."""


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str

    def is_op(self, text: str) -> bool:
        return self.kind in ("op", "semi") and self.text == text


_TOKEN_RE = re.compile(
    r"""
     (?P<ws>[ \t\r]+)
    |(?P<nl>\n)
    |(?P<line_comment>//[^\n]*)
    |(?P<block_comment>/\*.*?\*/)
    |(?P<raw>`[^`]*`)
    |(?P<string>"(?:[^"\\\n]|\\.)*")
    |(?P<char>'(?:[^'\\\n]|\\.)*')
    |(?P<number>\.?[0-9](?:[eEpP][+-]|[0-9A-Za-z_.])*)
    |(?P<ident>[^\W\d]\w*)
    |(?P<op>\.\.\.|<<=|>>=|&\^=|&&|\|\||<-|\+\+|--|==|!=|<=|>=|:=
        |[-+*/%&|^<>]=|<<|>>|&\^|~|[-+*/%&|^<>=!()\[\]{},;.:])
    """,
    re.VERBOSE | re.DOTALL,
)

_KEYWORDS = frozenset(
    {
        "break", "case", "chan", "const", "continue", "default", "defer",
        "else", "fallthrough", "for", "func", "go", "goto", "if", "import",
        "interface", "map", "package", "range", "return", "select", "struct",
        "switch", "type", "var",
    }
)
_SEMI_KEYWORDS = frozenset({"break", "continue", "fallthrough", "return"})
_SEMI_OPS = frozenset({")", "]", "}", "++", "--"})
_LITERALS = frozenset({"string", "raw", "char", "number"})
_OPENERS = frozenset({"(", "[", "{"})
_CLOSERS = frozenset({")", "]", "}"})
_SEMI = _Token("semi", ";")


def _tokenize(source: str) -> tuple[list[_Token], list[str]]:
    """Split Go source into tokens, inserting semicolons as the language does."""
    tokens: list[_Token] = []
    comments: list[str] = []

    def needs_semi() -> bool:
        if not tokens:
            return False
        last = tokens[-1]
        if last.kind == "ident":
            return last.text not in _KEYWORDS or last.text in _SEMI_KEYWORDS
        if last.kind in _LITERALS:
            return True
        return last.kind == "op" and last.text in _SEMI_OPS

    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if match is None:
            raise OptionsError(f"invalid character {source[pos]!r} at offset {pos}")
        kind, text, pos = match.lastgroup, match.group(), match.end()
        if kind == "ws":
            continue
        if kind in ("line_comment", "block_comment"):
            comments.append(text)
            if "\n" in text and needs_semi():
                tokens.append(_SEMI)
            continue
        if kind == "nl":
            if needs_semi():
                tokens.append(_SEMI)
            continue
        if kind == "op" and text == ";":
            kind = "semi"
        tokens.append(_Token(kind, text))
    if needs_semi():
        tokens.append(_SEMI)
    return tokens, comments


_SIMPLE_ESCAPES = {
    "a": "\a", "b": "\b", "f": "\f", "n": "\n", "r": "\r",
    "t": "\t", "v": "\v", "\\": "\\", "'": "'", '"': '"',
}
_HEX_LENGTHS = {"x": 2, "u": 4, "U": 8}


def _unquote(token: _Token) -> str:
    """Decode a Go string or character literal."""
    if token.kind == "raw":
        return token.text[1:-1].replace("\r", "")
    if token.kind not in ("string", "char"):
        raise OptionsError("invalid syntax")
    quote, body = token.text[0], token.text[1:-1]
    out: list[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        esc = body[i + 1 : i + 2]
        if esc in _SIMPLE_ESCAPES:
            if esc in "'\"" and esc != quote:
                raise OptionsError("invalid syntax")
            out.append(_SIMPLE_ESCAPES[esc])
            i += 2
        elif esc in _HEX_LENGTHS:
            size = _HEX_LENGTHS[esc]
            digits = body[i + 2 : i + 2 + size]
            if len(digits) != size or any(d not in string.hexdigits for d in digits):
                raise OptionsError("invalid syntax")
            value = int(digits, 16)
            if value > 0x10FFFF or 0xD800 <= value <= 0xDFFF:
                raise OptionsError("invalid syntax")
            out.append(chr(value))
            i += 2 + size
        elif esc and esc in "01234567":
            digits = body[i + 1 : i + 4]
            if len(digits) != 3 or any(d not in string.octdigits for d in digits):
                raise OptionsError("invalid syntax")
            value = int(digits, 8)
            if value > 255:
                raise OptionsError("invalid syntax")
            out.append(chr(value))
            i += 4
        else:
            raise OptionsError("invalid syntax")
    result = "".join(out)
    if quote == "'" and len(result) != 1:
        raise OptionsError("invalid syntax")
    return result


class _Parser:
    """Walks the token stream of one Go file."""

    def __init__(self, tokens: list[_Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> _Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _at(self, text: str) -> bool:
        tok = self._peek()
        return tok is not None and tok.is_op(text)

    def _at_closer(self) -> bool:
        tok = self._peek()
        return tok is not None and tok.kind == "op" and tok.text in _CLOSERS

    def imports(self) -> dict[str, str]:
        """Map each import name in the file to its import path."""
        result: dict[str, str] = {}
        self.pos = 0
        while (tok := self._peek()) is not None:
            self.pos += 1
            if tok.kind != "ident" or tok.text != "import":
                continue
            if self._at("("):
                self.pos += 1
                while self._peek() is not None and not self._at(")"):
                    if self._at(";"):
                        self.pos += 1
                        continue
                    self._import_spec(result)
                self.pos += 1
            else:
                self._import_spec(result)
        return result

    def _import_spec(self, result: dict[str, str]) -> None:
        name = None
        tok = self._peek()
        if tok is not None and (tok.kind == "ident" or tok.is_op(".")):
            name = tok.text
            self.pos += 1
            tok = self._peek()
        if tok is None or tok.kind not in ("string", "raw"):
            raise OptionsError("malformed import declaration")
        self.pos += 1
        path = _unquote(tok)
        result[name if name is not None else posixpath.basename(path)] = path

    def value_specs(self) -> Iterator[list[list[_Token]]]:
        """Yield the value expressions of every var and const spec."""
        self.pos = 0
        while (tok := self._peek()) is not None:
            self.pos += 1
            if tok.kind == "ident" and tok.text in ("var", "const"):
                yield from self._decl()

    def _decl(self) -> Iterator[list[list[_Token]]]:
        if not self._at("("):
            yield self._spec()
            return
        self.pos += 1
        while self._peek() is not None:
            if self._at(";"):
                self.pos += 1
                continue
            if self._at_closer():
                break
            yield self._spec()
        if self._at(")"):
            self.pos += 1

    def _scan(self, stops: frozenset[str]) -> None:
        depth = 0
        while (tok := self._peek()) is not None:
            if tok.kind in ("op", "semi"):
                if depth == 0 and (tok.text in stops or tok.text in _CLOSERS):
                    return
                if tok.text in _OPENERS:
                    depth += 1
                elif tok.text in _CLOSERS:
                    depth -= 1
            self.pos += 1

    def _spec(self) -> list[list[_Token]]:
        self._scan(frozenset({"=", ";"}))
        values: list[list[_Token]] = []
        if self._at("="):
            self.pos += 1
            while True:
                start = self.pos
                self._scan(frozenset({",", ";"}))
                values.append(self.tokens[start : self.pos])
                if not self._at(","):
                    break
                self.pos += 1
        if self._at(";"):
            self.pos += 1
        return values


def _matching(span: list[_Token], start: int) -> int | None:
    depth = 0
    for index, tok in enumerate(span[start:], start):
        if tok.kind != "op":
            continue
        if tok.text in _OPENERS:
            depth += 1
        elif tok.text in _CLOSERS:
            depth -= 1
            if depth == 0:
                return index
    return None


def _top_level_index(span: list[_Token], text: str) -> int | None:
    depth = 0
    for index, tok in enumerate(span):
        if tok.kind != "op":
            continue
        if depth == 0 and tok.text == text:
            return index
        if tok.text in _OPENERS:
            depth += 1
        elif tok.text in _CLOSERS:
            depth -= 1
    return None


def _split_elements(body: list[_Token]) -> list[list[_Token]]:
    elements: list[list[_Token]] = []
    rest = body
    while rest:
        comma = _top_level_index(rest, ",")
        piece, rest = (rest, []) if comma is None else (rest[:comma], rest[comma + 1 :])
        if piece:
            elements.append(piece)
    return elements


def _composite(span: list[_Token]) -> tuple[list[_Token], list[list[_Token]]] | None:
    """Split a composite literal into its type tokens and element spans."""
    depth = 0
    for index, tok in enumerate(span):
        if tok.kind != "op":
            continue
        if tok.text == "{" and depth == 0:
            end = _matching(span, index)
            if end != len(span) - 1:
                return None
            return span[:index], _split_elements(span[index + 1 : end])
        if tok.text in ("(", "["):
            depth += 1
        elif tok.text in (")", "]"):
            depth -= 1
    return None


def _basic_literal(span: list[_Token]) -> str:
    if len(span) != 1 or span[0].kind not in _LITERALS:
        raise OptionsError("expected a basic literal")
    return _unquote(span[0])


def _string_list(span: list[_Token]) -> list[str]:
    parts = _composite(span)
    if parts is None:
        raise OptionsError("LabelNames must be a composite literal")
    return [_basic_literal(element) for element in parts[1]]


def _string_map(span: list[_Token]) -> dict[str, str]:
    parts = _composite(span)
    if parts is None:
        raise OptionsError("LabelHelp must be a composite literal")
    result: dict[str, str] = {}
    for element in parts[1]:
        colon = _top_level_index(element, ":")
        if colon is None:
            raise OptionsError("LabelHelp elements must be key-value pairs")
        result[_basic_literal(element[:colon])] = _basic_literal(element[colon + 1 :])
    return result


def _populate(option: Option, element: list[_Token]) -> None:
    colon = _top_level_index(element, ":")
    if colon is None:
        return
    key, value = element[:colon], element[colon + 1 :]
    if len(key) != 1 or key[0].kind != "ident":
        raise OptionsError("expected a field name")
    name = key[0].text
    if name == "Buckets":
        return
    if name == "LabelHelp":
        option.label_help = _string_map(value)
    elif name == "LabelNames":
        option.label_names = _string_list(value)
    elif name in _STRING_FIELDS:
        setattr(option, _STRING_FIELDS[name], _basic_literal(value))
    else:
        raise OptionsError(f"unknown field name: {name}")


def _option_from(span: list[_Token], imports: dict[str, str]) -> Option | None:
    parts = _composite(span)
    if parts is None:
        return None
    type_tokens, elements = parts
    if (
        len(type_tokens) != 3
        or type_tokens[0].kind != "ident"
        or not type_tokens[1].is_op(".")
        or type_tokens[2].kind != "ident"
    ):
        return None
    if imports.get(type_tokens[0].text) not in METRICS_IMPORT_PATHS:
        return None
    type_name = type_tokens[2].text
    factory = _OPTION_TYPES.get(type_name)
    if factory is None:
        raise OptionsError(f"unknown object type: {type_name}")
    option = factory()
    for element in elements:
        _populate(option, element)
    return option


def file_options(source: str) -> list[Option]:
    """Recreate the metrics options declared in one Go source file.

    A file holding a ``//gendoc:ignore`` comment yields nothing.
    """
    tokens, comments = _tokenize(source)
    parser = _Parser(tokens)
    imports = parser.imports()
    if any(comment.startswith(IGNORE_DIRECTIVE) for comment in comments):
        return []
    found: list[Option] = []
    for values in parser.value_specs():
        for span in values:
            option = _option_from(span, imports)
            if option is not None:
                found.append(option)
    return found


def options(sources: Iterable[Union[str, PathLike]]) -> list[Option]:
    """Recreate the metrics options from many files, given as text or paths."""
    found: list[Option] = []
    for source in sources:
        text = Path(source).read_text(encoding="utf-8") if isinstance(source, PathLike) else source
        found.extend(file_options(text))
    return found