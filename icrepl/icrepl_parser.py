"""
Turns script text into a `Script`: an ordered command list carrying the source
range of each top-level command.

The grammar in grammar/icrepl_grammar.yaml is compiled once by koine; the
parse tree it produces is turned into commands by IcreplTransformer.
"""
import re
from bisect import bisect_right
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from koine import Parser

from icrepl.icrepl_ast import Script
from icrepl.icrepl_errors import ParseError
from icrepl.icrepl_transformer import IcreplTransformer, tokens_of

GRAMMAR_PATH = Path(__file__).parent / "grammar" / "icrepl_grammar.yaml"
TAB_WIDTH = 8
END_MARKER = "\n\x00"

_LOCATION_RE = re.compile(r"at L(\d+):C(\d+)")
_UNEXPECTED_TOKEN_RE = re.compile(r"Unexpected token '\w+' \('(.*)'\) while parsing")
_UNEXPECTED_CHAR_RE = re.compile(r"Unexpected character in input text at L\d+:C\d+: (.*)$", re.DOTALL)


def normalize_source(text: str) -> str:
    """Applies the same newline and tab normalization the lexer performs, so
    token positions index directly into the returned text."""
    return text.replace("\r\n", "\n").replace("\r", "\n").expandtabs(TAB_WIDTH)


def parse_script(text: str, filename: Optional[str] = None) -> Script:
    """Parses a whole script. Raises ParseError with the file name as context."""
    return ScriptParser(filename).parse(text)


def _describe(message: str) -> str:
    m = _UNEXPECTED_TOKEN_RE.search(message)
    if m:
        return f"unexpected {m.group(1)!r}"
    m = _UNEXPECTED_CHAR_RE.search(message)
    if m:
        return f"unexpected character {m.group(1)}"
    return message


class ScriptParser:
    _parser: Optional[Parser] = None
    _transformer: Optional[IcreplTransformer] = None

    def __init__(self, filename: Optional[str] = None):
        if ScriptParser._parser is None:
            ScriptParser._parser = Parser.from_file(str(GRAMMAR_PATH))
        if ScriptParser._transformer is None:
            ScriptParser._transformer = IcreplTransformer()
        self.parser = ScriptParser._parser
        self.transformer = ScriptParser._transformer
        self.filename = filename
        self.line_starts: List[int] = [0]

    def parse(self, text: str) -> Script:
        source = normalize_source(text)
        self.line_starts = [0] + [i + 1 for i, ch in enumerate(source) if ch == "\n"]
        parse_out = self.parser.parse(source + END_MARKER)
        if parse_out.get("status") != "success":
            raise self._parse_error(parse_out, source)
        commands = []
        try:
            for node in self.transformer.statements(parse_out["ast"]):
                commands.append((self.transformer.transform(node), self._span(node)))
        except ParseError as e:
            e.filename = self.filename
            raise
        return Script(source, commands)

    def _offset(self, line: int, col: int) -> int:
        return self.line_starts[line - 1] + col - 1

    def _span(self, node: dict) -> Tuple[int, int]:
        tokens = list(tokens_of(node))
        first, last = tokens[0], tokens[-1]
        return (self._offset(first["line"], first["col"]),
                self._offset(last["line"], last["col"]) + len(last["text"]))

    def _location(self, offset: int) -> Tuple[int, int]:
        line = bisect_right(self.line_starts, offset)
        return line, offset - self.line_starts[line - 1] + 1

    def _parse_error(self, parse_out: Dict, source: str) -> ParseError:
        message = parse_out.get("message") or "parse failed"
        loc = _LOCATION_RE.search(message)
        if loc is None:
            return ParseError(_describe(message), filename=self.filename)
        line, col = int(loc.group(1)), int(loc.group(2))
        if line > len(self.line_starts):
            # Failed on the end marker
            line, col = self._location(len(source.rstrip()))
            return ParseError("unexpected end of input", filename=self.filename, line=line, col=col)
        return ParseError(_describe(message), filename=self.filename, line=line, col=col)
