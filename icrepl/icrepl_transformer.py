"""
Transforms the raw koine parse tree into icrepl_ast commands and expressions.

Every node is a dict with a `tag`, `line` and `col`. Tokens carry their source
`text`; rule nodes carry a flat list of `children`.
"""
import re
from typing import Iterator, List

from icrepl.icrepl_ast import (
    Annotate, Apply, Assert, BinOp, Call, Command, Config, Empty, Exp, FieldExp,
    Func, Hsm, Identity, If, Import, IndexExp, Let, Literal, Load, OptExp, Pem,
    RecordExp, Show, Var, VariantExp, VecExp, While,
)
from icrepl.icrepl_errors import ParseError
from icrepl.icrepl_principal import Principal
from icrepl.icrepl_values import IDLType, PRIMITIVE_KINDS, Value

PUNCTUATION = frozenset({
    "SEMI", "COMMA", "COLON", "DOT", "ASSIGN",
    "LPAREN", "RPAREN", "LBRACE", "RBRACE", "LBRACKET", "RBRACKET",
})
ASSERT_OPS = {"EQEQ": BinOp.Equal, "APPROX": BinOp.SubEqual, "NOTEQ": BinOp.NotEqual}

_ESCAPE_RE = re.compile(r"\\(u\{[0-9a-fA-F]+\}|.)", re.DOTALL)
_SIMPLE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'", "0": "\0"}


def unescape(body: str) -> str:
    def repl(m):
        esc = m.group(1)
        if esc.startswith("u{"):
            return chr(int(esc[2:-1], 16))
        return _SIMPLE_ESCAPES.get(esc, esc)
    return _ESCAPE_RE.sub(repl, body)


def tokens_of(node: dict) -> Iterator[dict]:
    """Yields the tokens under a node in source order."""
    children = node.get("children")
    if children is None:
        yield node
        return
    for child in children:
        yield from tokens_of(child)


def _operands(children: List[dict]) -> List[dict]:
    return [c for c in children if c.get("tag") not in PUNCTUATION]


def _error(node: dict, message: str) -> ParseError:
    return ParseError(message, line=node.get("line"), col=node.get("col"))


class IcreplTransformer:
    def statements(self, node: dict) -> List[dict]:
        """The command nodes of a `script` or `block` node, without separators."""
        return [c for c in node.get("children", []) if c.get("tag") not in ("SEMI", "EOF")]

    def transform(self, node: dict):
        children = node.get("children", [])

        match node.get("tag"):
            # Structural containers
            case "script" | "block":
                return [self.transform(c) for c in self.statements(node)]

            # Commands
            case "show_cmd":
                return Show(self.transform(children[0]))
            case "let_cmd":
                return Let(children[1]["text"], self.transform(children[3]))
            case "load_cmd":
                return Load(self.transform(children[1]))
            case "config_cmd":
                return Config(self._string(children[1]))
            case "assert_cmd":
                op = ASSERT_OPS[children[2]["tag"]]
                return Assert(op, self.transform(children[1]), self.transform(children[3]))
            case "import_cmd":
                did = self._string(children[5]) if len(children) > 4 else None
                return Import(children[1]["text"], self._principal(children[3]), did)
            case "identity_cmd":
                return Identity(children[1]["text"], self._identity_config(children[2:]))
            case "func_cmd":
                names = [c["text"] for c in children if c.get("tag") == "NAME"]
                return Func(names[0], names[1:], self.transform(children[-1]))
            case "while_cmd":
                return While(self.transform(children[1]), self.transform(children[2]))
            case "if_cmd":
                return self._if(children)

            # Atomics
            case "STRING":
                return Literal(Value.text(self._string(node)))
            case "NUMBER":
                return Literal(Value.integer(self._integer(node)))
            case "FLOAT":
                return Literal(Value("float64", float(node["text"])))
            case "TRUE_KW" | "FALSE_KW":
                return Literal(Value.boolean(node["tag"] == "TRUE_KW"))
            case "NULL_KW":
                return Literal(Value.null())
            case "NAME":
                return Var(node["text"])
            case "principal_lit":
                return Literal(Value.principal(self._principal(children[1])))

            # Composites
            case "opt_exp":
                return OptExp(self.transform(children[1]))
            case "vec_exp":
                return VecExp([self.transform(c) for c in _operands(children[1:])])
            case "record_exp":
                fields = [c["children"] for c in children if c.get("tag") == "field_init"]
                return RecordExp([(self._label(f[0]), self.transform(f[2])) for f in fields])
            case "variant_exp":
                payload = _operands(children[3:])
                return VariantExp(self._label(children[2]), self.transform(payload[0]) if payload else None)
            case "apply":
                return Apply(children[0]["text"], self._args(children[1]))
            case "paren":
                parts = _operands(children)
                exp = self.transform(parts[0])
                return Annotate(exp, self.transform_type(parts[1])) if len(parts) > 1 else exp

            # Postfix chains
            case "postfix":
                return self._postfix(children)
            case "call_exp":
                exp = self.transform(children[1])
                if not isinstance(exp, Call):
                    raise _error(children[0], "call expects a method call such as canister.method(...)")
                return exp

            case tag:
                raise _error(node, f"unexpected {tag} in parse tree")

    # --- Commands ---

    def _if(self, children: List[dict]) -> If:
        cond = self.transform(children[1])
        then = self.transform(children[2])
        else_: List[Command] = []
        if len(children) > 3:
            alt = children[4]
            else_ = [self.transform(alt)] if alt.get("tag") == "if_cmd" else self.transform(alt)
        return If(cond, then, else_)

    def _identity_config(self, rest: List[dict]):
        match [c["tag"] for c in rest]:
            case []:
                return Empty()
            case ["STRING"]:
                return Pem(self._string(rest[0]))
            case ["NUMBER", "STRING"]:
                return Hsm(self._integer(rest[0]), self._string(rest[1]))
        raise _error(rest[0], "malformed identity configuration")

    # --- Expressions ---

    def _postfix(self, children: List[dict]) -> Exp:
        exp = self.transform(children[0])
        for suffix in children[1:]:
            parts = suffix["children"]
            match suffix["tag"]:
                case "method_call":
                    exp = Call(exp, self._label(parts[1]), self._args(parts[2]))
                case "field_access":
                    exp = FieldExp(exp, self._label(parts[1]))
                case "index_access":
                    exp = IndexExp(exp, self.transform(parts[1]))
        return exp

    def _args(self, node: dict) -> List[Exp]:
        return [self.transform(c) for c in _operands(node["children"])]

    def _label(self, token: dict) -> str:
        if token["tag"] == "STRING":
            return self._string(token)
        return token["text"]

    def _string(self, token: dict) -> str:
        return unescape(token["text"][1:-1])

    def _integer(self, token: dict) -> int:
        return int(token["text"].replace("_", ""))

    def _principal(self, token: dict) -> Principal:
        try:
            return Principal.from_text(self._string(token))
        except ValueError as e:
            raise _error(token, str(e)) from e

    # --- Types ---

    def transform_type(self, node: dict) -> IDLType:
        children = node.get("children", [])
        match node["tag"]:
            case "opt_type":
                return IDLType("opt", self.transform_type(children[1]))
            case "vec_type":
                return IDLType("vec", self.transform_type(children[1]))
            case "record_type":
                fields = [
                    (self._label(c["children"][0]), self.transform_type(c["children"][2]))
                    for c in children if c.get("tag") == "field_type"
                ]
                return IDLType("record", fields=tuple(sorted(fields, key=lambda f: f[0])))
            case "variant_type":
                tags = []
                for c in children:
                    if c.get("tag") != "tag_type":
                        continue
                    parts = c["children"]
                    payload = self.transform_type(parts[2]) if len(parts) > 1 else IDLType("null")
                    tags.append((self._label(parts[0]), payload))
                return IDLType("variant", fields=tuple(sorted(tags, key=lambda f: f[0])))
        name = node.get("text")
        if name == "blob":
            return IDLType("vec", IDLType("nat8"))
        if name in PRIMITIVE_KINDS:
            return IDLType(name)
        raise _error(node, f"unknown type {name!r}")
