"""
A pretty-printer for typed values, producing Candid-style text.
"""
from icrepl.icrepl_values import Value, IDLType, FLOAT_KINDS, INTEGRAL_KINDS


class Printer:
    """Formats values the way scripts write them."""

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        if isinstance(obj, Value):
            if obj.type in INTEGRAL_KINDS or obj.type in FLOAT_KINDS:
                return self._pformat_number
            return self._handlers.get(obj.type, self._pformat_unknown)
        if isinstance(obj, IDLType):
            return lambda o, l: str(o)
        # Default to Python's repr for unknown types
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            "null": self._pformat_null,
            "reserved": self._pformat_reserved,
            "bool": self._pformat_bool,
            "text": self._pformat_text,
            "principal": self._pformat_principal,
            "opt": self._pformat_opt,
            "vec": self._pformat_vec,
            "record": self._pformat_record,
            "variant": self._pformat_variant,
        }

    def _pformat_unknown(self, obj, level):
        return repr(obj)

    def _pformat_number(self, obj, level):
        n = obj.value
        if obj.type in FLOAT_KINDS:
            text = repr(float(n))
        else:
            text = str(n)
        return f"{text} : {obj.type}"

    def _pformat_null(self, obj, level):
        return "null"

    def _pformat_reserved(self, obj, level):
        return "reserved"

    def _pformat_bool(self, obj, level):
        return "true" if obj.value else "false"

    def _pformat_text(self, obj, level):
        return quote_text(obj.value)

    def _pformat_principal(self, obj, level):
        return f'principal "{obj.value}"'

    def _pformat_opt(self, obj, level):
        if obj.value is None:
            return "null"
        return f"opt {self.pformat(obj.value, level)}"

    def _pformat_vec(self, obj, level):
        items = [self.pformat(item, level + 1) for item in obj.value]
        return self._block("vec", items, level)

    def _pformat_record(self, obj, level):
        items = [f"{_field_name(k)} = {self.pformat(v, level + 1)}" for k, v in obj.value]
        return self._block("record", items, level)

    def _pformat_variant(self, obj, level):
        tag, payload = obj.value
        if payload.type == "null":
            return f"variant {{ {_field_name(tag)} }}"
        return f"variant {{ {_field_name(tag)} = {self.pformat(payload, level + 1)} }}"

    def _block(self, keyword, items, level):
        if not items:
            return f"{keyword} {{}}"
        one_line = f"{keyword} {{ " + " ".join(f"{item};" for item in items) + " }"
        if len(one_line) <= 80 and "\n" not in one_line:
            return one_line
        indent = self._indent_char * (level + 1)
        body = "\n".join(f"{indent}{item};" for item in items)
        return f"{keyword} {{\n{body}\n{self._indent_char * level}}}"


def _field_name(name: str) -> str:
    if name.isidentifier() or name.isdigit():
        return name
    return quote_text(name)


def quote_text(s: str) -> str:
    out = []
    for ch in s:
        if ch == '"':
            out.append('\\"')
        elif ch == "\\":
            out.append("\\\\")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\t":
            out.append("\\t")
        elif ch == "\r":
            out.append("\\r")
        elif ord(ch) < 0x20:
            out.append(f"\\u{{{ord(ch):x}}}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'
