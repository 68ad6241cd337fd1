import pytest
from icrepl.icrepl_ast import (
    Annotate, Apply, Assert, BinOp, Call, Config, Empty, FieldExp, Func, Hsm,
    Identity, If, Import, IndexExp, Let, Literal, Load, OptExp, Pem, RecordExp,
    Show, Var, VariantExp, VecExp, While,
)
from icrepl.icrepl_errors import ParseError
from icrepl.icrepl_parser import normalize_source, parse_script
from icrepl.icrepl_transformer import unescape
from icrepl.icrepl_principal import Principal
from icrepl.icrepl_values import IDLType, Value


def commands(src):
    return [cmd for cmd, _ in parse_script(src)]


def only(src):
    cmds = commands(src)
    assert len(cmds) == 1, cmds
    return cmds[0]


def test_let_and_show():
    assert commands('let x = 5; x') == [Let("x", Literal(Value.integer(5))), Show(Var("x"))]


def test_literals():
    assert only('"a\\nb"') == Show(Literal(Value.text("a\nb")))
    assert only("1_000") == Show(Literal(Value.integer(1000)))
    assert only("-2.5") == Show(Literal(Value("float64", -2.5)))
    assert only("true") == Show(Literal(Value.boolean(True)))
    assert only("null") == Show(Literal(Value.null()))
    assert only('principal "aaaaa-aa"') == Show(Literal(Value.principal(Principal.management_canister())))


def test_composite_expressions():
    assert only("opt 1") == Show(OptExp(Literal(Value.integer(1))))
    assert only("vec { 1; 2 }") == Show(VecExp([Literal(Value.integer(1)), Literal(Value.integer(2))]))
    assert only('record { a = 1; b = "x" }') == Show(RecordExp([
        ("a", Literal(Value.integer(1))), ("b", Literal(Value.text("x"))),
    ]))
    assert only("variant { ok = 1 }") == Show(VariantExp("ok", Literal(Value.integer(1))))
    assert only("variant { none }") == Show(VariantExp("none", None))


def test_annotation_types():
    cmd = only("(5 : vec opt nat8)")
    assert cmd == Show(Annotate(Literal(Value.integer(5)), IDLType("vec", IDLType("opt", IDLType("nat8")))))
    cmd = only("(x : record { b : text; a : nat })")
    assert cmd.exp.type == IDLType("record", fields=(("a", IDLType("nat")), ("b", IDLType("text"))))
    cmd = only("(x : variant { ok : nat; err })")
    assert cmd.exp.type.fields == (("err", IDLType("null")), ("ok", IDLType("nat")))
    assert only("(x : blob)").exp.type == IDLType("vec", IDLType("nat8"))


def test_unknown_type_is_a_parse_error():
    with pytest.raises(ParseError, match="unknown type"):
        parse_script("(1 : natural)")


def test_postfix_field_index_and_call():
    assert only("x.a[0]") == Show(IndexExp(FieldExp(Var("x"), "a"), Literal(Value.integer(0))))
    assert only("ledger.balance(1)") == Show(Call(Var("ledger"), "balance", [Literal(Value.integer(1))]))
    assert only("call ledger.balance()") == Show(Call(Var("ledger"), "balance", []))
    assert only("add(1, 2)") == Show(Apply("add", [Literal(Value.integer(1)), Literal(Value.integer(2))]))


def test_call_keyword_needs_a_method_call():
    with pytest.raises(ParseError, match="call expects"):
        parse_script("call x")


def test_is_call_classification():
    assert only("let r = a.m()").exp.is_call()
    assert not only("let r = f()").exp.is_call()


def test_assert_operators():
    for text, op in [("==", BinOp.Equal), ("~=", BinOp.SubEqual), ("!=", BinOp.NotEqual)]:
        cmd = only(f"assert x {text} 1")
        assert cmd == Assert(op, Var("x"), Literal(Value.integer(1)))


def test_assert_without_operator():
    with pytest.raises(ParseError, match="unexpected end of input") as exc:
        parse_script("assert x")
    assert (exc.value.line, exc.value.col) == (1, 9)


def test_assert_with_unknown_operator_points_at_it():
    with pytest.raises(ParseError, match="unexpected '='") as exc:
        parse_script("let a = 1\nassert a = 1")
    assert (exc.value.line, exc.value.col) == (2, 10)


def test_import_with_and_without_did():
    assert only('import ic = "aaaaa-aa"') == Import("ic", Principal.management_canister(), None)
    cmd = only('import l = "ryjl3-tyaaa-aaaaa-aaaba-cai" as "ledger.did"')
    assert cmd.did == "ledger.did"


def test_import_rejects_bad_principal():
    with pytest.raises(ParseError, match="checksum"):
        parse_script('import x = "ryjl3-tyaaa-aaaaa-aaabb-cai"')


def test_identity_variants():
    assert only("identity alice") == Identity("alice", Empty())
    assert only('identity bob "~/bob.pem"') == Identity("bob", Pem("~/bob.pem"))
    assert only('identity hsm 0 "abcd"') == Identity("hsm", Hsm(0, "abcd"))


def test_config_and_load():
    assert only('config "a = 1"') == Config("a = 1")
    assert only('load "lib.sh?"') == Load(Literal(Value.text("lib.sh?")))


def test_function_definition():
    cmd = only("function inc(x) { add(x, 1) }")
    assert cmd == Func("inc", ["x"], [Show(Apply("add", [Var("x"), Literal(Value.integer(1))]))])


def test_if_else_chain_and_while():
    cmd = only("if a { 1 } else if b { 2 } else { 3 }")
    assert isinstance(cmd, If)
    assert cmd.then == [Show(Literal(Value.integer(1)))]
    nested = cmd.else_[0]
    assert isinstance(nested, If) and nested.else_ == [Show(Literal(Value.integer(3)))]
    loop = only("while c { let c = false }")
    assert loop == While(Var("c"), [Let("c", Literal(Value.boolean(False)))])


def test_unterminated_block():
    with pytest.raises(ParseError, match="unexpected end of input") as exc:
        parse_script("while c { 1")
    assert (exc.value.line, exc.value.col) == (1, 12)


def test_spans_cover_each_command_text():
    script = parse_script('let x = 1;\n// comment\nassert x == 1\n"done"')
    texts = [script.text_of(span) for _, span in script]
    assert texts == ["let x = 1", "assert x == 1", '"done"']


def test_spans_after_tabs_index_normalized_source():
    script = parse_script("\tlet y = 2")
    _, span = script.commands[0]
    assert script.source == normalize_source("\tlet y = 2")
    assert script.text_of(span) == "let y = 2"


def test_parse_error_carries_location_and_filename():
    with pytest.raises(ParseError) as exc:
        parse_script("let x = 1\nlet = 2", filename="demo.sh")
    err = exc.value
    assert err.filename == "demo.sh"
    assert err.line == 2
    assert str(err).startswith("demo.sh:2:")


def test_lexer_error_names_the_character():
    with pytest.raises(ParseError, match="unexpected character '@'") as exc:
        parse_script("let x = @")
    assert (exc.value.line, exc.value.col) == (1, 9)


def test_tree_errors_carry_filename_and_position():
    with pytest.raises(ParseError, match="unknown type") as exc:
        parse_script("(1 : natural)", filename="t.sh")
    assert (exc.value.filename, exc.value.line, exc.value.col) == ("t.sh", 1, 6)


def test_comment_only_script_is_empty():
    assert parse_script("// nothing here\n").commands == []


def test_keywords_as_field_method_and_tag_names():
    assert only("r.record") == Show(FieldExp(Var("r"), "record"))
    assert only("c.call(1)") == Show(Call(Var("c"), "call", [Literal(Value.integer(1))]))
    assert only("variant { opt }") == Show(VariantExp("opt", None))


def test_vec_accepts_commas_and_trailing_separator():
    one, two = Literal(Value.integer(1)), Literal(Value.integer(2))
    assert only("vec { 1, 2, }") == Show(VecExp([one, two]))
    assert only("vec {}") == Show(VecExp([]))


def test_multiline_command_span_ends_at_closing_brace():
    script = parse_script("function f(a, b) {\n  add(a, b)\n}\nf(1, 2)")
    texts = [script.text_of(span) for _, span in script]
    assert texts == ["function f(a, b) {\n  add(a, b)\n}", "f(1, 2)"]


def test_unescape():
    assert unescape(r"\u{41}\t\\") == "A\t\\"
