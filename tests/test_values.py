import pytest
from icrepl.icrepl_errors import AnnotationError
from icrepl.icrepl_principal import Principal
from icrepl.icrepl_values import IDLType, Value, reinterpret, value_type


def t(kind, inner=None, fields=()):
    return IDLType(kind, inner, tuple(fields))


def test_values_compare_kind_and_payload():
    assert Value.integer(5) == Value.integer(5)
    assert Value.integer(5) != Value.nat(5)
    assert Value.text("a") != Value.text("b")


def test_scalar_constructors_coerce_their_payload():
    assert Value.integer("7") == Value("int", 7)
    assert Value.boolean(0) == Value("bool", False)
    assert Value.boolean("yes").value is True


def test_record_fields_are_order_independent():
    a = Value.record({"x": Value.integer(1), "y": Value.text("z")})
    b = Value.record({"y": Value.text("z"), "x": Value.integer(1)})
    assert a == b
    assert a.field("x") == Value.integer(1)
    assert a.field("missing") is None


def test_value_type_derivation():
    assert value_type(Value.nat(1)) == t("nat")
    assert value_type(Value.opt(None)) == t("opt", t("null"))
    assert value_type(Value.vec([])) == t("vec", t("reserved"))
    assert value_type(Value.vec([Value.text("a")])) == t("vec", t("text"))
    rec = Value.record({"a": Value.boolean(True)})
    assert value_type(rec) == t("record", fields=[("a", t("bool"))])


def test_reinterpret_integral_within_range():
    assert reinterpret(Value.integer(5), t("nat")) == Value.nat(5)
    assert reinterpret(Value.integer(255), t("nat8")) == Value("nat8", 255)
    assert reinterpret(Value.integer(-128), t("int8")) == Value("int8", -128)


@pytest.mark.parametrize("n,kind", [(-1, "nat"), (256, "nat8"), (128, "int8"), (-(1 << 63) - 1, "int64")])
def test_reinterpret_integral_out_of_range(n, kind):
    with pytest.raises(AnnotationError):
        reinterpret(Value.integer(n), t(kind))


def test_reinterpret_float_from_integral_but_not_back():
    assert reinterpret(Value.integer(2), t("float64")) == Value("float64", 2.0)
    with pytest.raises(AnnotationError):
        reinterpret(Value("float64", 2.0), t("int"))


def test_reinterpret_wraps_into_opt():
    assert reinterpret(Value.integer(1), t("opt", t("nat"))) == Value.opt(Value.nat(1))
    assert reinterpret(Value.null(), t("opt", t("nat"))) == Value.opt(None)


def test_reinterpret_vec_elementwise():
    v = Value.vec([Value.integer(1), Value.integer(2)])
    assert reinterpret(v, t("vec", t("nat8"))) == Value.vec([Value("nat8", 1), Value("nat8", 2)])
    with pytest.raises(AnnotationError):
        reinterpret(Value.vec([Value.integer(-1)]), t("vec", t("nat")))


def test_reinterpret_record_projects_and_fills_optional_fields():
    rec = Value.record({"a": Value.integer(1), "extra": Value.text("x")})
    target = t("record", fields=[("a", t("nat")), ("b", t("opt", t("text")))])
    assert reinterpret(rec, target) == Value.record({"a": Value.nat(1), "b": Value.opt(None)})


def test_reinterpret_record_missing_required_field():
    target = t("record", fields=[("a", t("nat"))])
    with pytest.raises(AnnotationError, match="missing field a"):
        reinterpret(Value.record({}), target)


def test_reinterpret_variant_checks_tag():
    target = t("variant", fields=[("ok", t("nat")), ("err", t("text"))])
    assert reinterpret(Value.variant("ok", Value.integer(3)), target) == Value.variant("ok", Value.nat(3))
    with pytest.raises(AnnotationError, match="unknown tag"):
        reinterpret(Value.variant("other"), target)


def test_reinterpret_primitive_mismatch():
    with pytest.raises(AnnotationError):
        reinterpret(Value.text("5"), t("nat"))
    p = Value.principal(Principal.anonymous())
    assert reinterpret(p, t("principal")) is p
    assert reinterpret(Value.text("x"), t("reserved")) == Value.reserved()
