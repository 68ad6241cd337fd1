import pytest

from icrepl import ScriptRunner
from icrepl.icrepl_identity import AnonymousIdentity
from icrepl.icrepl_principal import Principal
from icrepl.icrepl_values import Value
from icrepl.__main__ import main


def run_script(src: str, **kwargs):
    runner = ScriptRunner(**kwargs)
    return runner.handle_script(src)


def assert_ok(res, expected=None):
    assert res.status == 'success', res.error_message
    if expected is not None:
        assert res.value == expected


def assert_error(res, contains: str | None = None):
    assert res.status == 'error', f"expected error, got success: {res.value!r}"
    if contains is not None:
        assert contains in (res.error_message or ""), f"error did not contain {contains!r}: {res.error_message!r}"


def test_session_starts_with_anonymous_identity():
    runner = ScriptRunner()
    session = runner.session
    assert session.current_identity == "anonymous"
    assert isinstance(session.identity_map["anonymous"], AnonymousIdentity)
    assert session.agent.identity is session.identity_map["anonymous"]


def test_result_value_is_last_shown(capsys):
    res = run_script('let x = "abc"\nx')
    assert_ok(res, Value.text("abc"))
    assert capsys.readouterr().out == "abc\n"


def test_state_persists_across_calls():
    runner = ScriptRunner()
    assert_ok(runner.handle_script("let x = 1"))
    assert_ok(runner.handle_script("add(x, 1)"), Value.integer(2))


def test_parse_error_is_located():
    res = run_script("let x = 1\nlet = 2")
    assert_error(res, "ParseError")
    assert res.error_token == {"line": 2, "col": 5}
    assert res.format_error().startswith("Error on line 2, col 5: ParseError:")


def test_runtime_errors_name_their_kind():
    assert_error(run_script("assert 1 == 2"), "AssertionFailure: assertion failed")
    assert_error(run_script("if 1 { 2 }"), "ScriptTypeError")
    assert_error(run_script("nope"), "EvalError: Undefined variable nope")
    assert_error(run_script('load "missing.sh"'), "ScriptIOError")


def test_success_has_no_formatted_error():
    assert run_script("1").format_error() == ""


def test_inline_source_resolves_against_source_dir(tmp_path):
    (tmp_path / "lib.sh").write_text('let lib = "loaded"', encoding="utf-8")
    runner = ScriptRunner()
    runner.source_dir = tmp_path
    assert_ok(runner.handle_script('load "lib.sh"\nlib'), Value.text("loaded"))
    assert runner.session.base_path != tmp_path


def test_run_file_acts_like_load(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "helper.sh").write_text("let helper = true", encoding="utf-8")
    script = tmp_path / "main.sh"
    script.write_text('#!/usr/bin/env icrepl\nload "sub/helper.sh"\nassert helper == true', encoding="utf-8")
    runner = ScriptRunner()
    assert_ok(runner.run_file(script))
    assert runner.session.env["helper"] == Value.boolean(True)


def test_run_file_fail_safe_suffix(tmp_path):
    runner = ScriptRunner()
    assert_ok(runner.run_file(f"{tmp_path}/absent.sh?"))
    assert_error(runner.run_file(tmp_path / "absent.sh"), "Cannot read")


def test_verbose_runner_echoes(capsys):
    res = run_script('"x"', verbose=True)
    assert_ok(res)
    out = capsys.readouterr().out.splitlines()
    assert out[0] == '> "x"'
    assert out[1] == '"x"'


def test_identity_switch_through_runner(capsys):
    runner = ScriptRunner()
    assert_ok(runner.handle_script("identity alice"))
    principal = runner.session.env["alice"].value
    assert isinstance(principal, Principal)
    assert capsys.readouterr().out == f"Current identity {principal}\n"


def test_cli_runs_a_file(tmp_path, capsys):
    script = tmp_path / "hello.sh"
    script.write_text('"hello from file"', encoding="utf-8")
    assert main([str(script)]) == 0
    assert capsys.readouterr().out == "hello from file\n"


def test_cli_reports_failures(tmp_path, capsys):
    script = tmp_path / "bad.sh"
    script.write_text("assert 1 == 2", encoding="utf-8")
    assert main([str(script)]) == 1
    assert "assertion failed" in capsys.readouterr().err


def test_cli_config_flag(tmp_path, capsys):
    script = tmp_path / "noop.sh"
    script.write_text("let x = 1", encoding="utf-8")
    assert main(["--config", "a = ", str(script)]) == 1
    assert "ConfigError" in capsys.readouterr().err
