import signal

import pytest

from runner.classify import Outcome, classify, error_context, killed_by_signal


def test_compile_error_marker():
    assert classify("[ERROR] COMPILATION ERROR :\nFoo.java:[3,1]") is Outcome.COMPILE_ERROR


def test_build_failure_means_externally_killed():
    assert classify("[INFO] BUILD FAILURE\n[INFO] Total time: 3 s") is Outcome.SUCCESS


def test_neither_marker_is_transient():
    assert classify("Started Application in 2.1 seconds", 0) is Outcome.TRANSIENT_FAILURE


def test_compile_error_beats_build_failure():
    out = "COMPILATION ERROR\n...\nBUILD FAILURE"
    assert classify(out) is Outcome.COMPILE_ERROR


def test_compile_error_beats_kill_signal():
    assert classify("COMPILATION ERROR", -signal.SIGKILL) is Outcome.COMPILE_ERROR


@pytest.mark.parametrize("code", [-9, -15, 137, 143, 130])
def test_kill_signal_exit_is_success(code):
    assert classify("server log without markers", code) is Outcome.SUCCESS


def test_exit_status_check_can_be_disabled():
    out = classify("server log", -9, use_exit_status=False)
    assert out is Outcome.TRANSIENT_FAILURE


@pytest.mark.parametrize("code", [None, 0, 1, -11, 139])
def test_other_exit_codes_are_not_kills(code):
    assert not killed_by_signal(code)


def test_custom_markers():
    out = classify("error TS2304: Cannot find name", compile_error_marker="error TS")
    assert out is Outcome.COMPILE_ERROR


def test_error_context_takes_six_lines_from_marker():
    lines = ["noise"] + ["COMPILATION ERROR"] + [f"detail {i}" for i in range(10)]
    ctx = error_context("\n".join(lines), "COMPILATION ERROR")
    assert ctx[0] == "COMPILATION ERROR"
    assert len(ctx) == 6
    assert ctx[-1] == "detail 4"


def test_error_context_without_marker():
    assert error_context("all good", "COMPILATION ERROR") == []
