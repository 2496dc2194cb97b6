"""Compiler-backed syntax checks with a scripted ``Popen`` stand-in."""

from __future__ import annotations

import shutil
import subprocess
import sys
import time
from typing import List, Optional

import pytest

from LangRefKG.FeatureGraph.backends import (
    CompilerBackend,
    SyntaxCheckCancelled,
    SyntaxCheckTimeout,
    parse_compiler_output,
)
from LangRefKG.FeatureGraph.cancellation import CancellationToken
from LangRefKG.FeatureGraph.errors import BackendUnavailable


class FakeProcess:
    """Mimics the parts of ``Popen`` the backend uses."""

    def __init__(self, *, stderr: bytes = b"", returncode: int = 0, hang: bool = False, on_wait=None) -> None:
        self.stderr = stderr
        self.returncode: Optional[int] = None
        self._exit_code = returncode
        self.hang = hang
        self.on_wait = on_wait
        self.inputs: List[Optional[bytes]] = []
        self.killed = False
        self.pid = 4242

    def communicate(self, input=None, timeout=None):
        self.inputs.append(input)
        if self.killed:
            self.returncode = -9
            return b"", b""
        if self.on_wait is not None:
            self.on_wait()
        if self.hang:
            time.sleep(timeout or 0)
            raise subprocess.TimeoutExpired(cmd="cc", timeout=timeout)
        self.returncode = self._exit_code
        return b"", self.stderr

    def kill(self) -> None:
        self.killed = True


class FakePopen:
    def __init__(self, process: FakeProcess) -> None:
        self.process = process
        self.calls: List[List[str]] = []

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        assert kwargs["stdin"] is subprocess.PIPE
        return self.process


@pytest.mark.unit
@pytest.mark.parametrize(
    "dialect, expected",
    [
        ("c99", ["gcc", "-fsyntax-only", "-x", "c", "-std=c99", "-Wall", "-"]),
        ("c23", ["gcc", "-fsyntax-only", "-x", "c", "-std=c2x", "-Wall", "-"]),
        ("c", ["gcc", "-fsyntax-only", "-x", "c", "-Wall", "-"]),
        ("cpp23", ["g++", "-fsyntax-only", "-x", "c++", "-std=c++2b", "-Wall", "-"]),
        ("cpp", ["g++", "-fsyntax-only", "-x", "c++", "-Wall", "-"]),
    ],
)
def test_command_per_dialect(dialect: str, expected: List[str]) -> None:
    backend = CompilerBackend("gcc", "g++", extra_flags=["-Wall"])
    assert backend.command(dialect) == expected


@pytest.mark.unit
def test_unknown_dialect_has_no_backend() -> None:
    with pytest.raises(BackendUnavailable) as excinfo:
        CompilerBackend().command("rust")
    assert excinfo.value.dialect == "rust"


@pytest.mark.unit
def test_parse_compiler_output() -> None:
    stderr = "\n".join(
        [
            "<stdin>: In function 'main':",
            "<stdin>:3:9: error: expected ';' before '}' token",
            "<stdin>:1:1: warning: unused variable 'x'",
            "<stdin>:7: fatal error: missing.h: No such file or directory",
            "compilation terminated.",
        ]
    )
    messages = parse_compiler_output(stderr)
    assert [(m.severity, m.line, m.column) for m in messages] == [
        ("error", 3, 9),
        ("warning", 1, 1),
        ("fatal error", 7, None),
    ]


@pytest.mark.unit
def test_successful_check_sends_source_on_stdin() -> None:
    process = FakeProcess(stderr=b"<stdin>:1:5: warning: unused\n")
    popen = FakePopen(process)
    result = CompilerBackend(popen=popen).check_syntax("c11", "int x;\n", timeout=1.0)

    assert result.ok
    assert result.first_error is None
    assert process.inputs == [b"int x;\n"]
    assert popen.calls[0][0] == "cc"


@pytest.mark.unit
def test_failed_check_reports_first_error() -> None:
    process = FakeProcess(
        stderr=b"<stdin>:2:1: note: here\n<stdin>:2:3: error: expected expression\n",
        returncode=1,
    )
    result = CompilerBackend(popen=FakePopen(process)).check_syntax("cpp17", "int\n= ;\n", timeout=1.0)

    assert not result.ok
    assert result.detail == "expected expression"
    assert result.first_error.line == 2


@pytest.mark.unit
def test_failure_without_parsable_output_uses_raw_text() -> None:
    process = FakeProcess(stderr=b"cc1: out of memory\n", returncode=1)
    result = CompilerBackend(popen=FakePopen(process)).check_syntax("c99", "", timeout=1.0)
    assert result.detail == "cc1: out of memory"

    silent = FakeProcess(returncode=3)
    result = CompilerBackend(popen=FakePopen(silent)).check_syntax("c99", "", timeout=1.0)
    assert result.detail == "exit status 3"


@pytest.mark.unit
def test_timeout_kills_the_process() -> None:
    process = FakeProcess(hang=True)
    backend = CompilerBackend(popen=FakePopen(process), poll_interval=0.01)

    with pytest.raises(SyntaxCheckTimeout):
        backend.check_syntax("c99", "int x;", timeout=0.05)

    assert process.killed
    assert process.inputs[0] == b"int x;"
    assert all(item is None for item in process.inputs[1:])


@pytest.mark.unit
def test_cancellation_while_waiting_kills_the_process() -> None:
    token = CancellationToken()
    process = FakeProcess(hang=True, on_wait=token.cancel)
    backend = CompilerBackend(popen=FakePopen(process), poll_interval=0.01)

    with pytest.raises(SyntaxCheckCancelled):
        backend.check_syntax("cpp", "int x;", timeout=5.0, token=token)
    assert process.killed


@pytest.mark.unit
def test_cancelled_token_prevents_launch() -> None:
    token = CancellationToken()
    token.cancel()
    popen = FakePopen(FakeProcess())
    with pytest.raises(SyntaxCheckCancelled):
        CompilerBackend(popen=popen).check_syntax("c99", "", timeout=1.0, token=token)
    assert popen.calls == []


@pytest.mark.unit
@pytest.mark.parametrize(
    "exc, fragment",
    [(FileNotFoundError(2, "No such file"), "not found on PATH"), (PermissionError(13, "denied"), "failed to launch")],
)
def test_launch_failures_become_backend_unavailable(exc: OSError, fragment: str) -> None:
    def popen(argv, **kwargs):
        raise exc

    with pytest.raises(BackendUnavailable) as excinfo:
        CompilerBackend(c_compiler="no-such-cc", popen=popen).check_syntax("c99", "", timeout=1.0)
    assert fragment in excinfo.value.reason
    assert "no-such-cc" in excinfo.value.reason


@pytest.mark.posix_only
@pytest.mark.skipif(sys.platform == "win32" or shutil.which("cc") is None, reason="needs a POSIX C compiler")
def test_real_compiler_round_trip() -> None:
    backend = CompilerBackend()
    assert backend.check_syntax("c99", "int main(void) { return 0; }\n", timeout=30.0).ok
    failed = backend.check_syntax("c99", "int main(void) { return ; \n", timeout=30.0)
    assert not failed.ok
    assert failed.detail
