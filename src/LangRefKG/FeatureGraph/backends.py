# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.backends",
#   "purpose": "Swappable syntax-check backends invoked by the example validator.",
#   "sections": [
#     {"id": "syntaxmessage", "name": "SyntaxMessage", "anchor": "class-syntaxmessage", "kind": "class"},
#     {"id": "syntaxcheckresult", "name": "SyntaxCheckResult", "anchor": "class-syntaxcheckresult", "kind": "class"},
#     {"id": "syntaxbackend", "name": "SyntaxBackend", "anchor": "class-syntaxbackend", "kind": "class"},
#     {"id": "compilerbackend", "name": "CompilerBackend", "anchor": "class-compilerbackend", "kind": "class"},
#     {"id": "parse-compiler-output", "name": "parse_compiler_output", "anchor": "function-parse-compiler-output", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Syntax-check backends for embedded code examples.

A backend is anything implementing :class:`SyntaxBackend`. The default,
:class:`CompilerBackend`, pipes an example into ``cc -fsyntax-only`` (or
``c++``) on stdin and parses the diagnostics the compiler prints. It never
compiles or runs anything.

Backends signal three outcomes besides a result: :class:`SyntaxCheckTimeout`
when the deadline passes, :class:`SyntaxCheckCancelled` when the shared
:class:`~LangRefKG.FeatureGraph.cancellation.CancellationToken` fires, and
:class:`~LangRefKG.FeatureGraph.errors.BackendUnavailable` when the toolchain
cannot be launched at all. In the first two cases the child process is killed
before the exception propagates.
"""

from __future__ import annotations

import re
import subprocess
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from .cancellation import CancellationToken
from .errors import BackendUnavailable, FeatureGraphError
from .logging import get_logger, log_event
from .versions import Family, dialect_family, dialect_version

__all__ = [
    "SyntaxMessage",
    "SyntaxCheckResult",
    "SyntaxCheckTimeout",
    "SyntaxCheckCancelled",
    "SyntaxBackend",
    "CompilerBackend",
    "parse_compiler_output",
]

_LOGGER = get_logger(__name__, stage="examples")

_COMPILER_LINE = re.compile(
    r"^<stdin>:(?P<line>\d+):(?:(?P<column>\d+):)?\s*"
    r"(?P<severity>fatal error|error|warning|note):\s*(?P<text>.*)$"
)

# -std= spellings accepted by both GCC and Clang releases still in use.
_STD_FLAGS: Dict[str, str] = {
    "C89": "c89",
    "C99": "c99",
    "C11": "c11",
    "C17": "c17",
    "C23": "c2x",
    "C++98": "c++98",
    "C++11": "c++11",
    "C++14": "c++14",
    "C++17": "c++17",
    "C++20": "c++20",
    "C++23": "c++2b",
    "C++26": "c++2c",
}


class SyntaxCheckTimeout(FeatureGraphError):
    """Raised when a syntax check exceeds its deadline."""


class SyntaxCheckCancelled(FeatureGraphError):
    """Raised when a syntax check is abandoned because cancellation was requested."""


@dataclass(frozen=True)
class SyntaxMessage:
    """One compiler diagnostic, with ``line`` relative to the example source."""

    severity: str
    text: str
    line: Optional[int] = None
    column: Optional[int] = None


@dataclass(frozen=True)
class SyntaxCheckResult:
    ok: bool
    messages: Tuple[SyntaxMessage, ...] = ()
    detail: str = ""

    @property
    def first_error(self) -> Optional[SyntaxMessage]:
        for message in self.messages:
            if message.severity in {"error", "fatal error"}:
                return message
        return None


class SyntaxBackend(Protocol):
    """Injected capability checking one example of one dialect."""

    def check_syntax(
        self,
        dialect: str,
        source: str,
        *,
        timeout: float,
        token: Optional[CancellationToken] = None,
    ) -> SyntaxCheckResult:
        ...


def parse_compiler_output(stderr: str) -> List[SyntaxMessage]:
    """Extract ``<stdin>:L:C: severity: text`` lines from compiler output."""

    messages: List[SyntaxMessage] = []
    for raw in stderr.splitlines():
        match = _COMPILER_LINE.match(raw.strip())
        if match is None:
            continue
        column = match.group("column")
        messages.append(
            SyntaxMessage(
                severity=match.group("severity"),
                text=match.group("text").strip(),
                line=int(match.group("line")),
                column=int(column) if column else None,
            )
        )
    return messages


PopenFactory = Callable[..., "subprocess.Popen[bytes]"]


class CompilerBackend:
    """Syntax checks through a C/C++ compiler's ``-fsyntax-only`` mode.

    Args:
        c_compiler: Executable used for C dialects.
        cxx_compiler: Executable used for C++ dialects.
        extra_flags: Flags appended to every invocation (``-Wall`` etc.).
        poll_interval: Seconds between cancellation checks while waiting.
        popen: ``subprocess.Popen`` replacement, for tests.
    """

    def __init__(
        self,
        c_compiler: str = "cc",
        cxx_compiler: str = "c++",
        *,
        extra_flags: Sequence[str] = (),
        poll_interval: float = 0.05,
        popen: Optional[PopenFactory] = None,
    ) -> None:
        self.c_compiler = c_compiler
        self.cxx_compiler = cxx_compiler
        self.extra_flags = tuple(extra_flags)
        self.poll_interval = poll_interval
        self._popen: PopenFactory = popen or subprocess.Popen

    def command(self, dialect: str) -> List[str]:
        """Return the argv used to check an example of ``dialect``.

        Raises:
            BackendUnavailable: If ``dialect`` names no known family.
        """

        family = dialect_family(dialect)
        if family is None:
            raise BackendUnavailable(dialect, "no compiler is configured for this dialect")
        if family is Family.CPP:
            argv = [self.cxx_compiler, "-fsyntax-only", "-x", "c++"]
        else:
            argv = [self.c_compiler, "-fsyntax-only", "-x", "c"]
        version = dialect_version(dialect)
        if version is not None:
            argv.append(f"-std={_STD_FLAGS[version.label]}")
        argv.extend(self.extra_flags)
        argv.append("-")
        return argv

    def check_syntax(
        self,
        dialect: str,
        source: str,
        *,
        timeout: float,
        token: Optional[CancellationToken] = None,
    ) -> SyntaxCheckResult:
        argv = self.command(dialect)
        if token is not None and token.is_cancelled():
            raise SyntaxCheckCancelled(f"{dialect}: cancelled before launch")
        try:
            process = self._popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise BackendUnavailable(dialect, f"{argv[0]!r} not found on PATH") from exc
        except OSError as exc:
            raise BackendUnavailable(dialect, f"failed to launch {argv[0]!r}: {exc}") from exc

        deadline = time.monotonic() + timeout
        payload: Optional[bytes] = source.encode("utf-8")
        while True:
            if token is not None and token.is_cancelled():
                self._kill(process)
                raise SyntaxCheckCancelled(f"{dialect}: cancelled")
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._kill(process)
                raise SyntaxCheckTimeout(f"{dialect}: syntax check exceeded {timeout:g}s")
            try:
                _, stderr = process.communicate(
                    input=payload, timeout=min(self.poll_interval, remaining)
                )
                break
            except subprocess.TimeoutExpired:
                # Input is only accepted by the first communicate() call.
                payload = None

        error_text = (stderr or b"").decode("utf-8", errors="replace")
        messages = tuple(parse_compiler_output(error_text))
        if process.returncode == 0:
            return SyntaxCheckResult(ok=True, messages=messages)
        detail = next(
            (m.text for m in messages if m.severity in {"error", "fatal error"}),
            "",
        )
        if not detail:
            stripped = error_text.strip()
            detail = stripped.splitlines()[0] if stripped else f"exit status {process.returncode}"
        return SyntaxCheckResult(ok=False, messages=messages, detail=detail)

    @staticmethod
    def _kill(process: "subprocess.Popen[bytes]") -> None:
        process.kill()
        try:
            process.communicate(timeout=5)
        except subprocess.TimeoutExpired:
            log_event(_LOGGER, "warning", "Compiler did not exit after kill", pid=process.pid)
