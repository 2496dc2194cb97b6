# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.cancellation",
#   "purpose": "Cooperative cancellation shared by syntax-check workers.",
#   "sections": [
#     {
#       "id": "cancellationtoken",
#       "name": "CancellationToken",
#       "anchor": "class-cancellationtoken",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Cooperative cancellation for long-running syntax checks.

Example validation fans out compiler invocations across per-dialect pools.
A :class:`CancellationToken` is shared by every task of one run: workers check
it before launching a toolchain and while waiting on a child process, and
kill the child when it fires. Cancellation is explicit rather than thread
interruption so every example still receives an outcome record.
"""

from __future__ import annotations

import threading

__all__ = ["CancellationToken"]


class CancellationToken:
    """Thread-safe cancellation flag.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel()
        >>> token.is_cancelled()
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()
