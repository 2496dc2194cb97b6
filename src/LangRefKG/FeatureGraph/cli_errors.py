# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.FeatureGraph.cli_errors",
#   "purpose": "Exception types and formatting helpers shared by the feature graph CLI.",
#   "sections": [
#     {"id": "clivalidationerror", "name": "CLIValidationError", "anchor": "class-clivalidationerror", "kind": "class"},
#     {"id": "format-cli-error", "name": "format_cli_error", "anchor": "function-format-cli-error", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Exception types and formatting helpers shared by the feature graph CLI.

Fatal input problems (a missing input directory, an unreadable graph, an
invalid option value) are raised as :class:`CLIValidationError` so every
command reports them in the same ``[command] --option: message. Hint: ...``
shape before exiting with status 2.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

__all__ = ["CLIValidationError", "format_cli_error"]


@dataclass(slots=True)
class CLIValidationError(ValueError):
    """Base exception capturing option names and human-friendly messages."""

    option: str
    message: str
    hint: Optional[str] = None
    stage: str = "cli"

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        ValueError.__init__(self, self.message)

    def __str__(self) -> str:  # pragma: no cover - formatting handled in helper
        return self.message


def format_cli_error(error: CLIValidationError) -> str:
    """Return a consistent error string for CLI consumption."""

    prefix = f"[{error.stage}]"
    hint = f" Hint: {error.hint}" if error.hint else ""
    return f"{prefix} {error.option}: {error.message}.{hint}".strip()
