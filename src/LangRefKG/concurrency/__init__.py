# === NAVMAP v1 ===
# {
#   "module": "LangRefKG.concurrency.__init__",
#   "purpose": "Concurrency helpers shared across LangRefKG components.",
#   "sections": []
# }
# === /NAVMAP ===

"""
Concurrency helpers shared across LangRefKG components.

Currently exposes :func:`create_executor` which maps the extraction policy
(IO → threads, CPU → processes) onto a concrete pool so per-document work can
fan out without each caller choosing an executor class.
"""

from .executors import create_executor

__all__ = ["create_executor"]
