"""Interactive question console for the Kokkai RAG pipeline."""
from __future__ import annotations

from importlib import import_module
from typing import Any

try:
    run_ui = import_module("kokkai_rag.ui.app").run_ui  # type: ignore[attr-defined]
except ModuleNotFoundError as exc:  # pragma: no cover - triggered when nicegui is absent
    if exc.name != "nicegui":
        raise
    _import_error = exc

    def run_ui(*_: Any, **__: Any) -> None:
        raise ModuleNotFoundError(
            "NiceGUI must be installed to start the graphical console. "
            "Install kokkai-rag with `pip install kokkai-rag` "
            "or directly with `pip install nicegui>=1.4.17`."
        ) from _import_error

__all__ = ["run_ui"]
