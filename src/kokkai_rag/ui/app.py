"""NiceGUI powered question console for the Kokkai RAG pipeline."""
from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from pathlib import Path
from typing import Deque, Dict, List, Optional

from nicegui import ui

from ..config import AppConfig, resolve_config_path
from ..core.types import QuestionAnswer, SpeechResult
from ..database import SpeechStore
from ..pipeline import PipelineEvent
from ..runtime import create_pipeline
from ..synthesis.answer import truncate

_EVENT_LABELS: Dict[str, str] = {
    "start": "Start",
    "planned": "Plan",
    "filtered": "Metadata filter",
    "searched": "Similarity search",
    "merged": "Ranking",
    "answered": "Answer",
    "finished": "Finished",
    "error": "Error",
}


@dataclass(slots=True)
class LogEntry:
    timestamp: datetime
    stage: str
    message: str

    def to_row(self) -> Dict[str, str]:
        return {
            "time": self.timestamp.strftime("%H:%M:%S.%f")[:-3],
            "stage": self.stage,
            "message": self.message,
        }


@dataclass
class AskState:
    is_running: bool = False
    question: str = ""
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    last_event: str = "idle"
    error: Optional[str] = None
    outcome: Optional[QuestionAnswer] = None
    log: Deque[LogEntry] = field(default_factory=lambda: deque(maxlen=200))
    revision: int = 0


class QuestionRunner:
    """Background helper that answers one question at a time for the UI."""

    def __init__(self, *, config: AppConfig, storage: SpeechStore) -> None:
        self._config = config
        self._storage = storage
        self._lock = Lock()
        self._state = AskState()
        self._task: Optional[asyncio.Task[None]] = None

    async def start(self, *, question: str, top_k: int) -> bool:
        with self._lock:
            if self._state.is_running:
                return False
            self._state.is_running = True
            self._state.question = question
            self._state.error = None
            self._state.outcome = None
            self._state.started_at = datetime.now()
            self._state.finished_at = None
            self._state.last_event = "start"
            self._state.log.clear()
            self._state.revision += 1

        async def _launch() -> None:
            def _run() -> QuestionAnswer:
                resources = create_pipeline(self._config, storage=self._storage)
                try:
                    return resources.pipeline.answer_question(
                        question,
                        top_k=top_k,
                        progress_callback=self._handle_event,
                    )
                finally:
                    resources.close()

            try:
                outcome = await asyncio.to_thread(_run)
            except Exception as exc:
                with self._lock:
                    self._state.is_running = False
                    self._state.error = self._state.error or str(exc)
                    self._state.finished_at = datetime.now()
                    self._state.revision += 1
            else:
                with self._lock:
                    self._state.outcome = outcome
                    self._state.revision += 1
            finally:
                with self._lock:
                    self._task = None

        self._task = asyncio.create_task(_launch())
        return True

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            state = self._state
            outcome = state.outcome
            return {
                "revision": state.revision,
                "status": self._resolve_status(state),
                "is_running": state.is_running,
                "started_at": state.started_at,
                "finished_at": state.finished_at,
                "error": state.error,
                "log": [entry.to_row() for entry in list(state.log)],
                "results": [_result_to_row(result) for result in outcome.results] if outcome else [],
                "answer": outcome.answer if outcome else "",
                "has_results": outcome.has_results if outcome else None,
            }

    def _handle_event(self, event: PipelineEvent) -> None:
        timestamp = datetime.now()
        label = _EVENT_LABELS.get(event.kind, event.kind.title())
        with self._lock:
            state = self._state
            if event.kind == "finished":
                state.is_running = False
                state.finished_at = timestamp
            elif event.kind == "error":
                state.is_running = False
                state.error = event.message or "Unknown error"
                state.finished_at = timestamp
            state.last_event = event.kind
            state.log.append(LogEntry(timestamp=timestamp, stage=label, message=event.message or label))
            state.revision += 1

    @staticmethod
    def _resolve_status(state: AskState) -> str:
        if state.is_running:
            return "running"
        if state.error:
            return "error"
        if state.last_event == "finished":
            return "finished"
        return "idle"


def _result_to_row(result: SpeechResult) -> Dict[str, str]:
    return {
        "speech_id": result.speech_id,
        "speaker": f"{result.speaker} ({result.party})",
        "date": result.date,
        "meeting": result.meeting,
        "score": f"{result.score:.3f}",
        "content": truncate(result.content, 160),
        "url": result.url,
    }


def _format_duration(started: Optional[datetime], finished: Optional[datetime], running: bool) -> str:
    if not started:
        return "-"
    end = datetime.now() if running or not finished else finished
    return f"{(end - started).total_seconds():.1f} s"


def run_ui(
    config: AppConfig,
    *,
    storage: SpeechStore,
    host: str = "127.0.0.1",
    port: int = 8080,
    config_path: Path | None = None,
) -> None:
    """Start the NiceGUI based question console."""

    config_file_path = resolve_config_path(config_path)
    runner = QuestionRunner(config=config, storage=storage)

    ui.colors(
        primary="#2563eb",
        secondary="#111827",
        accent="#f97316",
        positive="#22c55e",
        negative="#ef4444",
        info="#0ea5e9",
        warning="#facc15",
    )

    with ui.header().classes("items-center justify-between bg-primary text-white px-6 py-3 shadow-lg"):
        with ui.row().classes("items-center gap-3"):
            ui.icon("account_balance").classes("text-2xl")
            ui.label("Kokkai RAG").classes("text-lg font-semibold")
        ui.label(f"Config: {config_file_path}").classes("text-xs")

    with ui.column().classes("w-full max-w-6xl mx-auto mt-4 gap-4"):
        with ui.card().classes("w-full shadow-md"):
            ui.label("Ask the Diet minutes").classes("text-base font-semibold mb-2")
            question_input = ui.textarea(
                "Question",
                placeholder="What did Prime Minister Kishida say about defense spending?",
            ).classes("w-full")
            with ui.row().classes("items-center gap-4"):
                top_k_input = ui.number("Top K", value=config.retrieval.top_k, min=1, max=50, step=1)
                ask_button = ui.button("Ask", color="primary", icon="search")
                status_badge = ui.badge("Ready", color="positive").classes("text-sm")
                duration_label = ui.label("-").classes("text-sm text-gray-500")
            error_alert = ui.label("").classes("text-sm text-negative")
            error_alert.visible = False
        with ui.card().classes("w-full shadow-md"):
            ui.label("Answer").classes("text-base font-semibold mb-2")
            answer_view = ui.markdown("").classes("w-full")
        with ui.card().classes("w-full shadow-md"):
            ui.label("Evidence").classes("text-base font-semibold mb-2")
            result_columns = [
                {"name": "score", "label": "Score", "field": "score", "align": "right"},
                {"name": "speaker", "label": "Speaker", "field": "speaker", "align": "left"},
                {"name": "date", "label": "Date", "field": "date", "align": "left"},
                {"name": "meeting", "label": "Meeting", "field": "meeting", "align": "left"},
                {"name": "content", "label": "Content", "field": "content", "align": "left"},
                {"name": "url", "label": "Source", "field": "url", "align": "left"},
            ]
            result_table = ui.table(columns=result_columns, rows=[], row_key="speech_id").classes("w-full")
            result_table.props("dense wrap-cells flat")
        with ui.card().classes("w-full shadow-md"):
            ui.label("Live log").classes("text-base font-semibold mb-2")
            log_columns = [
                {"name": "time", "label": "Time", "field": "time", "align": "left"},
                {"name": "stage", "label": "Stage", "field": "stage", "align": "left"},
                {"name": "message", "label": "Details", "field": "message", "align": "left"},
            ]
            log_table = ui.table(columns=log_columns, rows=[], row_key="time").classes("w-full")
            log_table.props("dense wrap-cells flat")

    async def handle_ask() -> None:
        question = (question_input.value or "").strip()
        if not question:
            ui.notify("Please enter a question", color="negative")
            return
        try:
            top_k = int(top_k_input.value)
        except (TypeError, ValueError):
            ui.notify("Top K must be a whole number", color="negative")
            return
        if top_k < 1:
            ui.notify("Top K must be at least 1", color="negative")
            return
        if not await runner.start(question=question, top_k=top_k):
            ui.notify("A question is already being answered.", color="warning")

    ask_button.on("click", handle_ask)

    last_revision = -1
    status_colors = {
        "idle": "info",
        "running": "accent",
        "finished": "positive",
        "error": "negative",
    }
    status_labels = {
        "idle": "Ready",
        "running": "Running",
        "finished": "Done",
        "error": "Error",
    }

    def update_components() -> None:
        nonlocal last_revision
        snapshot = runner.snapshot()
        if snapshot["is_running"]:
            duration_label.set_text(_format_duration(snapshot["started_at"], snapshot["finished_at"], True))
        if snapshot["revision"] == last_revision:
            return
        last_revision = snapshot["revision"]
        status = snapshot["status"]
        status_badge.set_text(status_labels.get(status, status.title()))
        status_badge.props(f"color={status_colors.get(status, 'info')}")
        ask_button.disable() if snapshot["is_running"] else ask_button.enable()
        duration_label.set_text(
            _format_duration(snapshot["started_at"], snapshot["finished_at"], bool(snapshot["is_running"]))
        )
        error_message = snapshot.get("error")
        error_alert.set_text(error_message or "")
        error_alert.visible = bool(error_message)
        rows: List[Dict[str, str]] = snapshot["results"]  # type: ignore[assignment]
        result_table.rows = rows
        if snapshot["has_results"] is False:
            answer_view.set_content("_No relevant speeches found._")
        else:
            answer_view.set_content(str(snapshot["answer"]))
        log_table.rows = snapshot["log"]

    ui.timer(0.5, update_components)
    ui.run(reload=False, host=host, port=port, title="Kokkai RAG")


__all__ = ["QuestionRunner", "run_ui"]
