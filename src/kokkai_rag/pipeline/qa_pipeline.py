"""High level orchestration of planning, hybrid retrieval and answering."""
from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from threading import Condition
from typing import Callable, Dict, List, Literal, Optional, Sequence, Set
import logging
import time

from ..core.types import STRATEGY_STRUCTURED, QueryPlan, QuestionAnswer, SpeechResult
from ..planning import QueryPlanner
from ..retrieval import CandidateFilter, SimilaritySearchExecutor, StructuredFilter, merge_results
from ..synthesis import AnswerSynthesizer

LOGGER = logging.getLogger(__name__)

PipelineEventKind = Literal[
    "start",
    "planned",
    "filtered",
    "searched",
    "merged",
    "answered",
    "finished",
    "error",
]


class PipelineConfigurationError(RuntimeError):
    """Raised when a required collaborator was not configured."""


@dataclass(slots=True)
class PipelineEvent:
    """Progress notification emitted by :class:`QuestionAnsweringPipeline`."""

    kind: PipelineEventKind
    question: str
    message: str | None = None
    plan: QueryPlan | None = None
    subquery: str | None = None
    result_count: int | None = None


ProgressCallback = Callable[[PipelineEvent], None]


_IDLE_POLL_SECONDS = 0.05


class _SlotGate:
    """Counting gate whose slots can be reclaimed from abandoned work."""

    def __init__(self, size: int) -> None:
        self._free = max(1, size)
        self._holders: Set[int] = set()
        self._condition = Condition()

    def acquire(self, key: int) -> None:
        with self._condition:
            while self._free <= 0:
                self._condition.wait()
            self._free -= 1
            self._holders.add(key)

    def release(self, key: int) -> None:
        with self._condition:
            if key in self._holders:
                self._holders.discard(key)
                self._free += 1
                self._condition.notify()


class QuestionAnsweringPipeline:
    """Answer one question at a time against the speech corpus."""

    def __init__(
        self,
        *,
        planner: Optional[QueryPlanner],
        candidate_filter: StructuredFilter,
        executor: Optional[SimilaritySearchExecutor],
        synthesizer: Optional[AnswerSynthesizer],
        max_workers: int = 3,
        search_timeout: Optional[float] = 60.0,
    ) -> None:
        self._planner = planner
        self._candidate_filter = candidate_filter
        self._executor = executor
        self._synthesizer = synthesizer
        self._max_workers = max(1, max_workers)
        self._search_timeout = search_timeout

    def answer_question(
        self,
        question: str,
        *,
        top_k: int = 5,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> QuestionAnswer:
        """Run the pipeline end-to-end for ``question``."""

        planner, executor, synthesizer = self._planner, self._executor, self._synthesizer
        if planner is None or executor is None or synthesizer is None:
            missing = [
                name
                for name, component in (
                    ("planner", planner),
                    ("search executor", executor),
                    ("answer synthesizer", synthesizer),
                )
                if component is None
            ]
            raise PipelineConfigurationError(f"Pipeline is missing: {', '.join(missing)}")
        if top_k < 1:
            raise ValueError(f"top_k must be at least 1, got {top_k}")

        self._notify(progress_callback, PipelineEvent(kind="start", question=question, message="Question received"))
        try:
            plan = planner.plan(question)
            self._notify(
                progress_callback,
                PipelineEvent(
                    kind="planned",
                    question=question,
                    plan=plan,
                    message=f"Planned {len(plan.subqueries)} subqueries",
                ),
            )

            candidates = CandidateFilter()
            if plan.uses(STRATEGY_STRUCTURED):
                candidates = self._candidate_filter.filter_candidates(plan.entities)
                self._notify(
                    progress_callback,
                    PipelineEvent(
                        kind="filtered",
                        question=question,
                        plan=plan,
                        message=self._describe_filter(candidates),
                        result_count=len(candidates.speech_ids),
                    ),
                )

            per_subquery = self._search_all(executor, plan, candidates.speech_ids, top_k, progress_callback)
            results = merge_results(per_subquery, top_k)
            LOGGER.info("Plan execution completed: %s unique results", len(results))
            self._notify(
                progress_callback,
                PipelineEvent(
                    kind="merged",
                    question=question,
                    plan=plan,
                    message=f"{len(results)} unique results",
                    result_count=len(results),
                ),
            )

            answer = ""
            if results:
                answer = synthesizer.synthesize(question, results)
                self._notify(
                    progress_callback,
                    PipelineEvent(kind="answered", question=question, plan=plan, message="Answer generated"),
                )
            else:
                LOGGER.info("No relevant speeches found for %r", question)
        except Exception as exc:
            LOGGER.exception("Question pipeline failed: %s", exc)
            self._notify(progress_callback, PipelineEvent(kind="error", question=question, message=str(exc)))
            raise

        self._notify(
            progress_callback,
            PipelineEvent(
                kind="finished",
                question=question,
                plan=plan,
                message="Pipeline run finished",
                result_count=len(results),
            ),
        )
        return QuestionAnswer(question=question, plan=plan, results=tuple(results), answer=answer)

    def _search_all(
        self,
        executor: SimilaritySearchExecutor,
        plan: QueryPlan,
        candidate_ids: Sequence[str],
        top_k: int,
        progress_callback: Optional[ProgressCallback],
    ) -> List[List[SpeechResult]]:
        # One thread per subquery; the gate bounds how many search at once and
        # hands the slot of a timed-out subquery to the next queued one.
        gate = _SlotGate(self._max_workers)
        started: Dict[int, float] = {}

        def run(index: int, subquery: str) -> List[SpeechResult]:
            gate.acquire(index)
            try:
                started[index] = time.monotonic()
                return executor.search_subquery(
                    subquery, plan.entities, plan.enabled_strategies, candidate_ids, top_k
                )
            finally:
                gate.release(index)

        pool = ThreadPoolExecutor(max_workers=len(plan.subqueries), thread_name_prefix="subquery")
        try:
            futures = {
                pool.submit(run, index, subquery): index for index, subquery in enumerate(plan.subqueries)
            }
            collected: List[List[SpeechResult]] = [[] for _ in plan.subqueries]
            pending: Set[Future[List[SpeechResult]]] = set(futures)
            while pending:
                for future in self._expired(pending, futures, started):
                    index = futures[future]
                    pending.discard(future)
                    future.cancel()
                    gate.release(index)
                    LOGGER.warning(
                        "Subquery %r timed out after %ss; skipping it",
                        plan.subqueries[index],
                        self._search_timeout,
                    )
                if not pending:
                    break
                done, pending = wait(
                    pending, timeout=self._next_wait(pending, futures, started), return_when=FIRST_COMPLETED
                )
                for future in done:
                    index = futures[future]
                    try:
                        collected[index] = future.result()
                    except Exception as exc:
                        LOGGER.warning("Subquery %r failed; skipping it: %s", plan.subqueries[index], exc)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        # Reported and returned in subquery order so the merge does not depend on completion order.
        for subquery, results in zip(plan.subqueries, collected):
            self._notify(
                progress_callback,
                PipelineEvent(
                    kind="searched",
                    question=plan.original_question,
                    plan=plan,
                    subquery=subquery,
                    message=f"{len(results)} hits for {subquery!r}",
                    result_count=len(results),
                ),
            )
        return collected

    def _expired(
        self,
        pending: Set[Future[List[SpeechResult]]],
        futures: Dict[Future[List[SpeechResult]], int],
        started: Dict[int, float],
    ) -> List[Future[List[SpeechResult]]]:
        if self._search_timeout is None:
            return []
        now = time.monotonic()
        return [
            future
            for future in pending
            if not future.done()
            and futures[future] in started
            and now - started[futures[future]] >= self._search_timeout
        ]

    def _next_wait(
        self,
        pending: Set[Future[List[SpeechResult]]],
        futures: Dict[Future[List[SpeechResult]], int],
        started: Dict[int, float],
    ) -> Optional[float]:
        """Seconds until the earliest running subquery reaches its deadline."""

        if self._search_timeout is None:
            return None
        now = time.monotonic()
        remaining = [
            started[futures[future]] + self._search_timeout - now
            for future in pending
            if futures[future] in started
        ]
        # Nothing has started yet; check again once a worker picks one up.
        return max(0.0, min(remaining)) if remaining else _IDLE_POLL_SECONDS

    @staticmethod
    def _describe_filter(candidates: CandidateFilter) -> str:
        if candidates.error is not None:
            return "Structured filter failed; searching without it"
        if not candidates.applied:
            return "No metadata to filter by"
        if not candidates.restricts:
            return "Structured filter matched nothing; falling back to plain similarity search"
        return f"Structured filter applied: {len(candidates.speech_ids)} candidates"

    @staticmethod
    def _notify(callback: Optional[ProgressCallback], event: PipelineEvent) -> None:
        if callback:
            callback(event)


__all__ = ["PipelineConfigurationError", "PipelineEvent", "QuestionAnsweringPipeline"]
