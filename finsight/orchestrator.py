"""
Main Orchestrator for FinSight

This module ties the engine to the city comparison board and defines
the end-to-end flows for:
1. Analysis of the primary budget
2. Adding, editing, recomputing and removing comparison cities

DESIGN DECISION: The orchestrator is the single owner of every CityEntry.
- Entries change only through add_city, remove_city, edit_input, recompute
- Callers receive deep copies, never the live records
- Each city has at most one analysis in flight
- A result that comes back for a removed or superseded entry is dropped

Board operations are synchronous: they validate, apply the state change
and, when analysis is needed, schedule it on the running event loop and
return the task. Slow or failing cities never hold up the others.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union
from uuid import UUID

from pydantic import ValidationError

from finsight.agents import FinancialChatAgent
from finsight.audit import AuditLogger, configure_logging, create_correlation_id
from finsight.config import get_settings
from finsight.engine import AnalysisEngine
from finsight.errors import (
    AlreadyInProgress,
    CannotRemovePrimary,
    ComparisonLimitReached,
    DuplicateCity,
    FinSightError,
    InvalidInput,
    UnknownCity,
)
from finsight.models.budget import BudgetAnalysis, BudgetInput, BudgetInputChange
from finsight.models.comparison import CityEntry, CityEntryStatus, city_key
from finsight.services.provider import AnalysisProvider, GeminiAnalysisProvider


@dataclass
class _Slot:
    """Bookkeeping for one live entry."""
    entry: CityEntry
    # Bumped each time an analysis starts; a result commits only if it still matches
    generation: int = 0
    task: Optional[asyncio.Task] = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ComparisonOrchestrator:
    """
    Owns the primary city and up to `max_comparisons` comparison cities.

    State machine per entry:
        IDLE    → LOADING   add_city / recompute
        LOADING → READY     analysis set, last_error cleared
        LOADING → FAILED    previous analysis kept, last_error set
        READY | FAILED → LOADING   recompute (previous analysis kept, shown as stale)

    The returned tasks resolve to a copy of the committed entry, or to
    None when the entry was removed before its analysis came back.
    They never raise analysis errors; those end up in the entry.
    """

    def __init__(
        self,
        engine: AnalysisEngine,
        primary_input: BudgetInput,
        primary_analysis: Optional[BudgetAnalysis] = None,
        max_comparisons: Optional[int] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Args:
            engine: Shared by every entry.
            primary_input: The user's main budget.
            primary_analysis: An analysis of primary_input already on
                screen; the primary entry then starts READY.
            max_comparisons: Defaults to AppSettings.max_comparison_cities.
            audit_logger: Optional audit trail.
        """
        self._engine = engine
        self._max_comparisons = (
            max_comparisons
            if max_comparisons is not None
            else get_settings().app.max_comparison_cities
        )
        self._audit_logger = audit_logger

        primary = CityEntry(
            city=primary_input.city,
            input=primary_input.model_copy(deep=True),
            is_primary=True,
        )
        if primary_analysis is not None:
            primary.analysis = primary_analysis.model_copy(deep=True)
            primary.analyzed_input = primary_input.model_copy(deep=True)
            primary.status = CityEntryStatus.READY

        self._primary_key = primary.key
        self._slots: dict[str, _Slot] = {primary.key: _Slot(entry=primary)}
        # Strong references to running analyses, removed entries included
        self._tasks: set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Read surface
    # -------------------------------------------------------------------------

    @property
    def max_comparisons(self) -> int:
        return self._max_comparisons

    @property
    def primary(self) -> CityEntry:
        return self._snapshot(self._slots[self._primary_key].entry)

    @property
    def comparisons(self) -> list[CityEntry]:
        return [
            self._snapshot(slot.entry)
            for key, slot in self._slots.items()
            if key != self._primary_key
        ]

    @property
    def entries(self) -> list[CityEntry]:
        """Primary first, then comparisons in the order they were added."""
        return [self._snapshot(slot.entry) for slot in self._slots.values()]

    @property
    def can_add_city(self) -> bool:
        return len(self._slots) - 1 < self._max_comparisons

    @property
    def in_flight(self) -> int:
        """Number of analyses still running, including discarded ones."""
        return sum(1 for task in self._tasks if not task.done())

    def get(self, city: str) -> CityEntry:
        return self._snapshot(self._require(city).entry)

    def __contains__(self, city: str) -> bool:
        return city_key(city) in self._slots

    def __len__(self) -> int:
        return len(self._slots)

    async def wait_idle(self) -> None:
        """Wait until no analysis is running."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Board operations
    # -------------------------------------------------------------------------

    def add_city(self, name: str) -> asyncio.Future:
        """
        Add a comparison city and start its analysis.

        The new entry starts from a deep copy of the primary's current
        budget with only the city replaced.

        Raises:
            InvalidInput: The name is blank
            DuplicateCity: The city is already on the board
            ComparisonLimitReached: The board is full
            RuntimeError: Called outside a running event loop
        """
        loop = asyncio.get_running_loop()

        city = " ".join((name or "").split())
        if not city:
            raise InvalidInput("City name is required", user_message="Please enter a city name.")

        key = city_key(city)
        if key in self._slots:
            raise DuplicateCity(city)
        if not self.can_add_city:
            raise ComparisonLimitReached(city, self._max_comparisons)

        primary = self._slots[self._primary_key].entry
        try:
            seeded = primary.input.with_city(city)
        except ValidationError as e:
            raise InvalidInput(
                f"Cannot add {city}: {e}",
                user_message="Please enter a valid city name.",
            ) from e

        slot = _Slot(entry=CityEntry(city=seeded.city, input=seeded))
        self._slots[key] = slot

        if self._audit_logger:
            self._audit_logger.log_city_added(city=seeded.city, seeded_from=primary.city)

        return self._start(slot, loop)

    def remove_city(self, name: str) -> None:
        """
        Remove a comparison city, even while it is being analyzed.

        A running analysis is left to finish; its result is discarded.

        Raises:
            UnknownCity: No entry for the city
            CannotRemovePrimary: The city is the primary
        """
        slot = self._require(name)
        if slot.entry.is_primary:
            raise CannotRemovePrimary(slot.entry.city)

        del self._slots[slot.entry.key]

        if self._audit_logger:
            self._audit_logger.log_city_removed(
                city=slot.entry.city,
                was_loading=slot.entry.status == CityEntryStatus.LOADING,
            )

    def edit_input(
        self,
        name: str,
        change: Union[BudgetInputChange, dict],
    ) -> CityEntry:
        """
        Merge a partial change into a city's budget.

        Status and analysis are untouched and no analysis is started;
        call recompute() once the edits are done.

        Raises:
            UnknownCity: No entry for the city
            InvalidInput: The change, or the budget it produces, is invalid
        """
        slot = self._require(name)
        entry = slot.entry

        try:
            if not isinstance(change, BudgetInputChange):
                change = BudgetInputChange.model_validate(change)
            updated = entry.input.apply_change(change)
        except ValidationError as e:
            raise InvalidInput(
                f"Invalid budget change for {entry.city}: {e}",
                user_message="Please check the values you entered.",
            ) from e

        entry.input = updated
        entry.updated_at = _now()

        if self._audit_logger:
            self._audit_logger.log_input_edited(
                city=entry.city,
                fields=sorted(change.model_fields_set),
            )

        return self._snapshot(entry)

    def recompute(self, name: str) -> asyncio.Future:
        """
        Re-analyze a city with its current budget.

        Without a usable income the entry goes straight to FAILED and
        the provider is not called; the returned future is already done.

        Raises:
            UnknownCity: No entry for the city
            AlreadyInProgress: An analysis for the city is running
            RuntimeError: Called outside a running event loop
        """
        loop = asyncio.get_running_loop()

        slot = self._require(name)
        if slot.entry.status == CityEntryStatus.LOADING:
            if self._audit_logger:
                self._audit_logger.log_recompute_rejected(city=slot.entry.city)
            raise AlreadyInProgress(slot.entry.city)

        return self._start(slot, loop)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _require(self, name: str) -> _Slot:
        slot = self._slots.get(city_key(name or ""))
        if slot is None:
            raise UnknownCity(name)
        return slot

    @staticmethod
    def _snapshot(entry: CityEntry) -> CityEntry:
        return entry.model_copy(deep=True)

    def _is_current(self, slot: _Slot, generation: int) -> bool:
        return (
            self._slots.get(slot.entry.key) is slot
            and slot.generation == generation
        )

    def _start(self, slot: _Slot, loop: asyncio.AbstractEventLoop) -> asyncio.Future:
        """Move the entry to LOADING and schedule its analysis."""
        entry = slot.entry

        if not entry.input.has_usable_income:
            error = InvalidInput(
                f"Cannot analyze {entry.city}: no usable monthly pre-tax income"
            )
            self._fail(entry, error)
            if self._audit_logger:
                self._audit_logger.log_analysis_failed(
                    city=entry.city,
                    error_type=type(error).__name__,
                    error_message=error.message,
                )
            done = loop.create_future()
            done.set_result(self._snapshot(entry))
            return done

        slot.generation += 1
        generation = slot.generation
        # Taken now: later edits must not leak into this run
        snapshot = entry.input.model_copy(deep=True)
        correlation_id = create_correlation_id()

        entry.status = CityEntryStatus.LOADING
        entry.last_error = None
        entry.updated_at = _now()

        if self._audit_logger:
            self._audit_logger.log_analysis_started(
                city=entry.city,
                income=str(snapshot.monthly_pre_tax_income),
                correlation_id=correlation_id,
            )

        task = loop.create_task(
            self._run(slot, generation, snapshot, correlation_id),
            name=f"finsight-analysis:{entry.key}:{generation}",
        )
        slot.task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(
        self,
        slot: _Slot,
        generation: int,
        snapshot: BudgetInput,
        correlation_id: UUID,
    ) -> Optional[CityEntry]:
        """Run one analysis and commit it if the entry is still current."""
        entry = slot.entry
        analysis = None
        error = None

        try:
            analysis = await self._engine.analyze(snapshot, correlation_id=correlation_id)
        except FinSightError as e:
            error = e
        except asyncio.CancelledError:
            if self._is_current(slot, generation):
                self._fail(entry, FinSightError("Analysis was cancelled."))
                slot.task = None
            raise
        except Exception as e:
            # Unexpected: still resolve the entry rather than leave it LOADING
            error = FinSightError(f"Unexpected analysis error: {e}")

        if not self._is_current(slot, generation):
            if self._audit_logger:
                self._audit_logger.log_analysis_discarded(
                    city=entry.city,
                    reason="removed" if self._slots.get(entry.key) is not slot else "superseded",
                    correlation_id=correlation_id,
                )
            return None

        slot.task = None

        if error is not None:
            self._fail(entry, error)
            if self._audit_logger:
                self._audit_logger.log_analysis_failed(
                    city=entry.city,
                    error_type=type(error).__name__,
                    error_message=error.message,
                    correlation_id=correlation_id,
                )
        else:
            entry.analysis = analysis
            entry.analyzed_input = snapshot
            entry.status = CityEntryStatus.READY
            entry.last_error = None
            entry.updated_at = _now()
            if self._audit_logger:
                self._audit_logger.log_analysis_completed(
                    city=entry.city,
                    tax_total=str(analysis.tax_breakdown.total),
                    disposable_income=str(analysis.disposable_income),
                    correlation_id=correlation_id,
                )

        return self._snapshot(entry)

    @staticmethod
    def _fail(entry: CityEntry, error: FinSightError) -> None:
        """FAILED keeps whatever analysis the entry already had."""
        entry.status = CityEntryStatus.FAILED
        entry.last_error = error.user_message
        entry.updated_at = _now()


# =============================================================================
# SYNC CALLERS
# =============================================================================
# Board operations schedule on the running loop, so callers without one
# (Streamlit) must call them from inside a coroutine they hand to the loop.

async def analyze_city(
    orchestrator: ComparisonOrchestrator,
    city: str,
) -> Optional[CityEntry]:
    """Recompute one city and wait for the result."""
    return await orchestrator.recompute(city)


async def add_and_analyze(
    orchestrator: ComparisonOrchestrator,
    city: str,
) -> Optional[CityEntry]:
    """Add a city and wait for its first analysis."""
    return await orchestrator.add_city(city)


async def recompute_all(orchestrator: ComparisonOrchestrator) -> list[Optional[CityEntry]]:
    """Recompute every city that is not already loading, concurrently."""
    futures = [
        orchestrator.recompute(entry.city)
        for entry in orchestrator.entries
        if entry.status != CityEntryStatus.LOADING
    ]
    return list(await asyncio.gather(*futures))


def create_app_components(
    provider: Optional[AnalysisProvider] = None,
) -> tuple[AnalysisEngine, FinancialChatAgent, AuditLogger]:
    """
    Factory function to create the shared application components.

    Args:
        provider: Analysis provider to use. Defaults to Gemini,
                  which requires GEMINI_API_KEY.

    Returns:
        (engine, chat_agent, audit_logger)
    """
    configure_logging(get_settings().app.log_level)
    audit_logger = AuditLogger()

    engine = AnalysisEngine(
        provider=provider or GeminiAnalysisProvider(),
        audit_logger=audit_logger,
    )
    chat_agent = FinancialChatAgent()

    return engine, chat_agent, audit_logger
