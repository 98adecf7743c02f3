"""Analysis Strategies and Orchestrator.

This module turns selected source records into pre-drafts: one
(record, medication, time of day) candidate per reminder to be built.

Two interchangeable strategies implement the Analyzer interface:

    - BasicAnalyzer parses each prescription line's frequency text with the
      frequency interpreter. Deterministic, cannot fail.
    - AdvancedAnalyzer sends the whole record to the analysis provider and
      uses its suggestions directly. When the provider fails for a record
      (error response, exception, timeout, malformed or empty output) that
      record alone is analyzed by its fallback BasicAnalyzer instead.

AnalysisOrchestrator runs one strategy across all selected records
concurrently and reports batch-level advisories.

Architecture:
    - Pure domain service; the provider is reached only through AnalysisProviderPort
    - Each record's analysis writes only its own result slot, so output order
      always follows the record selection order
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from rxreminders.domain.enums import AnalysisAdvisory, AnalysisStrategy
from rxreminders.domain.models import (
    AdvancedReminderSuggestion,
    AnalysisResponse,
    PrescriptionLine,
    SourceRecord,
)
from rxreminders.domain.ports import AnalysisProviderPort
from rxreminders.domain.services.frequency_interpreter import interpret

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_CONCURRENCY = 4


@dataclass(frozen=True)
class PreDraft:
    """One reminder candidate produced by an analyzer.

    Basic pre-drafts carry the prescription line they were parsed from;
    advanced pre-drafts carry the provider suggestion.
    """
    record: SourceRecord
    time_of_day: str
    strategy: AnalysisStrategy
    line: Optional[PrescriptionLine] = None
    suggestion: Optional[AdvancedReminderSuggestion] = None


class Analyzer(ABC):
    """Strategy interface: derive reminder candidates from one record."""

    strategy: AnalysisStrategy

    @abstractmethod
    async def run(self, record: SourceRecord) -> list[PreDraft]:
        """Analyze one record.

        Implementations must not raise for ordinary analysis failures.
        """
        pass

    async def run_tracked(self, record: SourceRecord) -> tuple[list[PreDraft], bool]:
        """Analyze one record and report whether it fell back to another analyzer."""
        return await self.run(record), False


class BasicAnalyzer(Analyzer):
    """Deterministic analysis from the prescription lines alone."""

    strategy = AnalysisStrategy.BASIC

    def analyze(self, record: SourceRecord) -> list[PreDraft]:
        pre_drafts = []
        for line in record.prescriptions:
            for time_of_day in interpret(line.frequency_text):
                pre_drafts.append(PreDraft(
                    record=record,
                    time_of_day=time_of_day,
                    strategy=AnalysisStrategy.BASIC,
                    line=line,
                ))
        return pre_drafts

    async def run(self, record: SourceRecord) -> list[PreDraft]:
        return self.analyze(record)


class AdvancedAnalyzer(Analyzer):
    """Provider-backed analysis that falls back per record.

    Parameters:
        provider: Analysis provider port
        fallback: Analyzer used when the provider fails (BasicAnalyzer by default)
        timeout_seconds: Upper bound for one provider call
    """

    strategy = AnalysisStrategy.ADVANCED

    def __init__(
        self,
        provider: AnalysisProviderPort,
        fallback: Optional[Analyzer] = None,
        timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS
    ):
        self.provider = provider
        self.fallback = fallback or BasicAnalyzer()
        self.timeout_seconds = timeout_seconds

    async def run(self, record: SourceRecord) -> list[PreDraft]:
        pre_drafts, _ = await self.run_tracked(record)
        return pre_drafts

    async def run_tracked(self, record: SourceRecord) -> tuple[list[PreDraft], bool]:
        suggestions = await self._request_suggestions(record)
        if suggestions is None:
            logger.warning(f"Advanced analysis unavailable for record {record.id}, using basic analysis")
            return await self.fallback.run(record), True

        return [
            PreDraft(
                record=record,
                time_of_day=suggestion.time,
                strategy=AnalysisStrategy.ADVANCED,
                suggestion=suggestion,
            )
            for suggestion in suggestions
        ], False

    async def _request_suggestions(self, record: SourceRecord) -> Optional[list[AdvancedReminderSuggestion]]:
        """Call the provider; None means the record must fall back."""
        try:
            response = await asyncio.wait_for(
                self.provider.analyze(record),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(f"Analysis provider timed out after {self.timeout_seconds}s for record {record.id}")
            return None
        except Exception as e:
            logger.warning(f"Analysis provider raised for record {record.id}: {type(e).__name__}: {e}")
            return None

        if not isinstance(response, AnalysisResponse):
            try:
                response = AnalysisResponse.model_validate(response)
            except PydanticValidationError as e:
                logger.warning(f"Malformed analysis response for record {record.id}: {e.error_count()} errors")
                return None

        if not response.success:
            logger.warning(f"Analysis provider failed for record {record.id}: {response.error}")
            return None

        if not response.reminders and record.prescriptions:
            logger.warning(f"Analysis provider returned no reminders for record {record.id}")
            return None

        return response.reminders


@dataclass
class AnalysisOutcome:
    """Result of analyzing a batch of records.

    Attributes:
        strategy: Strategy the user selected
        pre_drafts: Candidates in record selection order
        fallback_record_ids: Records analyzed with basic instead of advanced
        advisories: Batch-level advisories (informational, never errors)
    """
    strategy: AnalysisStrategy
    pre_drafts: list[PreDraft] = field(default_factory=list)
    fallback_record_ids: list[str] = field(default_factory=list)
    advisories: list[AnalysisAdvisory] = field(default_factory=list)

    @property
    def used_advanced(self) -> bool:
        return any(p.strategy == AnalysisStrategy.ADVANCED for p in self.pre_drafts)


class AnalysisOrchestrator:
    """Runs the selected analysis strategy across a batch of records.

    Parameters:
        provider: Analysis provider (required for a working advanced strategy)
        timeout_seconds: Per-record provider timeout
        max_concurrency: Maximum provider calls in flight

    Example Usage:
        ```python
        orchestrator = AnalysisOrchestrator(provider=llm_provider)
        outcome = await orchestrator.analyze(records, AnalysisStrategy.ADVANCED)
        if AnalysisAdvisory.FULL_FALLBACK in outcome.advisories:
            notify_user("AI analysis unavailable, basic analysis used")
        ```
    """

    def __init__(
        self,
        provider: Optional[AnalysisProviderPort] = None,
        timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    ):
        self.provider = provider
        self.timeout_seconds = timeout_seconds
        self.max_concurrency = max(1, max_concurrency)

    def analyzer_for(self, strategy: AnalysisStrategy) -> Analyzer:
        """Return the analyzer implementing a strategy."""
        strategy = AnalysisStrategy(strategy)
        if strategy == AnalysisStrategy.BASIC:
            return BasicAnalyzer()
        if self.provider is None:
            logger.warning("No analysis provider configured; advanced analysis will fall back to basic")
            return BasicAnalyzer()
        return AdvancedAnalyzer(self.provider, timeout_seconds=self.timeout_seconds)

    async def analyze(self, records: list[SourceRecord], strategy: AnalysisStrategy) -> AnalysisOutcome:
        """Analyze records with one strategy.

        Parameters:
            records: Selected records, in selection order
            strategy: Strategy chosen by the user

        Returns:
            AnalysisOutcome: Pre-drafts ordered by record selection, plus advisories
        """
        strategy = AnalysisStrategy(strategy)
        analyzer = self.analyzer_for(strategy)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        # Advanced selected but no provider: every record is a fallback
        provider_missing = strategy == AnalysisStrategy.ADVANCED and not isinstance(analyzer, AdvancedAnalyzer)

        async def run_one(record: SourceRecord) -> tuple[list[PreDraft], bool]:
            async with semaphore:
                pre_drafts, fell_back = await analyzer.run_tracked(record)
            return pre_drafts, fell_back or provider_missing

        logger.info(f"Analyzing {len(records)} record(s) with {strategy.value} strategy")
        per_record = await asyncio.gather(*(run_one(record) for record in records))

        outcome = AnalysisOutcome(strategy=strategy)
        for record, (pre_drafts, fell_back) in zip(records, per_record):
            outcome.pre_drafts.extend(pre_drafts)
            if fell_back:
                outcome.fallback_record_ids.append(record.id)

        if records and len(outcome.fallback_record_ids) == len(records):
            outcome.advisories.append(AnalysisAdvisory.FULL_FALLBACK)
            logger.warning("Advanced analysis failed for every record; basic analysis used for the whole batch")
        if not outcome.pre_drafts:
            outcome.advisories.append(AnalysisAdvisory.NO_PRESCRIPTIONS)

        logger.info(
            f"Analysis produced {len(outcome.pre_drafts)} candidate(s), "
            f"{len(outcome.fallback_record_ids)} record(s) fell back"
        )
        return outcome
