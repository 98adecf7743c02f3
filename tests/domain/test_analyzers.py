"""Unit tests for the analysis strategies and orchestrator."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import make_record
from rxreminders.domain.enums import AnalysisAdvisory, AnalysisStrategy, Recurrence
from rxreminders.domain.models import AdvancedReminderSuggestion, AnalysisResponse, SourceRecord
from rxreminders.domain.ports import AnalysisProviderPort
from rxreminders.domain.services.analyzers import (
    AdvancedAnalyzer,
    AnalysisOrchestrator,
    BasicAnalyzer,
)
from rxreminders.domain.services.frequency_interpreter import interpret


def suggestion(name: str, time_of_day: str, **fields) -> AdvancedReminderSuggestion:
    return AdvancedReminderSuggestion(medication_name=name, dosage="1 tablet", time=time_of_day, **fields)


class ScriptedProvider(AnalysisProviderPort):
    """Provider returning a prepared response (or raising) per record id."""

    def __init__(self, responses: dict):
        self.responses = responses
        self.calls: list[str] = []

    async def analyze(self, record: SourceRecord) -> AnalysisResponse:
        self.calls.append(record.id)
        response = self.responses[record.id]
        if isinstance(response, Exception):
            raise response
        return response


class TestBasicAnalyzer:
    """Test suite for BasicAnalyzer."""

    def test_pre_draft_count_matches_interpreted_times(self, sample_records):
        """Test that each line yields one pre-draft per interpreted time."""
        analyzer = BasicAnalyzer()
        for record in sample_records:
            expected = sum(len(interpret(line.frequency_text)) for line in record.prescriptions)
            assert len(analyzer.analyze(record)) == expected

    def test_pre_drafts_follow_line_and_time_order(self):
        record = make_record("rec-1", ("A", "once daily"), ("B", "twice daily"))
        pre_drafts = BasicAnalyzer().analyze(record)

        assert [(p.line.drug_name, p.time_of_day) for p in pre_drafts] == [
            ("A", "08:00"),
            ("B", "08:00"),
            ("B", "20:00"),
        ]
        assert all(p.strategy == AnalysisStrategy.BASIC for p in pre_drafts)

    def test_record_without_prescriptions(self):
        assert BasicAnalyzer().analyze(SourceRecord(id="empty")) == []


class TestAdvancedAnalyzer:
    """Test suite for AdvancedAnalyzer."""

    @pytest.mark.asyncio
    async def test_uses_provider_suggestions(self):
        """Test that successful provider output is used as-is."""
        record = make_record("rec-1", ("Amoxicillin", "twice daily"))
        provider = AsyncMock(spec=AnalysisProviderPort)
        provider.analyze.return_value = AnalysisResponse.ok([
            suggestion("Amoxicillin", "07:00"),
            suggestion("Amoxicillin", "19:00"),
        ])

        pre_drafts = await AdvancedAnalyzer(provider).run(record)

        assert [p.time_of_day for p in pre_drafts] == ["07:00", "19:00"]
        assert all(p.strategy == AnalysisStrategy.ADVANCED for p in pre_drafts)
        provider.analyze.assert_awaited_once_with(record)

    @pytest.mark.asyncio
    async def test_failure_response_falls_back(self):
        record = make_record("rec-1", ("Amoxicillin", "twice daily"))
        provider = AsyncMock(spec=AnalysisProviderPort)
        provider.analyze.return_value = AnalysisResponse.failed("quota exceeded")

        pre_drafts = await AdvancedAnalyzer(provider).run(record)

        assert [p.time_of_day for p in pre_drafts] == ["08:00", "20:00"]
        assert all(p.strategy == AnalysisStrategy.BASIC for p in pre_drafts)

    @pytest.mark.asyncio
    async def test_exception_falls_back(self):
        record = make_record("rec-1", ("Amoxicillin", "once daily"))
        provider = AsyncMock(spec=AnalysisProviderPort)
        provider.analyze.side_effect = ConnectionError("network down")

        pre_drafts = await AdvancedAnalyzer(provider).run(record)

        assert len(pre_drafts) == 1
        assert pre_drafts[0].strategy == AnalysisStrategy.BASIC

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        """Test that a provider slower than the timeout is abandoned."""
        record = make_record("rec-1", ("Amoxicillin", "once daily"))

        async def slow_analyze(_record):
            await asyncio.sleep(5)
            return AnalysisResponse.ok([suggestion("Amoxicillin", "07:00")])

        provider = AsyncMock(spec=AnalysisProviderPort)
        provider.analyze.side_effect = slow_analyze

        pre_drafts = await AdvancedAnalyzer(provider, timeout_seconds=0.01).run(record)

        assert [p.strategy for p in pre_drafts] == [AnalysisStrategy.BASIC]

    @pytest.mark.asyncio
    async def test_malformed_response_falls_back(self):
        """Test that a response that does not validate is treated as failure."""
        record = make_record("rec-1", ("Amoxicillin", "once daily"))
        provider = AsyncMock(spec=AnalysisProviderPort)
        provider.analyze.return_value = {"success": True, "reminders": [{"medication_name": "X", "time": "7pm"}]}

        pre_drafts = await AdvancedAnalyzer(provider).run(record)

        assert [p.strategy for p in pre_drafts] == [AnalysisStrategy.BASIC]

    @pytest.mark.asyncio
    async def test_empty_success_falls_back_when_record_has_prescriptions(self):
        record = make_record("rec-1", ("Amoxicillin", "once daily"))
        provider = AsyncMock(spec=AnalysisProviderPort)
        provider.analyze.return_value = AnalysisResponse.ok([])

        pre_drafts = await AdvancedAnalyzer(provider).run(record)

        assert [p.strategy for p in pre_drafts] == [AnalysisStrategy.BASIC]

    @pytest.mark.asyncio
    async def test_provider_recurrence_is_carried(self):
        record = make_record("rec-1", ("Vitamin D", "once weekly"))
        provider = AsyncMock(spec=AnalysisProviderPort)
        provider.analyze.return_value = AnalysisResponse.ok([
            suggestion("Vitamin D", "09:00", recurrence=Recurrence.WEEKLY),
        ])

        pre_drafts = await AdvancedAnalyzer(provider).run(record)

        assert pre_drafts[0].suggestion.recurrence == Recurrence.WEEKLY


class TestAnalysisOrchestrator:
    """Test suite for AnalysisOrchestrator."""

    @pytest.mark.asyncio
    async def test_basic_strategy(self, sample_records):
        outcome = await AnalysisOrchestrator().analyze(sample_records, AnalysisStrategy.BASIC)

        assert len(outcome.pre_drafts) == 2 + 3 + 1
        assert outcome.advisories == []
        assert outcome.fallback_record_ids == []
        assert not outcome.used_advanced

    @pytest.mark.asyncio
    async def test_basic_strategy_never_calls_provider(self, sample_records):
        provider = AsyncMock(spec=AnalysisProviderPort)

        outcome = await AnalysisOrchestrator(provider=provider).analyze(sample_records, AnalysisStrategy.BASIC)

        provider.analyze.assert_not_awaited()
        assert all(p.strategy == AnalysisStrategy.BASIC for p in outcome.pre_drafts)

    @pytest.mark.asyncio
    async def test_empty_provider_success_without_prescriptions_is_not_a_fallback(self):
        """Test that a record the provider handled is not reported as a fallback."""
        provider = AsyncMock(spec=AnalysisProviderPort)
        provider.analyze.return_value = AnalysisResponse.ok([])

        outcome = await AnalysisOrchestrator(provider=provider).analyze(
            [SourceRecord(id="no-rx")], AnalysisStrategy.ADVANCED
        )

        provider.analyze.assert_awaited_once()
        assert outcome.fallback_record_ids == []
        assert AnalysisAdvisory.FULL_FALLBACK not in outcome.advisories
        assert AnalysisAdvisory.NO_PRESCRIPTIONS in outcome.advisories

    @pytest.mark.asyncio
    async def test_empty_advanced_batch(self):
        provider = AsyncMock(spec=AnalysisProviderPort)

        outcome = await AnalysisOrchestrator(provider=provider).analyze([], AnalysisStrategy.ADVANCED)

        assert outcome.fallback_record_ids == []
        assert AnalysisAdvisory.FULL_FALLBACK not in outcome.advisories

    @pytest.mark.asyncio
    async def test_run_tracked_reports_fallback(self):
        record = make_record("rec-1", ("Amoxicillin", "twice daily"))
        provider = AsyncMock(spec=AnalysisProviderPort)
        provider.analyze.return_value = AnalysisResponse.failed("service unavailable")

        pre_drafts, fell_back = await AdvancedAnalyzer(provider).run_tracked(record)

        assert fell_back
        assert len(pre_drafts) == 2

    @pytest.mark.asyncio
    async def test_provider_fails_for_one_record_only(self):
        """Test that A falls back to basic while B keeps advanced drafts."""
        record_a = make_record("A", ("Amoxicillin", "twice daily"))
        record_b = make_record("B", ("Metformin", "once daily"))
        provider = ScriptedProvider({
            "A": RuntimeError("provider error"),
            "B": AnalysisResponse.ok([suggestion("Metformin", "07:30")]),
        })

        outcome = await AnalysisOrchestrator(provider=provider).analyze(
            [record_a, record_b], AnalysisStrategy.ADVANCED
        )

        by_record = {}
        for pre_draft in outcome.pre_drafts:
            by_record.setdefault(pre_draft.record.id, set()).add(pre_draft.strategy)
        assert by_record == {"A": {AnalysisStrategy.BASIC}, "B": {AnalysisStrategy.ADVANCED}}
        assert outcome.fallback_record_ids == ["A"]
        assert AnalysisAdvisory.FULL_FALLBACK not in outcome.advisories

    @pytest.mark.asyncio
    async def test_full_fallback_advisory(self, sample_records):
        """Test that a batch-level advisory is raised when every record falls back."""
        provider = AsyncMock(spec=AnalysisProviderPort)
        provider.analyze.return_value = AnalysisResponse.failed("service unavailable")

        outcome = await AnalysisOrchestrator(provider=provider).analyze(sample_records, AnalysisStrategy.ADVANCED)

        assert AnalysisAdvisory.FULL_FALLBACK in outcome.advisories
        assert outcome.fallback_record_ids == ["rec-1", "rec-2"]
        assert len(outcome.pre_drafts) == 6

    @pytest.mark.asyncio
    async def test_advanced_without_provider_falls_back(self, sample_records):
        outcome = await AnalysisOrchestrator(provider=None).analyze(sample_records, AnalysisStrategy.ADVANCED)

        assert AnalysisAdvisory.FULL_FALLBACK in outcome.advisories
        assert all(p.strategy == AnalysisStrategy.BASIC for p in outcome.pre_drafts)

    @pytest.mark.asyncio
    async def test_output_follows_selection_order(self):
        """Test that concurrent analysis keeps record selection order."""
        records = [make_record(f"rec-{i}", (f"Drug{i}", "once daily")) for i in range(5)]

        async def analyze(record):
            # Later records finish first
            await asyncio.sleep(0.01 * (5 - int(record.id.split("-")[1])))
            return AnalysisResponse.ok([suggestion(record.prescriptions[0].drug_name, "09:00")])

        provider = AsyncMock(spec=AnalysisProviderPort)
        provider.analyze.side_effect = analyze

        outcome = await AnalysisOrchestrator(provider=provider, max_concurrency=5).analyze(
            records, AnalysisStrategy.ADVANCED
        )

        assert [p.record.id for p in outcome.pre_drafts] == [r.id for r in records]

    @pytest.mark.asyncio
    async def test_concurrency_limit(self):
        records = [make_record(f"rec-{i}", ("Drug", "once daily")) for i in range(6)]
        in_flight = 0
        peak = 0

        async def analyze(record):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return AnalysisResponse.ok([suggestion("Drug", "09:00")])

        provider = AsyncMock(spec=AnalysisProviderPort)
        provider.analyze.side_effect = analyze

        await AnalysisOrchestrator(provider=provider, max_concurrency=2).analyze(records, AnalysisStrategy.ADVANCED)

        assert peak == 2

    @pytest.mark.asyncio
    async def test_no_prescriptions_advisory(self):
        outcome = await AnalysisOrchestrator().analyze([SourceRecord(id="empty")], AnalysisStrategy.BASIC)

        assert outcome.pre_drafts == []
        assert AnalysisAdvisory.NO_PRESCRIPTIONS in outcome.advisories
