import asyncio

import pytest

from ticketflow.automation.application import (
    DraftBuilder,
    ITextExtractor,
    clarify,
    debate,
    heuristic_draft,
    propose_resolution,
)
from ticketflow.config import Severity
from ticketflow.core import LLMException


class StaticExtractor(ITextExtractor):
    def __init__(self, fields):
        self.fields = fields
        self.calls = 0

    async def extract(self, raw_text):
        self.calls += 1
        return self.fields


class SlowExtractor(ITextExtractor):
    async def extract(self, raw_text):
        await asyncio.sleep(5)
        return {"impact": "never"}


class BrokenExtractor(ITextExtractor):
    async def extract(self, raw_text):
        raise LLMException("provider unavailable")


class CrashingExtractor(ITextExtractor):
    async def extract(self, raw_text):
        raise RuntimeError("extractor bug")


class TestDraftBuilder:

    @pytest.mark.parametrize("raw_text", [
        "x",
        "Checkout payment is failing for all users, outage since 9am",
        "a" * 5000,
        "Ünïcödé löğïn fäïlürë on mac " * 20,
    ])
    async def test_heuristic_draft_bounds(self, raw_text):
        draft = await DraftBuilder().build(raw_text)
        assert len(draft.problem) <= 140
        assert all(0.0 <= score <= 1.0 for score in draft.confidence.values())

    async def test_heuristic_fields(self):
        draft = await DraftBuilder().build("Chrome checkout shows billing error")
        assert draft.environment == "Chrome"
        assert draft.impact == "Revenue impact"
        assert draft.reproduction == "User reported issue, steps pending."
        assert draft.user_intent == "Resolve and confirm service health."
        assert draft.confidence == {"environment": 0.42, "impact": 0.50}
        assert draft.evidence == {"environment": "Keyword scan", "impact": "Keyword scan"}

    async def test_extracted_fields_override_keyword_scan(self):
        extractor = StaticExtractor({
            "problem": "p" * 300,
            "reproduction": "Open checkout and pay with a saved card",
            "confidence": {"environment": 0.9, "impact": 0.8},
        })
        draft = await DraftBuilder(extractor).build("payment fails on windows")

        assert extractor.calls == 1
        assert draft.problem == "p" * 140
        assert draft.reproduction == "Open checkout and pay with a saved card"
        assert draft.environment == "Windows"
        assert draft.confidence == {"environment": 0.9, "impact": 0.8}

    async def test_timeout_falls_back(self):
        builder = DraftBuilder(SlowExtractor(), timeout_seconds=0.01)
        draft = await builder.build("site is down")
        assert draft == heuristic_draft("site is down")

    async def test_extractor_error_falls_back(self):
        draft = await DraftBuilder(BrokenExtractor()).build("login broken")
        assert draft == heuristic_draft("login broken")

    async def test_unexpected_extractor_error_falls_back(self, caplog):
        draft = await DraftBuilder(CrashingExtractor()).build("login broken")

        assert draft == heuristic_draft("login broken")
        assert "Draft extraction crashed" in caplog.text

    @pytest.mark.parametrize("fields", [
        {"confidence": {"impact": 1.5}},
        {"severity": "S1"},
    ])
    async def test_invalid_fields_fall_back(self, fields):
        draft = await DraftBuilder(StaticExtractor(fields)).build("billing issue")
        assert draft == heuristic_draft("billing issue")

    async def test_empty_extraction_keeps_heuristic(self):
        draft = await DraftBuilder(StaticExtractor(None)).build("billing issue")
        assert draft == heuristic_draft("billing issue")

    def test_extraction_disabled_by_default(self):
        assert DraftBuilder().extraction_enabled is False


class TestClarify:

    def test_questions_for_missing_information(self):
        questions = clarify(heuristic_draft("it is broken"))
        assert questions == [
            "Which OS and app version are you using?",
            "Can you share the exact steps to reproduce?",
        ]

    def test_all_three_questions(self):
        draft = heuristic_draft("it is broken").with_overrides(impact="")
        assert len(clarify(draft)) == 3
        assert clarify(draft)[2] == "How many users or teams are impacted?"

    def test_fallback_question(self):
        draft = heuristic_draft("linux box").with_overrides(reproduction="Run the sync job twice")
        assert clarify(draft) == ["Any recent changes before the issue started?"]


class TestDebate:

    @pytest.mark.parametrize("title", ["outage", "Partial OUTAGE in eu", "login outage"])
    def test_outage_is_s1(self, title):
        verdict = debate(title)
        assert verdict.severity == Severity.S1
        assert verdict.sla_risk == 0.85

    def test_transcript_shape(self):
        verdict = debate("Login fails", heuristic_draft("Cannot login on mac"))

        agents = [entry.agent for entry in verdict.transcript]
        assert agents == [
            "Duplicate Detective Agent",
            "Severity + SLA Risk Agent",
            "Routing Agent",
            "Manager Agent",
        ]
        assert len({entry.id for entry in verdict.transcript}) == 4
        assert verdict.transcript[0].message == "Potential duplicate of #8142 (0.86)"
        assert verdict.transcript[0].evidence == "Keyword overlap"
        assert verdict.transcript[1].evidence == "Access blocked"
        assert verdict.transcript[2].message == "Route to auth team. Automation lane: no"
        assert verdict.duplicate_of == 8142
        assert verdict.requires_human is True
        assert verdict.status == "triaged"

    def test_without_draft_uses_unknown_impact(self):
        verdict = debate("typo on settings page")
        assert verdict.severity == Severity.S3
        assert verdict.transcript[1].evidence == "Unknown impact"
        assert verdict.transcript[0].message == "No strong duplicate signal"
        assert verdict.duplicate_of is None

    def test_scans_problem_not_title(self):
        verdict = debate("Login page problem", heuristic_draft("page renders blank on chrome"))

        assert verdict.duplicate_of is None
        assert verdict.team == "backend"
        assert verdict.transcript[0].message == "No strong duplicate signal"

    def test_empty_problem_falls_back_to_title(self):
        draft = heuristic_draft("placeholder").with_overrides(problem="")

        verdict = debate("Login outage", draft)

        assert verdict.duplicate_of == 8142
        assert verdict.severity == Severity.S1

    def test_is_deterministic_apart_from_ids(self):
        first = debate("billing", heuristic_draft("billing wrong"))
        second = debate("billing", heuristic_draft("billing wrong"))
        assert [e.message for e in first.transcript] == [e.message for e in second.transcript]


class TestResolution:

    def test_uses_draft_problem(self):
        text = propose_resolution("Title", heuristic_draft("Checkout payment failing"))
        assert text.startswith("Workaround now: capture logs and confirm the affected endpoints.")
        assert text.endswith("Summary: Checkout payment failing")

    def test_falls_back_to_title(self):
        assert propose_resolution("Only a title").endswith("Summary: Only a title")
