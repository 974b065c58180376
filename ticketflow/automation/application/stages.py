"""
Automation Stages
=================

The fixed pipeline stages run by the automation controller:

- Intake: DraftBuilder turns raw text into a Draft
- Clarify: questions for missing information
- Debate: simulated agents produce a Verdict and transcript
- Resolution: narrative proposed once a ticket may be closed

Everything except the optional text extraction call is synchronous
and deterministic.
"""

import asyncio
import uuid
from typing import List, Optional

from ticketflow.automation.application.ports import ITextExtractor, NullTextExtractor
from ticketflow.automation.domain import Draft, PROBLEM_MAX_LENGTH, TranscriptEntry, Verdict
from ticketflow.automation.domain.heuristics import (
    UNKNOWN_ENVIRONMENT,
    assess_severity,
    detect_duplicate,
    extract_impact,
    infer_environment,
    route_ticket,
)
from ticketflow.core import LLMException
from ticketflow.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


PLACEHOLDER_REPRODUCTION = "User reported issue, steps pending."
PLACEHOLDER_USER_INTENT = "Resolve and confirm service health."
KEYWORD_SCAN = "Keyword scan"
UNKNOWN_IMPACT = "Unknown impact"

MAX_QUESTIONS = 3
FALLBACK_QUESTION = "Any recent changes before the issue started?"

DUPLICATE_AGENT = "Duplicate Detective Agent"
SEVERITY_AGENT = "Severity + SLA Risk Agent"
ROUTING_AGENT = "Routing Agent"
MANAGER_AGENT = "Manager Agent"


# ========== Intake ==========

def heuristic_draft(raw_text: str) -> Draft:
    """Draft built from keyword scans only."""
    return Draft(
        problem=raw_text[:PROBLEM_MAX_LENGTH],
        environment=infer_environment(raw_text),
        reproduction=PLACEHOLDER_REPRODUCTION,
        impact=extract_impact(raw_text),
        user_intent=PLACEHOLDER_USER_INTENT,
        confidence={"environment": 0.42, "impact": 0.50},
        evidence={"environment": KEYWORD_SCAN, "impact": KEYWORD_SCAN},
    )


class DraftBuilder:
    """
    Intake stage.

    Builds the heuristic draft and, when a text extractor is configured,
    lets its fields override the heuristic ones. Extraction failures and
    timeouts fall back to the heuristic draft; ``build`` never raises.
    """

    def __init__(
        self,
        extractor: Optional[ITextExtractor] = None,
        timeout_seconds: float = 10.0
    ):
        self._extractor = extractor or NullTextExtractor()
        self._timeout = timeout_seconds

    @property
    def extraction_enabled(self) -> bool:
        return self._extractor.enabled

    async def build(self, raw_text: str) -> Draft:
        """
        Turn raw ticket text into a Draft.

        Args:
            raw_text: Non-empty report text (validated by the caller)

        Returns:
            Draft, refined by the extractor when it succeeds
        """
        draft = heuristic_draft(raw_text)

        if not self._extractor.enabled:
            return draft

        try:
            fields = await asyncio.wait_for(
                self._extractor.extract(raw_text),
                timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Draft extraction timed out, using keyword draft",
                extra={"timeout_seconds": self._timeout}
            )
            return draft
        except LLMException as e:
            logger.warning(
                "Draft extraction failed, using keyword draft",
                extra={"error": e.message}
            )
            return draft
        except Exception as e:
            logger.warning(
                "Draft extraction crashed, using keyword draft",
                extra={"error": str(e), "error_type": type(e).__name__}
            )
            return draft

        if not fields:
            return draft

        try:
            return draft.with_overrides(**fields)
        except (TypeError, ValueError) as e:
            logger.warning(
                "Extracted draft rejected, using keyword draft",
                extra={"error": str(e)}
            )
            return draft


# ========== Clarify ==========

def clarify(draft: Draft) -> List[str]:
    """
    Questions that would fill the draft's gaps.

    Returns:
        At most three questions; a generic one when nothing is missing
    """
    questions = []
    if not draft.environment or draft.environment == UNKNOWN_ENVIRONMENT:
        questions.append("Which OS and app version are you using?")
    if not draft.reproduction or "pending" in draft.reproduction:
        questions.append("Can you share the exact steps to reproduce?")
    if not draft.impact:
        questions.append("How many users or teams are impacted?")

    if not questions:
        questions.append(FALLBACK_QUESTION)

    return questions[:MAX_QUESTIONS]


# ========== Debate ==========

def _entry_id() -> str:
    return uuid.uuid4().hex


def debate(ticket_title: str, draft: Optional[Draft] = None) -> Verdict:
    """
    Run the simulated agents over a ticket.

    The scanned text is the draft's problem summary, or the ticket
    title when there is no draft or its problem is empty.

    Returns:
        Verdict with a four entry transcript; always requires a human
    """
    base_text = draft.problem if draft and draft.problem else (ticket_title or "")
    impact = draft.impact if draft and draft.impact else UNKNOWN_IMPACT

    duplicate_of, duplicate_confidence = detect_duplicate(base_text)
    severity, sla_risk = assess_severity(base_text, impact)
    team = route_ticket(base_text)

    transcript = [
        TranscriptEntry(
            id=_entry_id(),
            agent=DUPLICATE_AGENT,
            message=(
                f"Potential duplicate of #{duplicate_of} ({duplicate_confidence})"
                if duplicate_of else "No strong duplicate signal"
            ),
            evidence="Keyword overlap" if duplicate_of else "None",
        ),
        TranscriptEntry(
            id=_entry_id(),
            agent=SEVERITY_AGENT,
            message=f"Severity {severity.value} with SLA risk {sla_risk}",
            evidence=impact,
        ),
        TranscriptEntry(
            id=_entry_id(),
            agent=ROUTING_AGENT,
            message=f"Route to {team} team. Automation lane: no",
        ),
        TranscriptEntry(
            id=_entry_id(),
            agent=MANAGER_AGENT,
            message="Consensus reached with evidence from draft keywords.",
        ),
    ]

    # TODO: derive requires_human from verdict confidence once product signs off on an auto-resolve lane
    return Verdict(
        severity=severity,
        sla_risk=sla_risk,
        team=team,
        transcript=transcript,
        status="triaged",
        requires_human=True,
        duplicate_of=duplicate_of,
        duplicate_confidence=duplicate_confidence,
    )


# ========== Resolution ==========

def propose_resolution(ticket_title: str, draft: Optional[Draft] = None) -> str:
    """Resolution narrative for a ticket."""
    core = (draft.problem if draft and draft.problem else None) or ticket_title
    return (
        "Workaround now: capture logs and confirm the affected endpoints. "
        "Escalation next: assign to on-call if metrics stay degraded. "
        "Summary: " + (core or "")
    )
