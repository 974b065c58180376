"""
Classifier Heuristics
=====================

Pure keyword scans behind the simulated agents.

All checks are case-insensitive substring matches evaluated in a
fixed priority order; the first match wins.
"""

from typing import List, Optional, Sequence, Tuple, Union

from ticketflow.config import Priority, Severity


UNKNOWN_ENVIRONMENT = "Unknown"
DEFAULT_IMPACT = "Degraded experience"
SERVICE_UNAVAILABLE = "Service unavailable"

ENVIRONMENT_RULES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("windows",), "Windows"),
    (("mac",), "macOS"),
    (("linux",), "Linux"),
    (("chrome",), "Chrome"),
    (("firefox",), "Firefox"),
)

# "outage" outranks payment so an outage on a payment flow reads as unavailable
IMPACT_RULES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("outage",), SERVICE_UNAVAILABLE),
    (("payment", "billing"), "Revenue impact"),
    (("login", "auth"), "Access blocked"),
    (("down",), SERVICE_UNAVAILABLE),
)

ROUTING_RULES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("billing", "payment"), "billing"),
    (("auth", "login"), "auth"),
    (("infra", "outage"), "infra"),
    (("ui", "frontend"), "frontend"),
)
DEFAULT_TEAM = "backend"

KNOWN_DUPLICATE_ID = 8142
KNOWN_DUPLICATE_CONFIDENCE = 0.86

SEVERITY_TO_PRIORITY = {
    Severity.S1: Priority.CRITICAL,
    Severity.S2: Priority.HIGH,
    Severity.S3: Priority.MEDIUM,
}


def _first_match(text: str, rules, default: str) -> str:
    lower = (text or "").lower()
    for keywords, label in rules:
        if any(keyword in lower for keyword in keywords):
            return label
    return default


def infer_environment(text: str) -> str:
    """Guess the reporter's platform from the text."""
    return _first_match(text, ENVIRONMENT_RULES, UNKNOWN_ENVIRONMENT)


def extract_impact(text: str) -> str:
    """Categorize the business impact described in the text."""
    return _first_match(text, IMPACT_RULES, DEFAULT_IMPACT)


def detect_duplicate(text: str) -> Tuple[Optional[int], float]:
    """
    Duplicate hint for the text.

    Returns:
        (candidate ticket id, confidence); (None, 0.0) when nothing matches
    """
    if "login" in (text or "").lower():
        return KNOWN_DUPLICATE_ID, KNOWN_DUPLICATE_CONFIDENCE
    return None, 0.0


def assess_severity(text: str, impact: Optional[str]) -> Tuple[Severity, float]:
    """
    Severity and SLA risk for the text.

    Returns:
        (severity, sla_risk)
    """
    lower = (text or "").lower()
    if "outage" in lower or impact == SERVICE_UNAVAILABLE:
        return Severity.S1, 0.85
    if "payment" in lower or "billing" in lower:
        return Severity.S2, 0.65
    return Severity.S3, 0.30


def route_ticket(text: str) -> str:
    """Owning team for the text."""
    return _first_match(text, ROUTING_RULES, DEFAULT_TEAM)


def infer_priority(draft) -> Priority:
    """Priority implied by the draft's severity."""
    problem = getattr(draft, "problem", "") or ""
    impact = getattr(draft, "impact", "") or ""
    severity, _ = assess_severity(problem, impact)
    return SEVERITY_TO_PRIORITY.get(severity, Priority.LOW)


def team_label(team: str) -> str:
    return f"{team[:1].upper()}{team[1:]} Team"


def infer_assignees(draft_or_text: Union[str, object, None]) -> List[str]:
    """Default assignee labels, e.g. ["Billing Team"]."""
    if isinstance(draft_or_text, str):
        text = draft_or_text
    else:
        text = getattr(draft_or_text, "problem", "") or ""
    return [team_label(route_ticket(text))]
