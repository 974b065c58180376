"""
Automation Value Objects
========================

Immutable value objects for the automation domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

from dataclasses import dataclass


ESCALATION_THRESHOLD = 0.70


@dataclass(frozen=True)
class EscalationDecision:
    """Outcome of the escalation policy."""
    escalate: bool
    message: str


class EscalationPolicy:
    """
    Pure escalation rule over SLA risk.

    Stateless utility class - all escalation logic in one place.
    """

    ESCALATE_MESSAGE = "SLA risk above threshold. Auto-page on-call and raise comms urgency."
    NO_ESCALATION_MESSAGE = "No escalation required."

    @staticmethod
    def evaluate(sla_risk: float, threshold: float = ESCALATION_THRESHOLD) -> EscalationDecision:
        """
        Decide whether a verdict's SLA risk needs escalation.

        Strictly greater than the threshold escalates; the threshold
        itself does not.
        """
        if sla_risk > threshold:
            return EscalationDecision(True, EscalationPolicy.ESCALATE_MESSAGE)
        return EscalationDecision(False, EscalationPolicy.NO_ESCALATION_MESSAGE)


def escalate(sla_risk: float) -> EscalationDecision:
    """Apply the default escalation policy."""
    return EscalationPolicy.evaluate(sla_risk)
