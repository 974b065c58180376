"""
ticketflow
==========

Support ticket automation: intake drafts, simulated agent triage,
escalation policy and an approval gate in front of resolution.
"""

__version__ = "1.0.0"
