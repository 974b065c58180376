"""
Automation Module
=================

Bounded Context for automated ticket triage.

Responsibilities:
- Turn raw reports into structured drafts
- Run the simulated agent debate (duplicates, severity, routing)
- Apply the escalation policy and halt for human approval
- Propose resolutions and keep the audit trail consistent
"""

__version__ = "1.0.0"
