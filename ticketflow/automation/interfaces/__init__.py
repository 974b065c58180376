"""
Automation Interfaces Layer
===========================

Interface adapters (controllers) for the ticket automation module.

Contains:
- Controllers: FastAPI route handlers
"""

from ticketflow.automation.interfaces.controllers import router as tickets_router
from ticketflow.automation.interfaces.controllers import agents_router

__all__ = ["tickets_router", "agents_router"]
