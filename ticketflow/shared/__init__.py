"""
Shared Kernel Module
====================

Generic infrastructure used across the application: structured logging
and FastAPI middleware.

DO NOT add ticket automation business logic to the shared kernel.
"""
