"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from ticketflow.core.exceptions import (
    ApplicationException,
    DomainException,
    InvalidStateTransitionException,
    RepositoryException,
    ConcurrencyConflictException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    LLMException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "InvalidStateTransitionException",
    "RepositoryException",
    "ConcurrencyConflictException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "LLMException",
]
