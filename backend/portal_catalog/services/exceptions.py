"""
Domain exceptions for the service layer.

These exceptions are raised by services and converted into HTTP responses
by the handlers registered in main.py.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(ServiceError):
    """Entity not found."""

    def __init__(self, entity: str, identifier: str | None = None):
        self.entity = entity
        self.identifier = identifier
        message = f"{entity} not found"
        if identifier:
            message = f"{entity} with identifier '{identifier}' not found"
        super().__init__(message)


class JobAlreadyRunningError(ServiceError):
    """A trigger was refused because the same job is in progress."""

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Job '{job_name}' is already running")
