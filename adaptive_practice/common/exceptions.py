"""
Engine Exceptions

Expected "nothing to do" outcomes (an exhausted candidate pool, a cooldown,
too few answers to judge) are never exceptions; they are reported through
return values. The classes here cover misuse, bad configuration and stores
that cannot commit.
"""

from typing import Any, Dict, Optional


class BaseError(Exception):
    """Base class for all engine exceptions."""

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        """
        Initialize the exception.

        Args:
            message: Error message
            original_exception: Lower-level exception this one wraps
        """
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception

    def details(self) -> Dict[str, Any]:
        """Structured fields for logs and error payloads."""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        data = {"error": type(self).__name__, "message": self.message}
        data.update(self.details())
        return data


class ValidationError(BaseError):
    """A caller handed the engine data it cannot use."""

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None):
        super().__init__(f"Validation error: {message}")
        self.errors = errors or {}

    def details(self) -> Dict[str, Any]:
        return {"errors": self.errors}


class ConfigurationError(BaseError):
    """Settings failed to load or validate."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        original_exception: Optional[Exception] = None
    ):
        """
        Initialize the configuration error.

        Args:
            message: Error message
            config_key: Dotted path of the offending setting, when known
            original_exception: Parser or validation error being wrapped
        """
        super().__init__(f"Configuration error: {message}", original_exception)
        self.config_key = config_key

    def details(self) -> Dict[str, Any]:
        return {"config_key": self.config_key}


class NotFoundError(BaseError):
    """A lookup by id found nothing."""

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(f"{resource_type} with ID {resource_id} not found")
        self.resource_type = resource_type
        self.resource_id = resource_id

    def details(self) -> Dict[str, Any]:
        return {"resource_type": self.resource_type, "resource_id": self.resource_id}


class ConcurrentUpdateError(BaseError):
    """A tracker update kept losing compare-and-swap races."""

    def __init__(self, learner_id: str, topic_id: str, attempts: int):
        """
        Initialize the concurrent update error.

        Args:
            learner_id: Learner whose tracker could not be updated
            topic_id: Topic of the tracker
            attempts: Number of attempts made before giving up
        """
        super().__init__(
            f"Tracker ({learner_id}, {topic_id}) was modified concurrently; "
            f"gave up after {attempts} attempts"
        )
        self.learner_id = learner_id
        self.topic_id = topic_id
        self.attempts = attempts

    def details(self) -> Dict[str, Any]:
        return {"learner_id": self.learner_id, "topic_id": self.topic_id, "attempts": self.attempts}
