"""
Error taxonomy for the MathMind engine.

Every engine operation either returns a result or raises one of these. The
engine never logs; callers decide how each error is presented.
"""


class MathMindError(Exception):
    """Base exception for engine operations."""


# ============================================================================
# Lookup failures (client errors, never retried)
# ============================================================================


class NotFoundError(MathMindError):
    """Referenced entity does not exist."""


class TaskNotFoundError(NotFoundError):
    """No task graph is registered under the given ID."""


class AttemptNotFoundError(NotFoundError):
    """Attempt does not exist."""


class TopicNotFoundError(NotFoundError):
    """Topic does not exist."""


class ClassNotFoundError(NotFoundError):
    """Class does not exist or no class uses the invite code."""


# ============================================================================
# Submissions inconsistent with attempt state (client errors)
# ============================================================================


class ChoiceNotFoundError(MathMindError):
    """The node does not offer the submitted choice key."""


class StaleNodeError(MathMindError):
    """The submission targets a node other than the attempt's current node."""


class AlreadyCompletedError(MathMindError):
    """The attempt is completed; further submissions are rejected."""


class AlreadyEnrolledError(MathMindError):
    """The student is already a member of the class."""


class DuplicateError(MathMindError):
    """An entity with the same ID or unique value already exists."""


# ============================================================================
# Integrity and storage failures
# ============================================================================


class InvalidStateError(MathMindError):
    """Graph invariant violated or attempt cursor outside its graph."""


class GraphValidationError(InvalidStateError):
    """A task graph failed validation; errors lists every problem found."""

    def __init__(self, task: str, errors: list[str]):
        self.task = task
        self.errors = errors
        super().__init__(f"Invalid task graph '{task}': {'; '.join(errors)}")


class StorageUnavailableError(MathMindError):
    """Storage could not be reached within the caller's timeout."""
