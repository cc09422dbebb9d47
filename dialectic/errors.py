"""Error taxonomy for the coordination core."""


class DialecticError(Exception):
    """Base class for coordination errors."""


class ValidationError(DialecticError, ValueError):
    """A message, payload or field update is malformed."""


class NotFoundError(DialecticError, KeyError):
    """An unknown debate or insight id was referenced."""

    def __init__(self, kind: str, item_id: str):
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"{kind} not found: {item_id}")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return f"{self.kind} not found: {self.item_id}"


class CapacityExceededError(DialecticError):
    """An immediate debate request arrived while the active cap is reached."""

    def __init__(self, limit: int, what: str = "active debates"):
        self.limit = limit
        super().__init__(f"Maximum number of {what} ({limit}) exceeded")


class InvalidPhaseError(DialecticError):
    """A debate round was recorded for a phase other than the current one."""

    def __init__(self, debate_id: str, expected: str, got: str):
        self.debate_id = debate_id
        self.expected = expected
        self.got = got
        super().__init__(
            f"Debate {debate_id} is in phase {expected!r}, cannot record {got!r}"
        )


class ProcessingError(DialecticError):
    """A worker failed while processing a task."""


class PersistenceWarning(UserWarning):
    """A durable-log write failed; the in-memory transition still stands."""
