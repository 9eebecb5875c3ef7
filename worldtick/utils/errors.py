# worldtick/utils/errors.py
class WorldTickError(RuntimeError):
    """Root of every error raised by the tick engine."""


class LockContention(WorldTickError):
    """
    Another cycle holds the tick lease.
    Not an operational failure: the caller retries later.
    """

    def __init__(self, holder: str | None = None):
        self.holder = holder
        super().__init__("Another tick is currently running. Please wait.")


class PartialEntityFailure(WorldTickError):
    """
    One company / listing / loan / participant could not be processed.
    Logged and contained; the cycle continues.
    """

    def __init__(self, kind: str, entity_id, cause: Exception):
        self.kind = kind
        self.entity_id = entity_id
        self.cause = cause
        super().__init__(f"{kind} {entity_id} failed: {cause!r}")


class FatalCycleFailure(WorldTickError):
    """
    Unrecoverable error inside a step. Aborts the cycle; the lease is
    still released.
    """


class ReadBudgetExceeded(FatalCycleFailure):
    """A single transaction read more documents than the store allows."""

    def __init__(self, name: str, reads: int, ceiling: int):
        self.name = name
        self.reads = reads
        self.ceiling = ceiling
        super().__init__(f"transaction '{name}' read {reads} documents (ceiling {ceiling})")


class ValidationFailure(WorldTickError):
    """
    A computed quantity is non-finite, non-positive or out of domain.
    The offending operation is skipped.
    """


class UserInputError(RuntimeError):
    """
    Raised for invalid caller-provided input (symbols, share counts, config).
    Should NOT print traceback.
    """


class TradeRejected(UserInputError):
    """A direct buy/sell could not be executed."""
