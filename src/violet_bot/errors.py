"""
Error taxonomy.

PreconditionError / IntegrationError / EntryValidationError are fatal to the
current call and propagate to the dispatcher or reconciler. A running job is
not an error; it is reported as Status.UNDONE.
"""

from __future__ import annotations


class BotError(Exception):
    """Base class for errors raised by the bot core."""


class PreconditionError(BotError):
    """A referenced upstream resource (image, prior entry) does not exist."""


class IntegrationError(BotError):
    """The external job system returned a structurally incomplete response."""


class EntryValidationError(BotError):
    """A persisted entry does not match its declared schema."""


class ArgumentError(BotError):
    """Command arguments do not match the command's argument schema."""


class UnsupportedCommandError(BotError):
    def __init__(self, name: str, known: tuple[str, ...] = ()) -> None:
        super().__init__(f"unsupported command: {name}")
        self.name = name
        self.known = known


class EntryNotFoundError(BotError):
    def __init__(self, uuid: str) -> None:
        super().__init__(f"entry not found: {uuid}")
        self.uuid = uuid


class StoreError(BotError):
    """The entry store failed to read or write."""


class ReconcileTimeoutError(BotError):
    """A reconciliation pass exceeded its time budget and was abandoned."""


class OutputConflictError(BotError):
    """A supplementary build output was already recorded with another value."""
