"""Diagram error types with user-facing notification text.

These errors are raised when a graph operation or a document load violates
one of the engine's rules. Every error can format itself as a notification
the collaborator shows as a toast; the engine converts them into outcomes so
none of them escapes a public event handler.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import get_close_matches
from enum import StrEnum


class NotificationLevel(StrEnum):
    """Severity of a user notification."""

    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    """A message for the collaborator's toast display."""

    level: NotificationLevel
    message: str


class DiagramError(Exception):
    """Base class for engine rule violations.

    Subclasses set ``level`` and implement ``to_notification()``.
    """

    level: NotificationLevel = NotificationLevel.ERROR

    def to_notification(self) -> Notification:
        """Format the error as a notification for the user."""
        return Notification(self.level, str(self))


@dataclass
class NodeNotFoundError(DiagramError):
    """Raised when an operation references a node that does not exist.

    Attributes:
        node_id: The ID that was referenced.
        available: IDs that exist, used to suggest likely typos.
        context: Description of where the reference occurred.
    """

    node_id: str
    available: list[str] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        msg = f"Node '{self.node_id}' not found"
        if self.context:
            msg += f" ({self.context})"
        super().__init__(msg)

    def suggestions(self) -> list[str]:
        """Existing IDs close to the missing one."""
        return get_close_matches(self.node_id, self.available, n=3, cutoff=0.6)

    def to_notification(self) -> Notification:
        message = str(self)
        suggestions = self.suggestions()
        if suggestions:
            message += f". Did you mean: {', '.join(suggestions)}?"
        return Notification(self.level, message)


@dataclass
class InvalidConnectionError(DiagramError):
    """Raised when a connect gesture cannot produce an edge.

    Attributes:
        source: Requested source node.
        target: Requested target node.
        reason: ``self_loop``, ``missing_endpoint`` or ``duplicate``.
    """

    source: str
    target: str
    reason: str

    level = NotificationLevel.WARNING

    def __post_init__(self) -> None:
        super().__init__(f"Cannot connect '{self.source}' to '{self.target}': {self.reason}")

    def to_notification(self) -> Notification:
        messages = {
            "self_loop": "A node cannot be connected to itself.",
            "duplicate": "These handles are already connected.",
            "missing_endpoint": "Both ends of a connection must be existing nodes.",
        }
        return Notification(self.level, messages.get(self.reason, str(self)))


@dataclass
class ConstraintViolationError(DiagramError):
    """Raised when a drag would place a node above a senior neighbor.

    Attributes:
        node_id: The node being moved.
        blocking_ids: Connected senior nodes the move would rise above.
    """

    node_id: str
    blocking_ids: list[str] = field(default_factory=list)

    level = NotificationLevel.WARNING

    def __post_init__(self) -> None:
        blockers = ", ".join(f"'{b}'" for b in self.blocking_ids)
        super().__init__(f"Node '{self.node_id}' cannot move above senior node(s) {blockers}")

    def to_notification(self) -> Notification:
        return Notification(
            self.level,
            "Move blocked: a node cannot be placed above a higher-ranked node it is linked to.",
        )


@dataclass
class MalformedDocumentError(DiagramError):
    """Raised when a session document cannot be parsed or lacks its structure.

    Attributes:
        reason: What is wrong with the document.
    """

    reason: str

    def __post_init__(self) -> None:
        super().__init__(f"Malformed document: {self.reason}")

    def to_notification(self) -> Notification:
        return Notification(
            self.level,
            f"Failed to load canvas: {self.reason}. Please check the file format.",
        )


@dataclass
class InvalidNodeError(DiagramError):
    """Raised by a strict load when a node entry is unusable.

    Attributes:
        index: Position of the entry in the document's ``nodes`` array.
        reason: What is missing or wrong.
    """

    index: int
    reason: str

    def __post_init__(self) -> None:
        super().__init__(f"Invalid node at index {self.index}: {self.reason}")

    def to_notification(self) -> Notification:
        return Notification(self.level, f"Failed to load canvas: {self}.")


@dataclass
class StorageUnavailableError(DiagramError):
    """Raised when the persisted key-value store cannot be read or written.

    Attributes:
        key: The storage slot being accessed.
        reason: Underlying failure.
    """

    key: str
    reason: str

    level = NotificationLevel.WARNING

    def __post_init__(self) -> None:
        super().__init__(f"Storage unavailable for '{self.key}': {self.reason}")

    def to_notification(self) -> Notification:
        return Notification(
            self.level,
            "Storage is unavailable; changes are kept in memory only.",
        )


@dataclass(frozen=True)
class VersionMismatchWarning:
    """Recoverable load warning: the document declares another format version.

    Attributes:
        found: Version declared by the document (None when absent).
        expected: Version this engine writes.
    """

    found: str | None
    expected: str

    def to_notification(self) -> Notification:
        found = self.found or "unversioned"
        return Notification(
            NotificationLevel.WARNING,
            f"Document version {found} differs from {self.expected}; imported anyway.",
        )
