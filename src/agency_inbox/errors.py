"""Error taxonomy for the inbox workspace.

Validation errors are raised before any collaborator call. I/O errors
carry the collaborator's message unchanged; there is no retry loop.
"""

from __future__ import annotations

from typing import Any


class InboxError(Exception):
    """Base class for all inbox workspace errors."""


class FetchFailed(InboxError):
    """A collaborator read failed."""


class FetchCancelled(InboxError):
    """A fetch was aborted by a caller-supplied signal."""


class UnresolvedActor(InboxError):
    """No actor identity is available for a mutating action."""

    def __init__(self, message: str = "An actor identity is required.") -> None:
        super().__init__(message)


class InvalidInput(InboxError, ValueError):
    """A required field is missing or a value is out of range."""


class InvalidAssignment(InvalidInput):
    """An assignment was requested without a usable assignee."""


class WriteFailed(InboxError):
    """A collaborator mutation failed. The message is passed through."""


class PartialThreadCreation(WriteFailed):
    """The thread was created but its initial message was not sent.

    ``thread`` holds the created thread so the caller can retry the reply.
    """

    def __init__(self, message: str, thread: Any) -> None:
        super().__init__(message)
        self.thread = thread


class PartialSavedReplyDeletion(WriteFailed):
    """The saved reply was deleted but the default did not move off it.

    ``reply_id`` names the deleted reply. The workspace has already been
    refreshed, so its preferences still show the dangling default.
    """

    def __init__(self, message: str, reply_id: str) -> None:
        super().__init__(message)
        self.reply_id = reply_id
