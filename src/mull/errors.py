"""Exceptions raised by the matter store.

Every error carries a short ``kind`` string so the CLI can report it in a
machine-readable payload without matching on class names.
"""

from __future__ import annotations


class MullError(Exception):
    """Base class for all store errors."""

    kind = "error"


class NotFoundError(MullError, LookupError):
    kind = "not-found"

    def __init__(self, ident: str, what: str = "matter") -> None:
        super().__init__(f"{what} not found: {ident}")
        self.ident = ident


class DuplicateEntryError(MullError):
    kind = "duplicate-entry"

    def __init__(self, ident: str) -> None:
        super().__init__(f"already in docket: {ident}")
        self.ident = ident


class AfterIDNotFoundError(MullError):
    kind = "after-id-not-found"

    def __init__(self, ident: str) -> None:
        super().__init__(f"after-id not found in docket: {ident}")
        self.ident = ident


class InvalidRelationTypeError(MullError, ValueError):
    kind = "invalid-relation-type"

    def __init__(self, rel_type: str) -> None:
        super().__init__(f"invalid relationship type: {rel_type} (expected relates, blocks, needs or parent)")
        self.rel_type = rel_type


class InvalidStatusError(MullError, ValueError):
    kind = "invalid-status"

    def __init__(self, status: str) -> None:
        super().__init__(f"invalid status: {status} (expected raw, refined, planned, done or dropped)")
        self.status = status


class DecodeError(MullError):
    """Frontmatter block is present but is not a YAML mapping."""

    kind = "malformed-metadata"


class LinkingFailedError(MullError):
    """Second write of a link/unlink failed.

    ``rolled_back`` names the matter whose snapshot was put back. It is empty
    when the first matter needed no write, or when restoring it failed too
    (``restore_error`` then holds that failure). The underlying error is
    chained as ``__cause__``.
    """

    kind = "linking-failed"

    def __init__(
        self,
        action: str,
        rolled_back: str,
        cause: BaseException,
        restore_error: BaseException | None = None,
    ) -> None:
        if restore_error is not None:
            msg = f"{action} failed: {cause}; restoring the first matter also failed: {restore_error}"
        elif rolled_back:
            msg = f"{action} failed, rolled back {rolled_back}: {cause}"
        else:
            msg = f"{action} failed: {cause}"
        super().__init__(msg)
        self.rolled_back = rolled_back
        self.restore_error = restore_error


class IDExhaustedError(MullError):
    kind = "id-exhausted"

    def __init__(self, attempts: int) -> None:
        super().__init__(f"could not generate unique ID after {attempts} attempts")
        self.attempts = attempts


class ReadOnlyFieldError(MullError, ValueError):
    """Field cannot be set through metadata updates (dates, relationship lists)."""

    kind = "read-only-field"

    def __init__(self, key: str, hint: str = "") -> None:
        msg = f"field cannot be set directly: {key}"
        if hint:
            msg = f"{msg} ({hint})"
        super().__init__(msg)
        self.key = key


class SelfLinkError(MullError, ValueError):
    kind = "self-link"

    def __init__(self, ident: str) -> None:
        super().__init__(f"cannot link a matter to itself: {ident}")
        self.ident = ident
