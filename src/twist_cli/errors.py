from __future__ import annotations

from collections.abc import Sequence

PRIVATE_CHANNELS_FLAG = "--include-private-channels"
PRIVATE_CHANNELS_ENV = "TWIST_INCLUDE_PRIVATE_CHANNELS"


class TwistCliError(Exception):
    """Base class for errors the command layer reports to the user."""


class InvalidReference(TwistCliError):
    pass


class UnsupportedReferenceKind(InvalidReference):
    """A name was given where only an ID or a Twist URL is accepted."""

    def __init__(self, kind: str, ref: str) -> None:
        super().__init__(
            f"Invalid {kind} reference: {ref}. Use {kind} ID or Twist URL."
        )
        self.kind = kind
        self.ref = ref


class NotFound(TwistCliError):
    pass


class AmbiguousReference(TwistCliError):
    def __init__(self, message: str, *, candidates: Sequence[object] = ()) -> None:
        super().__init__(message)
        self.candidates = tuple(candidates)


class PrivateChannelAccess(TwistCliError):
    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "This thread belongs to a private channel. "
            f"Use {PRIVATE_CHANNELS_FLAG} or set {PRIVATE_CHANNELS_ENV}=1 to access it."
        )
