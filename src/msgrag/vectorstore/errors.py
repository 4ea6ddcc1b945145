"""Errors raised by the vector index layer."""
from __future__ import annotations

from msgrag.errors import MsgragError


class VectorStoreUnavailableError(MsgragError):
    """The index could not be opened, written or searched.

    The backend's own exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message if cause is None else f"{message}: {cause}")
        self.__cause__ = cause
