"""Signature detail dialog handle.

The canvas opens the detail view through a small capability object rather
than owning any dialog state itself.  Anything with ``open(record)`` and
``close()`` will do.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class SignatureDialogHandle(Protocol):
    def open(self, signature: Any) -> None: ...

    def close(self) -> None: ...


class SignatureDialogController:
    """Default handle: remembers which signature is open.

    ``on_change`` is called with the open signature, or ``None`` after
    ``close()``.
    """

    def __init__(self, on_change: Optional[Callable[[Any], None]] = None):
        self.signature: Any = None
        self.on_change = on_change

    @property
    def is_open(self) -> bool:
        return self.signature is not None

    def open(self, signature: Any) -> None:
        self.signature = signature
        if self.on_change:
            self.on_change(signature)

    def close(self) -> None:
        if self.signature is None:
            return
        self.signature = None
        if self.on_change:
            self.on_change(None)
