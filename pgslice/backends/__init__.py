"""Backend implementations for row lookup and replay."""

from pgslice.backends.direct import DirectBackend
from pgslice.backends.staging import StagingBackend

__all__ = ["DirectBackend", "StagingBackend"]
