"""Exception types raised by the layer configuration model and its helpers."""
from __future__ import annotations

from typing import Sequence


class LayerConfigError(Exception):
    """Base class for every error raised by layerrules."""


class IndexOutOfRange(LayerConfigError, IndexError):
    """Indexed access outside ``[0, size)`` of a sequence field."""

    def __init__(self, field_name: str, index: int, size: int):
        super().__init__(f"{field_name} index {index} out of range for size {size}")
        self.field_name = field_name
        self.index = index
        self.size = size


class MalformedConfiguration(LayerConfigError, ValueError):
    """Configuration violates a structural invariant."""


class ShareShapeMismatch(LayerConfigError, ValueError):
    """Two tensors sharing a parameter name fail the share-mode shape check."""

    def __init__(self, param_name: str, mode: str, owner_shape: Sequence[int], other_shape: Sequence[int]):
        super().__init__(
            f"Cannot share param '{param_name}' ({mode}): "
            f"owner shape {tuple(owner_shape)} vs {tuple(other_shape)}"
        )
        self.param_name = param_name
        self.mode = mode
        self.owner_shape = tuple(owner_shape)
        self.other_shape = tuple(other_shape)


__all__ = [
    "LayerConfigError",
    "IndexOutOfRange",
    "MalformedConfiguration",
    "ShareShapeMismatch",
]
