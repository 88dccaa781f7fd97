"""Shape checks and the name-keyed registry behind shared parameters."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from layerrules.data import LayerParameter, ParamSpec, ShareMode, Tensor
from layerrules.errors import ShareShapeMismatch

logger = logging.getLogger(__name__)


def tensor_elements(shape: Sequence[int]) -> int:
    total = 1
    for dim in shape:
        total *= int(dim)
    return total


def shapes_compatible(mode: ShareMode, owner_shape: Sequence[int], other_shape: Sequence[int]) -> bool:
    if mode == ShareMode.PERMISSIVE:
        return tensor_elements(owner_shape) == tensor_elements(other_shape)
    return tuple(int(d) for d in owner_shape) == tuple(int(d) for d in other_shape)


def check_share_shapes(
    name: str,
    mode: ShareMode,
    owner_shape: Sequence[int],
    other_shape: Sequence[int],
) -> None:
    if not shapes_compatible(mode, owner_shape, other_shape):
        raise ShareShapeMismatch(name, ShareMode(mode).name, owner_shape, other_shape)


@dataclass
class SharedParam:
    """Owner record for one named parameter."""

    name: str
    owner_layer: str
    owner_index: int
    tensor: Tensor
    users: List[Tuple[str, int]] = field(default_factory=list)

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(self.tensor.shape)


class ParamRegistry:
    """Builder-side ownership of named parameters.

    The first layer registering a name owns the tensor; every later layer
    with the same name is shape-checked with its own share mode and handed
    the owner's tensor.
    """

    def __init__(self) -> None:
        self._params: Dict[str, SharedParam] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._params

    def __len__(self) -> int:
        return len(self._params)

    def register(self, layer_name: str, index: int, spec: ParamSpec, tensor: Tensor) -> Tensor:
        if not spec.is_shared:
            return tensor
        entry = self._params.get(spec.name)
        if entry is None:
            self._params[spec.name] = SharedParam(spec.name, layer_name, index, tensor)
            logger.debug("Layer %s owns param '%s' (blob %d)", layer_name, spec.name, index)
            return tensor
        check_share_shapes(spec.name, spec.share_mode, entry.shape, tensor.shape)
        entry.users.append((layer_name, index))
        logger.debug(
            "Layer %s blob %d shares param '%s' owned by %s",
            layer_name, index, spec.name, entry.owner_layer,
        )
        return entry.tensor

    def bind_layer(self, layer: LayerParameter) -> LayerParameter:
        """Register every blob of ``layer`` and swap in the shared handles.

        Every shape is checked before anything is registered, so a mismatch
        leaves both the registry and the layer untouched.
        """
        specs = [
            layer.param[index] if index < len(layer.param) else ParamSpec()
            for index in range(len(layer.blobs))
        ]
        for spec, blob in zip(specs, layer.blobs):
            entry = self._params.get(spec.name) if spec.is_shared else None
            if entry is not None:
                check_share_shapes(spec.name, spec.share_mode, entry.shape, blob.shape)
        bound: List[Tensor] = []
        for index, (spec, blob) in enumerate(zip(specs, layer.blobs)):
            bound.append(self.register(layer.name, index, spec, blob))
        layer.blobs = bound
        return layer

    def owner_of(self, name: str) -> SharedParam:
        if name not in self._params:
            raise KeyError(f"Unknown shared param '{name}'")
        return self._params[name]

    def shared_names(self) -> List[str]:
        return [name for name, entry in self._params.items() if entry.users]
