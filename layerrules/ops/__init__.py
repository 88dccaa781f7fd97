"""Convenience imports for rule evaluation and parameter sharing."""
from .rules import filter_layers, inherit_phase, layer_is_active, state_meets_rule
from .sharing import (
    ParamRegistry,
    SharedParam,
    check_share_shapes,
    shapes_compatible,
    tensor_elements,
)

__all__ = [
    "filter_layers",
    "inherit_phase",
    "layer_is_active",
    "state_meets_rule",
    "ParamRegistry",
    "SharedParam",
    "check_share_shapes",
    "shapes_compatible",
    "tensor_elements",
]
