"""Declarative layer configuration with conditional-inclusion rules."""
from layerrules.data import (
    LayerParameter,
    NetState,
    NetStateRule,
    ParamSpec,
    Phase,
    ShareMode,
)
from layerrules.errors import (
    IndexOutOfRange,
    LayerConfigError,
    MalformedConfiguration,
    ShareShapeMismatch,
)
from layerrules.ops import ParamRegistry, filter_layers, layer_is_active, state_meets_rule

__version__ = "0.1.0"

__all__ = [
    "LayerParameter",
    "NetState",
    "NetStateRule",
    "ParamSpec",
    "Phase",
    "ShareMode",
    "IndexOutOfRange",
    "LayerConfigError",
    "MalformedConfiguration",
    "ShareShapeMismatch",
    "ParamRegistry",
    "filter_layers",
    "layer_is_active",
    "state_meets_rule",
]
