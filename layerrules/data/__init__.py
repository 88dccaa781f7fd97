"""Public exports for the layer configuration data model."""
from .specs import (
    NO_NAME,
    NO_TYPE,
    LayerParameter,
    NetState,
    NetStateRule,
    ParamSpec,
    Phase,
    ShareMode,
    Tensor,
)

__all__ = [
    "NO_NAME",
    "NO_TYPE",
    "LayerParameter",
    "NetState",
    "NetStateRule",
    "ParamSpec",
    "Phase",
    "ShareMode",
    "Tensor",
]
