"""Network description loading, layer filtering and validation helpers."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from layerrules.data import LayerParameter, NetState, Phase
from layerrules.errors import MalformedConfiguration, ShareShapeMismatch
from layerrules.ops import ParamRegistry, filter_layers, inherit_phase, layer_is_active

from .utils import (
    layer_parameter_from_dict,
    maybe_load_reference,
    read_yaml,
    state_from_dict,
)

logger = logging.getLogger(__name__)


@dataclass
class NetDefinition:
    name: str
    state: NetState
    layers: List[LayerParameter]


@dataclass
class LayerDecision:
    layer: LayerParameter
    active: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"layer": self.layer.to_dict(), "active": self.active}


@dataclass
class FilterResult:
    """Per-layer activation decisions for one net state."""

    state: NetState
    decisions: List[LayerDecision]

    @property
    def active_names(self) -> List[str]:
        return [d.layer.name for d in self.decisions if d.active]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": {
                "phase": self.state.phase.name,
                "level": self.state.level,
                "stages": sorted(self.state.stages),
            },
            "decisions": [decision.to_dict() for decision in self.decisions],
        }


@dataclass
class ValidationReport:
    errors: List[str] = field(default_factory=list)
    shared: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "errors": list(self.errors), "shared": dict(self.shared)}


def load_net(path: Union[str, Path]) -> NetDefinition:
    net_path = Path(path).resolve()
    data = read_yaml(net_path)
    base_dir = net_path.parent

    state_block = data.get("state", {})
    if not isinstance(state_block, dict):
        raise MalformedConfiguration("Net 'state' must be a mapping")
    state = state_from_dict(state_block)

    layers_block: Iterable[Dict] = data.get("layers", [])
    if not layers_block:
        raise MalformedConfiguration("Net must include at least one layer entry")

    layers: List[LayerParameter] = []
    for idx, layer_entry in enumerate(layers_block):
        if not isinstance(layer_entry, dict):
            raise MalformedConfiguration(f"Layer entry #{idx} must be a mapping")
        if "config" in layer_entry:
            config_dict = maybe_load_reference(base_dir, layer_entry["config"])
        else:
            config_dict = layer_entry
        merged = dict(config_dict)
        overrides = layer_entry.get("overrides", {})
        if overrides and not isinstance(overrides, dict):
            raise MalformedConfiguration(f"Layer entry #{idx} overrides must be a mapping")
        if overrides:
            merged.update(overrides)
        if layer_entry.get("name"):
            merged.setdefault("name", layer_entry["name"])
        layers.append(layer_parameter_from_dict(idx, merged))

    net_name = data.get("name", net_path.stem)
    logger.debug("Loaded net %s with %d layers from %s", net_name, len(layers), net_path)
    return NetDefinition(name=net_name, state=state, layers=layers)


def resolve_state(
    base: NetState,
    *,
    phase: Optional[Phase] = None,
    level: Optional[int] = None,
    stages: Optional[Sequence[str]] = None,
) -> NetState:
    """Apply command-line overrides on top of the state declared in the net file."""
    return NetState(
        phase=base.phase if phase is None else phase,
        level=base.level if level is None else level,
        stages=base.stages if stages is None else frozenset(stages),
    )


def evaluate_net(net: NetDefinition, state: Optional[NetState] = None) -> FilterResult:
    """Decide every layer under ``state``, reporting layers as filter_layers would build them."""
    active_state = state or net.state
    decisions: List[LayerDecision] = []
    for layer in net.layers:
        resolved = inherit_phase(layer, active_state)
        active = layer_is_active(resolved.include, resolved.exclude, active_state, layer_name=resolved.name)
        decisions.append(LayerDecision(layer=resolved, active=active))
    return FilterResult(state=active_state, decisions=decisions)


def validate_net(net: NetDefinition, state: Optional[NetState] = None) -> ValidationReport:
    """Check every layer's alignment and bind the active layers' shared params."""
    report = ValidationReport()
    for layer in net.layers:
        try:
            layer.validate()
        except MalformedConfiguration as exc:
            report.errors.append(str(exc))

    registry = ParamRegistry()
    for layer in filter_layers(net.layers, state or net.state):
        try:
            registry.bind_layer(layer)
        except ShareShapeMismatch as exc:
            report.errors.append(f"Layer '{layer.name}': {exc}")

    for name in registry.shared_names():
        entry = registry.owner_of(name)
        report.shared[name] = [entry.owner_layer] + [user for user, _ in entry.users]
    return report


__all__ = [
    "NetDefinition",
    "LayerDecision",
    "FilterResult",
    "ValidationReport",
    "load_net",
    "resolve_state",
    "evaluate_net",
    "validate_net",
]
