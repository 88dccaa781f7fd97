"""Shared utilities for entrypoint modules."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar, Union

import numpy as np
import yaml

from layerrules.data import (
    LayerParameter,
    NetState,
    NetStateRule,
    ParamSpec,
    Phase,
    ShareMode,
)
from layerrules.errors import MalformedConfiguration

T = TypeVar("T")


def read_yaml(path: Path) -> Dict:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise MalformedConfiguration(f"YAML at {path} must be a mapping")
    return data


def maybe_load_reference(base_dir: Path, value: Union[str, Dict]) -> Dict:
    if isinstance(value, dict):
        return value
    if not isinstance(value, str):
        raise MalformedConfiguration(f"Unsupported reference value: {value!r}")
    ref_path = (base_dir / value).resolve()
    return read_yaml(ref_path)


def phase_from_value(value: Union[str, int, Phase]) -> Phase:
    if isinstance(value, Phase):
        return value
    if isinstance(value, str):
        try:
            return Phase[value.strip().upper()]
        except KeyError:
            raise MalformedConfiguration(f"Unknown phase: {value!r}") from None
    try:
        return Phase(int(value))
    except (TypeError, ValueError):
        raise MalformedConfiguration(f"Unknown phase: {value!r}") from None


def share_mode_from_value(value: Union[str, int, ShareMode]) -> ShareMode:
    if isinstance(value, ShareMode):
        return value
    if isinstance(value, str):
        try:
            return ShareMode[value.strip().upper()]
        except KeyError:
            raise MalformedConfiguration(f"Unknown share mode: {value!r}") from None
    try:
        return ShareMode(int(value))
    except (TypeError, ValueError):
        raise MalformedConfiguration(f"Unknown share mode: {value!r}") from None


def _coerce(key: str, value: Any, cast: Callable[[Any], T]) -> T:
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise MalformedConfiguration(f"'{key}' has an invalid value: {value!r}") from None


def _optional_int(data: Dict, key: str) -> Optional[int]:
    value = data.get(key)
    return None if value is None else _coerce(key, value, int)


def _optional_float(data: Dict, key: str) -> Optional[float]:
    value = data.get(key)
    return None if value is None else _coerce(key, value, float)


def _list(data: Dict, key: str) -> List:
    value = data.get(key, [])
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedConfiguration(f"'{key}' must be a list, got {value!r}")
    return value


def _string_list(data: Dict, key: str) -> List[str]:
    value = data.get(key, [])
    if isinstance(value, str):
        return [value]
    return [str(item) for item in _list(data, key)]


def _flag(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise MalformedConfiguration(f"'{key}' entries must be true or false, got {value!r}")
    return value


def state_from_dict(data: Dict) -> NetState:
    return NetState(
        phase=phase_from_value(data.get("phase", Phase.TEST)),
        level=_coerce("level", data.get("level", 0), int),
        stages=_string_list(data, "stage"),
    )


def rule_from_dict(data: Dict) -> NetStateRule:
    if not isinstance(data, dict):
        raise MalformedConfiguration(f"Rule must be a mapping, got {data!r}")
    phase = data.get("phase")
    return NetStateRule(
        phase=None if phase is None else phase_from_value(phase),
        min_level=_optional_int(data, "min_level"),
        max_level=_optional_int(data, "max_level"),
        stage=_string_list(data, "stage"),
        not_stage=_string_list(data, "not_stage"),
    )


def param_spec_from_dict(data: Dict) -> ParamSpec:
    if not isinstance(data, dict):
        raise MalformedConfiguration(f"Param spec must be a mapping, got {data!r}")
    return ParamSpec(
        name=str(data.get("name") or ""),
        lr_mult=_optional_float(data, "lr_mult"),
        decay_mult=_optional_float(data, "decay_mult"),
        share_mode=share_mode_from_value(data.get("share_mode", ShareMode.STRICT)),
    )


def blobs_from_shapes(shapes: Iterable[Any]) -> List[np.ndarray]:
    blobs: List[np.ndarray] = []
    for shape in shapes:
        if not isinstance(shape, (list, tuple)):
            raise MalformedConfiguration(f"'blob_shapes' entries must be lists of dims, got {shape!r}")
        dims = tuple(_coerce("blob_shapes", dim, int) for dim in shape)
        if any(dim <= 0 for dim in dims):
            raise MalformedConfiguration(f"'blob_shapes' dims must be positive, got {list(shape)!r}")
        blobs.append(np.zeros(dims, dtype=np.float32))
    return blobs


def layer_parameter_from_dict(idx: int, data: Dict) -> LayerParameter:
    layer = LayerParameter()
    layer.set_name(str(data.get("name") or f"layer_{idx}"))
    if data.get("type"):
        layer.set_type(str(data["type"]))
    if data.get("phase") is not None:
        layer.set_phase(phase_from_value(data["phase"]))

    for name in _string_list(data, "bottom"):
        layer.add_bottom(name)
    for name in _string_list(data, "top"):
        layer.add_top(name)
    for weight in _list(data, "loss_weight"):
        layer.add_loss_weight(_coerce("loss_weight", weight, float))
    for flag in _list(data, "propagate_down"):
        layer.add_propagate_down(_flag("propagate_down", flag))
    for spec in _list(data, "param"):
        layer.add_param(param_spec_from_dict(spec))
    for blob in blobs_from_shapes(_list(data, "blob_shapes")):
        layer.add_blob(blob)
    for rule in _list(data, "include"):
        layer.add_include(rule_from_dict(rule))
    for rule in _list(data, "exclude"):
        layer.add_exclude(rule_from_dict(rule))
    return layer


def format_rules(rules: Iterable[NetStateRule]) -> str:
    parts = []
    for rule in rules:
        fields: Dict[str, Any] = rule.to_dict()
        parts.append(",".join(f"{key}={value}" for key, value in fields.items()) or "*")
    return "; ".join(parts) or "-"


__all__ = [
    "read_yaml",
    "maybe_load_reference",
    "phase_from_value",
    "share_mode_from_value",
    "state_from_dict",
    "rule_from_dict",
    "param_spec_from_dict",
    "blobs_from_shapes",
    "layer_parameter_from_dict",
    "format_rules",
]
