"""Declarative layer configuration: phases, state rules, param specs and layers."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Protocol, Sequence, Tuple, TypeVar

from layerrules.errors import IndexOutOfRange, MalformedConfiguration

NO_NAME = "NO_NAME"
NO_TYPE = "NO_TYPE"
DEFAULT_MULT = 1.0

T = TypeVar("T")


class Tensor(Protocol):
    """Opaque parameter tensor; only its shape is ever inspected."""

    @property
    def shape(self) -> Tuple[int, ...]:
        ...


class Phase(IntEnum):
    TRAIN = 0
    TEST = 1


class ShareMode(IntEnum):
    """How strictly the shapes of two tensors sharing a param name must agree."""

    # every dimension must match
    STRICT = 0
    # only the element count must match
    PERMISSIVE = 1


@dataclass(frozen=True)
class NetState:
    """Execution context a network is built for."""

    phase: Phase = Phase.TEST
    level: int = 0
    stages: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "stages", frozenset(_stage_names(self.stages)))


@dataclass(frozen=True)
class NetStateRule:
    """Predicate over a NetState; unset fields impose no constraint.

    The state must have ALL of ``stage`` and NONE of ``not_stage``. Use
    several rules to express a disjunction.
    """

    phase: Optional[Phase] = None
    min_level: Optional[int] = None
    max_level: Optional[int] = None
    stage: Tuple[str, ...] = ()
    not_stage: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "stage", _stage_names(self.stage))
        object.__setattr__(self, "not_stage", _stage_names(self.not_stage))

    @property
    def has_phase(self) -> bool:
        return self.phase is not None

    @property
    def has_min_level(self) -> bool:
        return self.min_level is not None

    @property
    def has_max_level(self) -> bool:
        return self.max_level is not None

    def stage_size(self) -> int:
        return len(self.stage)

    def stage_at(self, index: int) -> str:
        return _checked(self.stage, index, "stage")

    def not_stage_size(self) -> int:
        return len(self.not_stage)

    def not_stage_at(self, index: int) -> str:
        return _checked(self.not_stage, index, "not_stage")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.phase is not None:
            data["phase"] = self.phase.name
        if self.min_level is not None:
            data["min_level"] = self.min_level
        if self.max_level is not None:
            data["max_level"] = self.max_level
        if self.stage:
            data["stage"] = list(self.stage)
        if self.not_stage:
            data["not_stage"] = list(self.not_stage)
        return data


@dataclass(frozen=True)
class ParamSpec:
    """One learnable parameter slot of a layer.

    A non-empty ``name`` is a sharing key: every ParamSpec carrying the same
    name, in any layer, refers to the same underlying tensor. ``share_mode``
    only matters for named specs. Multipliers left as ``None`` are unset and
    resolve to 1.0.
    """

    name: str = ""
    lr_mult: Optional[float] = None
    decay_mult: Optional[float] = None
    share_mode: ShareMode = ShareMode.STRICT

    @property
    def is_shared(self) -> bool:
        return bool(self.name)

    @property
    def has_lr_mult(self) -> bool:
        return self.lr_mult is not None

    @property
    def has_decay_mult(self) -> bool:
        return self.decay_mult is not None

    @property
    def effective_lr_mult(self) -> float:
        return DEFAULT_MULT if self.lr_mult is None else float(self.lr_mult)

    @property
    def effective_decay_mult(self) -> float:
        return DEFAULT_MULT if self.decay_mult is None else float(self.decay_mult)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "lr_mult": self.effective_lr_mult,
            "decay_mult": self.effective_decay_mult,
            "share_mode": self.share_mode.name,
        }


@dataclass
class LayerParameter:
    """Full declarative configuration of one layer.

    ``loss_weight`` is index-aligned with ``top``, ``propagate_down`` with
    ``bottom`` and ``param`` with the learnable parameters; an empty aligned
    sequence means "defaults everywhere". ``blobs`` holds handles to the
    layer's parameter tensors; copies share the handles, never the data.
    """

    name: str = NO_NAME
    type: str = NO_TYPE
    phase: Phase = Phase.TEST
    has_phase: bool = False
    bottom: List[str] = field(default_factory=list)
    top: List[str] = field(default_factory=list)
    loss_weight: List[float] = field(default_factory=list)
    param: List[ParamSpec] = field(default_factory=list)
    blobs: List[Tensor] = field(default_factory=list)
    propagate_down: List[bool] = field(default_factory=list)
    include: List[NetStateRule] = field(default_factory=list)
    exclude: List[NetStateRule] = field(default_factory=list)

    # -- identity -------------------------------------------------------

    def set_name(self, name: str) -> None:
        self.name = name

    def set_type(self, layer_type: str) -> None:
        self.type = layer_type

    def set_phase(self, phase: Phase) -> None:
        self.phase = Phase(phase)
        self.has_phase = True

    # -- topology -------------------------------------------------------

    def bottom_size(self) -> int:
        return len(self.bottom)

    def bottom_at(self, index: int) -> str:
        return _checked(self.bottom, index, "bottom")

    def set_bottom(self, index: int, name: str) -> None:
        _checked(self.bottom, index, "bottom")
        self.bottom[index] = name

    def add_bottom(self, name: str) -> None:
        self.bottom.append(name)

    def top_size(self) -> int:
        return len(self.top)

    def top_at(self, index: int) -> str:
        return _checked(self.top, index, "top")

    def set_top(self, index: int, name: str) -> None:
        _checked(self.top, index, "top")
        self.top[index] = name

    def add_top(self, name: str) -> None:
        self.top.append(name)

    # -- per-top / per-bottom settings ------------------------------------

    def loss_weight_size(self) -> int:
        return len(self.loss_weight)

    def loss_weight_at(self, index: int) -> float:
        return _checked(self.loss_weight, index, "loss_weight")

    def add_loss_weight(self, weight: float) -> None:
        self.loss_weight.append(float(weight))

    def clear_loss_weight(self) -> None:
        self.loss_weight.clear()

    def propagate_down_size(self) -> int:
        return len(self.propagate_down)

    def propagate_down_at(self, index: int) -> bool:
        return _checked(self.propagate_down, index, "propagate_down")

    def add_propagate_down(self, flag: bool) -> None:
        self.propagate_down.append(bool(flag))

    # -- parameters -----------------------------------------------------

    def param_size(self) -> int:
        return len(self.param)

    def param_at(self, index: int) -> ParamSpec:
        return _checked(self.param, index, "param")

    def add_param(self, spec: ParamSpec) -> None:
        self.param.append(spec)

    def blobs_size(self) -> int:
        return len(self.blobs)

    def blob_at(self, index: int) -> Tensor:
        return _checked(self.blobs, index, "blobs")

    def add_blob(self, blob: Tensor) -> None:
        self.blobs.append(blob)

    # -- rules ----------------------------------------------------------

    def include_size(self) -> int:
        return len(self.include)

    def include_at(self, index: int) -> NetStateRule:
        return _checked(self.include, index, "include")

    def add_include(self, rule: NetStateRule) -> None:
        self.include.append(rule)

    def exclude_size(self) -> int:
        return len(self.exclude)

    def exclude_at(self, index: int) -> NetStateRule:
        return _checked(self.exclude, index, "exclude")

    def add_exclude(self, rule: NetStateRule) -> None:
        self.exclude.append(rule)

    # -- whole-object operations ------------------------------------------

    def clear(self) -> None:
        """Empty every sequence field; name, type and phase are kept."""
        self.bottom.clear()
        self.top.clear()
        self.loss_weight.clear()
        self.param.clear()
        self.blobs.clear()
        self.propagate_down.clear()
        self.include.clear()
        self.exclude.clear()

    def copy_from(self, other: "LayerParameter") -> None:
        """Replace this layer with a snapshot of ``other``.

        Rules and param specs are immutable, so sharing them is a value copy.
        Blob handles are shared with ``other``.
        """
        self.name = other.name
        self.type = other.type
        self.phase = other.phase
        self.has_phase = other.has_phase
        self.bottom = list(other.bottom)
        self.top = list(other.top)
        self.loss_weight = list(other.loss_weight)
        self.param = list(other.param)
        self.blobs = list(other.blobs)
        self.propagate_down = list(other.propagate_down)
        self.include = list(other.include)
        self.exclude = list(other.exclude)

    def validate(self, num_learnable: Optional[int] = None) -> "LayerParameter":
        """Check that index-aligned sequences agree in length.

        ``num_learnable`` defaults to the number of blobs when the layer holds
        any. Raises MalformedConfiguration on the first violation.
        """
        _check_aligned(self.name, "loss_weight", self.loss_weight, "top", self.top)
        _check_aligned(self.name, "propagate_down", self.propagate_down, "bottom", self.bottom)
        if num_learnable is None and self.blobs:
            num_learnable = len(self.blobs)
        if num_learnable is not None and len(self.param) > num_learnable:
            raise MalformedConfiguration(
                f"Layer '{self.name}' declares {len(self.param)} param specs "
                f"but has {num_learnable} learnable parameters"
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "phase": self.phase.name,
            "bottom": list(self.bottom),
            "top": list(self.top),
            "loss_weight": list(self.loss_weight),
            "param": [spec.to_dict() for spec in self.param],
            "blob_shapes": [list(blob.shape) for blob in self.blobs],
            "propagate_down": list(self.propagate_down),
            "include": [rule.to_dict() for rule in self.include],
            "exclude": [rule.to_dict() for rule in self.exclude],
        }


def _stage_names(value: Iterable[str]) -> Tuple[str, ...]:
    # a bare string is one stage, not a sequence of characters
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def _checked(values: Sequence[T], index: int, field_name: str) -> T:
    if not 0 <= index < len(values):
        raise IndexOutOfRange(field_name, index, len(values))
    return values[index]


def _check_aligned(layer_name: str, name: str, values: Sequence, ref_name: str, ref: Sequence) -> None:
    if values and len(values) != len(ref):
        raise MalformedConfiguration(
            f"Layer '{layer_name}': {name} has {len(values)} entries, "
            f"expected 0 or {len(ref)} (one per {ref_name})"
        )
