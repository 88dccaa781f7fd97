"""Evaluation of NetStateRule predicates and include/exclude composition."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from layerrules.data import LayerParameter, NetState, NetStateRule

logger = logging.getLogger(__name__)


def state_meets_rule(state: NetState, rule: NetStateRule, layer_name: Optional[str] = None) -> bool:
    """Return True when every condition set on ``rule`` holds for ``state``."""
    where = layer_name or "<unnamed>"
    if rule.phase is not None and rule.phase != state.phase:
        logger.debug(
            "Net state phase %s differs from rule phase %s in layer %s",
            state.phase.name, rule.phase.name, where,
        )
        return False
    if rule.min_level is not None and state.level < rule.min_level:
        logger.debug(
            "Net state level %d is below min_level %d in layer %s",
            state.level, rule.min_level, where,
        )
        return False
    if rule.max_level is not None and state.level > rule.max_level:
        logger.debug(
            "Net state level %d is above max_level %d in layer %s",
            state.level, rule.max_level, where,
        )
        return False
    for stage in rule.stage:
        if stage not in state.stages:
            logger.debug("Net state lacks required stage '%s' in layer %s", stage, where)
            return False
    for stage in rule.not_stage:
        if stage in state.stages:
            logger.debug("Net state contains forbidden stage '%s' in layer %s", stage, where)
            return False
    return True


def layer_is_active(
    includes: Sequence[NetStateRule],
    excludes: Sequence[NetStateRule],
    state: NetState,
    *,
    layer_name: Optional[str] = None,
) -> bool:
    """Included (no includes, or any include matches) and not excluded by any rule."""
    included = not includes or any(state_meets_rule(state, rule, layer_name) for rule in includes)
    if not included:
        return False
    return not any(state_meets_rule(state, rule, layer_name) for rule in excludes)


def inherit_phase(layer: LayerParameter, state: NetState) -> LayerParameter:
    """Return a copy of ``layer``; a layer declared without a phase takes the state's."""
    candidate = LayerParameter()
    candidate.copy_from(layer)
    if not candidate.has_phase:
        candidate.set_phase(state.phase)
    return candidate


def filter_layers(layers: Iterable[LayerParameter], state: NetState) -> List[LayerParameter]:
    """Return copies of the layers active under ``state``, in order.

    A layer declared without a phase takes the phase of ``state``.
    """
    kept: List[LayerParameter] = []
    for layer in layers:
        candidate = inherit_phase(layer, state)
        if layer_is_active(candidate.include, candidate.exclude, state, layer_name=candidate.name):
            kept.append(candidate)
        else:
            logger.info("Layer %s is not included under phase %s", candidate.name, state.phase.name)
    return kept
