import pytest

from layerrules.data import LayerParameter, NetState, NetStateRule, Phase
from layerrules.ops import filter_layers, layer_is_active, state_meets_rule


def test_phase_rule():
    rule = NetStateRule(phase=Phase.TRAIN)
    assert state_meets_rule(NetState(phase=Phase.TRAIN), rule)
    assert not state_meets_rule(NetState(phase=Phase.TEST), rule)


@pytest.mark.parametrize("level,expected", [(1, False), (2, True), (3, True), (4, True), (5, False)])
def test_level_bounds_are_inclusive(level, expected):
    rule = NetStateRule(min_level=2, max_level=4)
    assert state_meets_rule(NetState(level=level), rule) is expected


def test_one_sided_level_bound():
    assert state_meets_rule(NetState(level=100), NetStateRule(min_level=1))
    assert state_meets_rule(NetState(level=-5), NetStateRule(max_level=0))


@pytest.mark.parametrize(
    "stages,expected",
    [
        ({"a", "b"}, True),
        ({"a", "b", "d"}, True),
        ({"a"}, False),
        ({"a", "b", "c"}, False),
    ],
)
def test_stage_and_not_stage(stages, expected):
    rule = NetStateRule(stage=["a", "b"], not_stage=["c"])
    assert state_meets_rule(NetState(stages=stages), rule) is expected


def test_bare_string_is_a_single_stage():
    rule = NetStateRule(stage="warmup", not_stage="deploy")
    assert rule.stage == ("warmup",)
    assert rule.not_stage == ("deploy",)
    assert state_meets_rule(NetState(stages="warmup"), rule)
    assert not state_meets_rule(NetState(stages={"warmup", "deploy"}), rule)
    assert NetState(stages="warmup").stages == frozenset({"warmup"})


def test_empty_rule_matches_everything():
    rule = NetStateRule()
    for state in (NetState(), NetState(phase=Phase.TRAIN, level=7, stages={"x"})):
        assert state_meets_rule(state, rule)


def test_exclude_overrides_include():
    state = NetState(phase=Phase.TRAIN, stages={"warmup"})
    includes = [NetStateRule(phase=Phase.TRAIN)]
    excludes = [NetStateRule(stage=["warmup"])]
    assert not layer_is_active(includes, excludes, state)
    assert layer_is_active(includes, [], state)


def test_no_rules_means_always_active():
    layer = LayerParameter(name="relu")
    for state in (NetState(), NetState(phase=Phase.TRAIN, level=3, stages={"a"})):
        assert layer_is_active(layer.include, layer.exclude, state)


def test_includes_are_disjunctive():
    includes = [NetStateRule(phase=Phase.TRAIN), NetStateRule(stage=["deploy"])]
    assert layer_is_active(includes, [], NetState(phase=Phase.TEST, stages={"deploy"}))
    assert not layer_is_active(includes, [], NetState(phase=Phase.TEST))


def test_rule_misses_are_logged(caplog):
    with caplog.at_level("DEBUG", logger="layerrules.ops.rules"):
        state_meets_rule(NetState(level=0), NetStateRule(min_level=1), layer_name="drop1")
    assert "drop1" in caplog.text


def test_filter_layers_keeps_order_and_inherits_phase():
    data_train = LayerParameter(name="data_train", include=[NetStateRule(phase=Phase.TRAIN)])
    data_test = LayerParameter(name="data_test", include=[NetStateRule(phase=Phase.TEST)])
    fixed = LayerParameter(name="fixed")
    fixed.set_phase(Phase.TEST)
    ip = LayerParameter(name="ip")

    kept = filter_layers([data_train, data_test, fixed, ip], NetState(phase=Phase.TRAIN))

    assert [layer.name for layer in kept] == ["data_train", "fixed", "ip"]
    assert kept[0].phase == Phase.TRAIN
    assert kept[1].phase == Phase.TEST
    assert kept[2].phase == Phase.TRAIN
    assert not ip.has_phase
    assert ip.phase == Phase.TEST
