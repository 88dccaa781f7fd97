import numpy as np
import pytest

from layerrules.data import LayerParameter, ParamSpec, ShareMode
from layerrules.errors import ShareShapeMismatch
from layerrules.ops import ParamRegistry, check_share_shapes, shapes_compatible


def test_strict_requires_identical_shapes():
    assert shapes_compatible(ShareMode.STRICT, (2, 3), (2, 3))
    assert not shapes_compatible(ShareMode.STRICT, (2, 3), (3, 2))
    assert not shapes_compatible(ShareMode.STRICT, (6,), (6, 1))


def test_permissive_compares_element_count():
    assert shapes_compatible(ShareMode.PERMISSIVE, (2, 3), (3, 2))
    assert shapes_compatible(ShareMode.PERMISSIVE, (6,), (1, 6))
    assert not shapes_compatible(ShareMode.PERMISSIVE, (2, 3), (2, 4))


def test_check_share_shapes_reports_both_shapes():
    with pytest.raises(ShareShapeMismatch) as excinfo:
        check_share_shapes("w", ShareMode.STRICT, (2, 3), (3, 2))
    assert excinfo.value.param_name == "w"
    assert excinfo.value.owner_shape == (2, 3)
    assert excinfo.value.other_shape == (3, 2)


def test_registry_hands_back_owner_tensor():
    registry = ParamRegistry()
    owner = np.ones((4, 3), dtype=np.float32)
    other = np.zeros((4, 3), dtype=np.float32)

    assert registry.register("ip1", 0, ParamSpec(name="w"), owner) is owner
    assert registry.register("ip2", 0, ParamSpec(name="w"), other) is owner
    assert "w" in registry
    assert len(registry) == 1
    assert registry.owner_of("w").owner_layer == "ip1"
    assert registry.owner_of("w").users == [("ip2", 0)]
    assert registry.shared_names() == ["w"]


def test_registry_ignores_anonymous_specs():
    registry = ParamRegistry()
    blob = np.zeros((2,), dtype=np.float32)
    assert registry.register("ip1", 1, ParamSpec(), blob) is blob
    assert len(registry) == 0


def test_registry_uses_sharing_layer_mode():
    registry = ParamRegistry()
    registry.register("ip1", 0, ParamSpec(name="w"), np.zeros((2, 3)))
    with pytest.raises(ShareShapeMismatch):
        registry.register("ip2", 0, ParamSpec(name="w"), np.zeros((3, 2)))
    shared = registry.register(
        "ip3", 0, ParamSpec(name="w", share_mode=ShareMode.PERMISSIVE), np.zeros((3, 2))
    )
    assert shared.shape == (2, 3)


def test_bind_layer_rebinds_blobs():
    registry = ParamRegistry()
    first = LayerParameter(
        name="ip1",
        param=[ParamSpec(name="w"), ParamSpec(name="b")],
        blobs=[np.zeros((4, 3)), np.zeros((4,))],
    )
    second = LayerParameter(
        name="ip2",
        param=[ParamSpec(name="w")],
        blobs=[np.zeros((4, 3)), np.zeros((4,))],
    )
    registry.bind_layer(first)
    own_bias = second.blobs[1]
    registry.bind_layer(second)

    assert second.blobs[0] is first.blobs[0]
    assert second.blobs[1] is own_bias
    first.blobs[0][0, 0] = 5.0
    assert second.blobs[0][0, 0] == 5.0


def test_bind_layer_is_all_or_nothing():
    registry = ParamRegistry()
    registry.bind_layer(LayerParameter(name="ip1", param=[ParamSpec(name="w")], blobs=[np.zeros((4, 3))]))

    first, second = np.zeros((5,)), np.zeros((2, 2))
    layer = LayerParameter(
        name="ip2",
        param=[ParamSpec(name="b"), ParamSpec(name="w")],
        blobs=[first, second],
    )
    with pytest.raises(ShareShapeMismatch):
        registry.bind_layer(layer)

    assert layer.blobs[0] is first and layer.blobs[1] is second
    assert "b" not in registry
    assert registry.owner_of("w").users == []
