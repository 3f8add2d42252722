from __future__ import annotations

import pytest

from squadguessr.errors import InvalidMapMetadata
from squadguessr.maps import MapMetadata, MapRegistry
from squadguessr.transform import CoordinateTransform


def _transform(width: float = 3000, height: float | None = None, extent: float = 256) -> CoordinateTransform:
    meta = MapMetadata(id="m", name="M", world_size=(width, height or width), display_size=extent)
    return CoordinateTransform.for_map(meta)


def test_scale_factors() -> None:
    t = _transform(2048, 4096, 256)
    assert t.game_to_display == 0.125
    assert t.game_to_display_y == 0.0625
    assert t.display_to_game == 8
    assert t.display_to_game_y == 16


def test_round_trip_for_every_builtin_map() -> None:
    for meta in MapRegistry.builtin():
        t = CoordinateTransform.for_map(meta)
        for fx, fy in [(0.1, 0.2), (0.5, 0.5), (0.93, 0.71)]:
            world = (meta.world_size[0] * fx, -meta.world_size[1] * fy)
            back = t.to_world(t.to_display(world))
            assert back == pytest.approx(world)


def test_guess_clamped_into_display_bounds() -> None:
    t = _transform(extent=256)
    assert t.clamp_display((-5, 10)) == (0, 0)
    assert t.clamp_display((300, -400)) == (256, -256)
    assert t.clamp_display((12.5, -40)) == (12.5, -40)
    assert t.guess_to_world((300, 5)) == (3000, 0)


def test_non_positive_sizes_rejected() -> None:
    with pytest.raises(InvalidMapMetadata):
        MapMetadata(id="bad", name="Bad", world_size=(0, 100))
    with pytest.raises(InvalidMapMetadata):
        MapMetadata(id="bad", name="Bad", world_size=(100, -1))
    with pytest.raises(InvalidMapMetadata):
        MapMetadata(id="bad", name="Bad", world_size=(100, 100), display_size=0)
