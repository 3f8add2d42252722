from __future__ import annotations

import json

import pytest

from squadguessr.errors import UnknownMap
from squadguessr.maps import MapRegistry


def test_builtin_lookup_is_case_insensitive() -> None:
    maps = MapRegistry.builtin(display_size=512)
    meta = maps.get("Narva")
    assert meta.id == "narva"
    assert meta.display_size == 512
    assert "NARVA" in maps
    assert len(maps) > 10


def test_unknown_map_raises() -> None:
    with pytest.raises(UnknownMap) as excinfo:
        MapRegistry.builtin().get("atlantis")
    assert excinfo.value.map_id == "atlantis"


def test_from_json_skips_bad_rows(tmp_path) -> None:
    path = tmp_path / "maps.json"
    path.write_text(
        json.dumps(
            [
                {"id": "tiny", "name": "Tiny", "size": 1000},
                {"id": "wide", "size": 2000, "sizeY": 1000, "image": "wide_basemap"},
                {"id": "broken", "size": 0},
                {"name": "no id", "size": 100},
            ]
        ),
        encoding="utf-8",
    )
    maps = MapRegistry.from_json(path)
    assert len(maps) == 2
    assert maps.get("wide").world_size == (2000, 1000)
    assert maps.get("wide").image_ref == "wide_basemap"
    assert maps.get("tiny").name == "Tiny"
