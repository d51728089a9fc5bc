from __future__ import annotations

import pytest

from versus import VersusDb, VersusHelpers


@pytest.fixture
def dbh(db_config):
    handle = VersusDb(db_config, init=True)
    yield handle
    handle.close()


def _comparison(cid: str, slug: str, created: int = 1) -> dict:
    return {
        "id": cid,
        "name": slug.title(),
        "slug": slug,
        "description": None,
        "properties": [{"key": "price", "name": "Price", "type": "number"}],
        "created_at": created,
    }


def _contender(cid: str, comparison_id: str, created: int = 1) -> dict:
    return {
        "id": cid,
        "comparison_id": comparison_id,
        "name": cid,
        "properties": {"price": 10},
        "hyperlinks": [{"id": "h", "url": "https://example.com", "added_at": None}],
        "created_at": created,
    }


def test_invalid_options() -> None:
    with pytest.raises(TypeError):
        VersusDb("versus.db")
    with pytest.raises(ValueError):
        VersusDb({})
    with pytest.raises(ValueError):
        VersusDb({"__database": ""})


def test_config_scopes(dbh) -> None:
    dbh.configSet({"_debug": "1", "AI:registry": "{}"})
    assert dbh.configGet() == {"_debug": "1", "AI:registry": "{}"}

    dbh.configClear()
    assert dbh.configGet() == {}


def test_comparison_round_trip(dbh) -> None:
    dbh.comparisonSave(_comparison("c1", "laptops", created=1))
    dbh.comparisonSave(_comparison("c2", "laptops-1", created=2))

    assert dbh.comparisonGetBySlug("laptops")["properties"][0]["key"] == "price"
    assert dbh.comparisonGet("missing") is None
    assert [c["id"] for c in dbh.comparisonGetAll()] == ["c2", "c1"]
    assert sorted(dbh.comparisonSlugs("laptops")) == ["laptops", "laptops-1"]
    assert dbh.comparisonSlugs("lap_") == []


def test_contender_round_trip_and_cascade(dbh) -> None:
    dbh.comparisonSave(_comparison("c1", "laptops"))
    dbh.comparisonSave(_comparison("c2", "phones"))
    dbh.contenderSave(_contender("a", "c1", created=1))
    dbh.contenderSave(_contender("b", "c1", created=2))
    dbh.contenderSave(_contender("z", "c2"))

    contender = dbh.contenderGet("a")
    assert contender["properties"] == {"price": 10}
    assert contender["pros"] == []
    assert contender["hyperlinks"][0]["url"] == "https://example.com"
    assert [c["id"] for c in dbh.contenderGetAll("c1")] == ["a", "b"]

    dbh.comparisonDelete("c1")

    assert dbh.comparisonGet("c1") is None
    assert dbh.contenderGetAll("c1") == []
    assert dbh.contenderGet("z") is not None

    dbh.contenderDelete("z")
    assert dbh.contenderGetAll() == []


def test_slug_helpers() -> None:
    assert VersusHelpers.genSlug("Solar Panels (2024)!") == "solar-panels-2024"
    assert VersusHelpers.uniqueSlug("solar", []) == "solar"
    assert VersusHelpers.uniqueSlug("solar", ["solar", "solar-1"]) == "solar-2"


def test_gen_id_is_unique() -> None:
    ids = {VersusHelpers.genId() for _ in range(200)}
    assert len(ids) == 200
