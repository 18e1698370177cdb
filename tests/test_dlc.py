from __future__ import annotations

import httpx
import pytest

from dlc import (
    Depots,
    add_dlc,
    existing_appids,
    get_app_info,
    parse_app_info,
    select_depotless_dlc,
    sort_numeric,
)
from errors import NotFound, SourceUnavailable

META = "https://meta.test/v1/info/{}"


def _route_metadata(router, metadata, appid, **entry) -> None:
    router.json(META.format(appid), metadata(appid, **entry))


@pytest.fixture
def script(tmp_path):
    path = tmp_path / "100.lua"
    path.write_text('addappid(100)\naddappid(101,1,"key")\n', encoding="utf-8")
    return path


def test_depots_parse_variants() -> None:
    assert Depots.parse(None).kind == "absent"
    assert Depots.parse({"1": {}}).kind == "listing"
    assert Depots.parse("4").kind == "flag"
    assert Depots.parse(17).kind == "absent"


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, False),
        ({}, False),
        ({"200": {"manifests": {}}}, True),
        ("", False),
        ("1", True),
        ([1, 2], False),
    ],
)
def test_depots_has_depots(raw, expected) -> None:
    assert Depots.parse(raw).has_depots is expected


def test_sort_numeric_orders_by_value_and_drops_non_digits() -> None:
    assert sort_numeric({"100", "20", "3", "abc", ""}) == ["3", "20", "100"]


def test_parse_app_info_unions_every_dlc_field(metadata) -> None:
    doc = metadata(
        "100",
        common={"listofdlc": "30, 10"},
        extended={"listofdlc": "10,40"},
        depots={"dlc": {"50": {}}, "1001": {}},
        dlc={"20": {}},
    )

    info = parse_app_info("100", doc)

    assert info.dlc_ids == ["10", "20", "30", "40", "50"]
    assert info.has_depots is True


def test_parse_app_info_missing_entry_is_not_found(metadata) -> None:
    with pytest.raises(NotFound):
        parse_app_info("100", metadata("999"))


def test_get_app_info_maps_transport_errors(router, client, registry) -> None:
    def refuse(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    router.add(META.format(100), refuse)

    with pytest.raises(SourceUnavailable):
        get_app_info("100", client, registry)


def test_get_app_info_rejects_non_json(router, client, registry) -> None:
    router.add(META.format(100), (200, b"<html></html>"))

    with pytest.raises(SourceUnavailable):
        get_app_info("100", client, registry)


def test_select_depotless_dlc_skips_failed_lookups(router, client, registry, metadata) -> None:
    _route_metadata(router, metadata, "10", depots={})
    router.add(META.format(20), (502, b"bad gateway"))
    _route_metadata(router, metadata, "30", depots="1")
    _route_metadata(router, metadata, "40")

    assert select_depotless_dlc(["10", "20", "30", "40"], client, registry) == ["10", "40"]


def test_add_dlc_appends_depotless_in_numeric_order(router, client, registry, metadata, script) -> None:
    _route_metadata(router, metadata, "100", common={"listofdlc": "30,10,20"})
    _route_metadata(router, metadata, "10", depots={"11": {"manifests": {"public": "1"}}})
    _route_metadata(router, metadata, "20", depots={})
    _route_metadata(router, metadata, "30")

    assert add_dlc("100", str(script), client, registry) == 2
    assert script.read_text(encoding="utf-8") == (
        'addappid(100)\naddappid(101,1,"key")\naddappid(20)\naddappid(30)\n'
    )


def test_add_dlc_second_run_adds_nothing(router, client, registry, metadata, script) -> None:
    _route_metadata(router, metadata, "100", common={"listofdlc": "20,30"})
    _route_metadata(router, metadata, "20")
    _route_metadata(router, metadata, "30")

    assert add_dlc("100", str(script), client, registry) == 2
    before = script.read_bytes()

    assert add_dlc("100", str(script), client, registry) == 0
    assert script.read_bytes() == before


def test_add_dlc_skips_ids_already_present(router, client, registry, metadata, script) -> None:
    _route_metadata(router, metadata, "100", common={"listofdlc": "101,102"})
    _route_metadata(router, metadata, "101")
    _route_metadata(router, metadata, "102")

    assert add_dlc("100", str(script), client, registry) == 1
    assert script.read_text(encoding="utf-8").count("addappid(101") == 1


def test_add_dlc_inserts_newline_before_appending(router, client, registry, metadata, tmp_path) -> None:
    path = tmp_path / "100.lua"
    path.write_bytes(b"addappid(100)")
    _route_metadata(router, metadata, "100", common={"listofdlc": "20"})
    _route_metadata(router, metadata, "20")

    assert add_dlc("100", str(path), client, registry) == 1
    assert path.read_bytes() == b"addappid(100)\naddappid(20)\n"


def test_add_dlc_without_dlc_is_a_noop(router, client, registry, metadata, script) -> None:
    _route_metadata(router, metadata, "100", depots={"101": {}})
    before = script.read_bytes()

    assert add_dlc("100", str(script), client, registry) == 0
    assert script.read_bytes() == before


def test_add_dlc_raises_when_main_lookup_fails(router, client, registry, script) -> None:
    router.add(META.format(100), (500, b""))

    with pytest.raises(SourceUnavailable):
        add_dlc("100", str(script), client, registry)


def test_add_dlc_raises_when_main_entry_missing(router, client, registry, metadata, script) -> None:
    router.json(META.format(100), metadata("555"))

    with pytest.raises(NotFound):
        add_dlc("100", str(script), client, registry)


def test_existing_appids_reads_every_line(tmp_path) -> None:
    path = tmp_path / "x.lua"
    path.write_text("addappid(1)\n\n-- addappid(2)\naddappid( 3 ,1,\"k\")\nprint(4)\n", encoding="utf-8")

    assert existing_appids(str(path)) == {"1", "2", "3"}


def test_existing_appids_for_missing_file(tmp_path) -> None:
    assert existing_appids(str(tmp_path / "missing.lua")) == set()
