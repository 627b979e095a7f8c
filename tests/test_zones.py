import pytest
import respx
from conftest import DATA_API, make_settings
from sanggwon_geo.boundary import BoundaryResolver
from sanggwon_geo.cache import PolygonCache
from sanggwon_geo.errors import AuthError, NoResultsError, NotFoundError
from sanggwon_geo.fetch import ResilientFetchClient
from sanggwon_geo.models import Point, ZoneKind
from sanggwon_geo.zones import (
    ZoneLocator,
    extract_items,
    extract_reference_month,
    extract_total_count,
    filter_districts,
    normalize_district_name,
)

GANGNAM_STATION = Point(lat=37.4979, lon=127.0276)
BARO = f"{DATA_API}/baroApi"

PROVINCES = {"body": {"items": [
    {"ctprvnCd": "11", "ctprvnNm": "서울특별시"},
    {"ctprvnCd": "26", "ctprvnNm": "부산광역시"},
]}}
CITIES = {"body": {"items": [
    {"signguCd": "11620", "signguNm": "관악구"},
    {"signguCd": "11680", "signguNm": "강남구"},
]}}
DISTRICTS = {"body": {"items": [
    {"adongCd": "1168051000", "adongNm": "신사동"},
    {"adongCd": "1168064000", "adongNm": "역삼1동"},
    {"adongCd": "1168065000", "adongNm": "역삼2동"},
]}}


def _locator():
    settings = make_settings()
    fetcher = ResilientFetchClient(settings)
    return ZoneLocator(settings, fetcher), fetcher


def _mock_hierarchy(districts=DISTRICTS):
    respx.get(BARO, params__contains={"catId": "mega"}).respond(200, json=PROVINCES)
    respx.get(BARO, params__contains={"catId": "cty", "ctprvnCd": "11"}).respond(200, json=CITIES)
    return respx.get(BARO, params__contains={"catId": "admi", "signguCd": "11680"}).respond(
        200, json=districts
    )


@pytest.mark.asyncio
@respx.mock
async def test_find_nearby_and_resolve_trade_zone_polygon():
    locator, fetcher = _locator()
    route = respx.get(f"{DATA_API}/storeZoneInRadius").respond(
        200,
        json={
            "header": {"stdrYm": "202509"},
            "body": {
                "items": [
                    {
                        "trarNo": "3110001",
                        "mainTrarNm": "강남역",
                        "ctprvnNm": "서울특별시",
                        "signguNm": "강남구",
                        "trarArea": "215880.5",
                        "coords": "POLYGON((126.97 37.56, 126.98 37.56, 126.98 37.57, 126.97 37.56))",
                        "stdrYm": "202509",
                    }
                ],
                "totalCount": 1,
            },
        },
    )

    zones = await locator.find_nearby(GANGNAM_STATION)

    params = route.calls[0].request.url.params
    assert params["radius"] == "500"
    assert params["cx"] == "127.0276"
    assert params["cy"] == "37.4979"
    assert params["serviceKey"] == "data-key"

    zone = zones[0]
    assert zone.kind is ZoneKind.TRADE
    assert zone.id == "3110001"
    assert zone.display_name == "강남역"
    assert zone.area_size == 215880.5
    assert zone.anchor_point == GANGNAM_STATION
    assert zone.reference_month == "202509"

    resolved = await BoundaryResolver([], PolygonCache()).resolve_zone(zone)
    ring = resolved.resolved_polygon.rings[0]
    assert len(ring) == 4
    assert ring[0] == ring[-1] == Point(lat=37.56, lon=126.97)
    await fetcher.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_find_nearby_custom_radius_and_single_item_object():
    locator, fetcher = _locator()
    route = respx.get(f"{DATA_API}/storeZoneInRadius").respond(
        200, json={"body": {"items": {"trarNo": "1", "mainTrarNm": "역삼역"}}}
    )

    zones = await locator.find_nearby(GANGNAM_STATION, radius_meters=1000)

    assert [z.display_name for z in zones] == ["역삼역"]
    assert route.calls[0].request.url.params["radius"] == "1000"
    await fetcher.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_find_nearby_empty_raises_no_results():
    locator, fetcher = _locator()
    respx.get(f"{DATA_API}/storeZoneInRadius").respond(200, json={"body": {"items": [], "totalCount": 0}})

    with pytest.raises(NoResultsError):
        await locator.find_nearby(GANGNAM_STATION)
    await fetcher.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_find_nearby_xml_auth_envelope():
    locator, fetcher = _locator()
    respx.get(f"{DATA_API}/storeZoneInRadius").respond(
        200,
        text=(
            "<OpenAPI_ServiceResponse><cmmMsgHeader>"
            "<returnAuthMsg>SERVICE_KEY_IS_NOT_REGISTERED_ERROR</returnAuthMsg>"
            "<returnReasonCode>30</returnReasonCode>"
            "</cmmMsgHeader></OpenAPI_ServiceResponse>"
        ),
    )

    with pytest.raises(AuthError, match="SERVICE_KEY_IS_NOT_REGISTERED_ERROR"):
        await locator.find_nearby(GANGNAM_STATION)
    await fetcher.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_find_by_hierarchy_narrows_by_normalized_hint():
    locator, fetcher = _locator()
    _mock_hierarchy()

    zones = await locator.find_by_hierarchy("서울", "강남구", "역삼동", anchor=GANGNAM_STATION)

    assert [z.district_name for z in zones] == ["역삼1동", "역삼2동"]
    first = zones[0]
    assert first.kind is ZoneKind.ADMIN
    assert first.admin_code == "1168064000"
    assert first.display_name == "서울특별시 강남구 역삼1동"
    assert first.province_name == "서울특별시"
    assert first.anchor_point == GANGNAM_STATION
    await fetcher.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_find_by_hierarchy_empty_hint_returns_all():
    locator, fetcher = _locator()
    _mock_hierarchy()

    zones = await locator.find_by_hierarchy("서울특별시", "강남구")

    assert len(zones) == 3
    await fetcher.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_find_by_hierarchy_unmatched_hint_returns_all():
    locator, fetcher = _locator()
    _mock_hierarchy()

    zones = await locator.find_by_hierarchy("서울특별시", "강남구", "압구정동")

    assert len(zones) == 3
    await fetcher.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_find_by_hierarchy_no_districts():
    locator, fetcher = _locator()
    _mock_hierarchy(districts={"body": {"items": []}})

    with pytest.raises(NoResultsError):
        await locator.find_by_hierarchy("서울특별시", "강남구")
    await fetcher.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_find_by_hierarchy_unknown_province():
    locator, fetcher = _locator()
    respx.get(BARO, params__contains={"catId": "mega"}).respond(200, json=PROVINCES)

    with pytest.raises(NotFoundError, match="province_not_found"):
        await locator.find_by_hierarchy("제주특별자치도", "제주시")
    await fetcher.aclose()


@pytest.mark.asyncio
@respx.mock
async def test_find_by_hierarchy_unknown_city():
    locator, fetcher = _locator()
    respx.get(BARO, params__contains={"catId": "mega"}).respond(200, json=PROVINCES)
    respx.get(BARO, params__contains={"catId": "cty"}).respond(200, json=CITIES)

    with pytest.raises(NotFoundError, match="city_not_found"):
        await locator.find_by_hierarchy("서울특별시", "해운대구")
    await fetcher.aclose()


@pytest.mark.asyncio
async def test_find_by_hierarchy_requires_province_and_city():
    locator, fetcher = _locator()
    with pytest.raises(NotFoundError, match="province_missing"):
        await locator.find_by_hierarchy("", "강남구")
    with pytest.raises(NotFoundError, match="city_missing"):
        await locator.find_by_hierarchy("서울특별시", " ")
    await fetcher.aclose()


def test_extract_items_shapes():
    assert extract_items({"body": {"items": [{"a": 1}]}}) == [{"a": 1}]
    assert extract_items({"response": {"body": {"items": {"item": [{"a": 1}, "x"]}}}}) == [{"a": 1}]
    assert extract_items({"items": {"a": 1}}) == [{"a": 1}]
    assert extract_items({"body": {}}) is None
    assert extract_items([]) is None


def test_extract_total_count_and_reference_month():
    payload = {"header": {"stdrYm": "202509"}, "body": {"totalCount": "1234"}}
    assert extract_total_count(payload) == 1234
    assert extract_total_count({"body": {}}, default=7) == 7
    assert extract_reference_month(payload) == "202509"
    assert extract_reference_month({"response": {"header": {"stdrYm": 202508}}}) == "202508"
    assert extract_reference_month({}) == ""


@pytest.mark.parametrize(
    ("name", "expected"),
    [("역삼1동", "역삼"), ("역삼동", "역삼"), ("종로1.2.3.4가동", "종로가"), ("신사", "신사")],
)
def test_normalize_district_name(name, expected):
    assert normalize_district_name(name) == expected


def test_filter_districts_substring_match():
    districts = [{"adongNm": "신사동"}, {"adongNm": "논현1동"}]
    assert filter_districts(districts, "논현") == [{"adongNm": "논현1동"}]
