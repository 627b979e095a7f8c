from sanggwon_geo.cache import PolygonCache
from sanggwon_geo.models import Point, Polygon, ProgressEvent, Store


def test_cache_returns_stored_polygon():
    cache = PolygonCache()
    polygon = Polygon(rings=[[Point(lat=37.5, lon=127.0), Point(lat=37.6, lon=127.0), Point(lat=37.6, lon=127.1)]])
    cache.put("서울특별시 강남구 역삼1동", polygon)

    assert cache.get("서울특별시 강남구 역삼1동") is polygon
    assert cache.get("서울특별시 강남구 역삼2동") is None
    assert len(cache) == 1
    cache.clear()
    assert "서울특별시 강남구 역삼1동" not in cache


def test_polygon_helpers():
    assert Polygon.empty().is_empty
    assert Polygon(rings=[[]]).is_empty
    polygon = Polygon(rings=[[Point(lat=37.5, lon=127.0)]])
    assert polygon.as_lat_lon() == [[[37.5, 127.0]]]


def test_store_keeps_unknown_fields():
    store = Store.model_validate({"bizesNm": "스타벅스", "lon": "", "ksicNm": "커피전문점"})
    assert store.business_name == "스타벅스"
    assert store.lon is None
    assert store.model_extra["ksicNm"] == "커피전문점"


def test_progress_message_single_page():
    assert ProgressEvent(phase="stores", current=2, total=2, batch_start=2).message == "stores: page 2 of 2"
