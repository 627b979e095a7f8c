import logging

import pytest
from sanggwon_geo.errors import ProjectionError
from sanggwon_geo.projection import (
    UTMK_BESSEL,
    UTMK_GRS80,
    WGS84,
    CoordinateReprojector,
    CrsRule,
)


@pytest.mark.parametrize(
    ("x", "expected"),
    [
        (126.97, WGS84),
        (-180.0, WGS84),
        (180.0, WGS84),
        (180.0001, UTMK_BESSEL),
        (197800.0, UTMK_BESSEL),
        (599999.9, UTMK_BESSEL),
        (600000.0, UTMK_GRS80),
        (953900.0, UTMK_GRS80),
    ],
)
def test_detect_thresholds(x, expected):
    assert CoordinateReprojector().detect(x) is expected


def test_normalize_geographic_swaps_axes_only():
    points = CoordinateReprojector().normalize([[126.97, 37.56], [126.98, 37.57]])
    assert [(p.lat, p.lon) for p in points] == [(37.56, 126.97), (37.57, 126.98)]


def test_normalize_grs80_lands_in_seoul():
    point = CoordinateReprojector().normalize([[953900.0, 1952000.0]])[0]
    assert 37.5 < point.lat < 37.65
    assert 126.9 < point.lon < 127.05


def test_normalize_bessel_lands_in_seoul():
    point = CoordinateReprojector().normalize([[197800.0, 451900.0]])[0]
    assert 37.5 < point.lat < 37.65
    assert 126.9 < point.lon < 127.05


def test_normalize_skips_malformed_pairs():
    ring = [[126.97, 37.56], [126.98], "bad", [None, 1], [float("nan"), 37.0], [126.99, 37.58]]
    points = CoordinateReprojector().normalize(ring)
    assert len(points) == 2


def test_normalize_skips_geographic_pair_with_invalid_latitude():
    points = CoordinateReprojector().normalize([[126.97, 137.56], [126.98, 37.57]])
    assert len(points) == 1


def test_normalize_degrades_to_raw_coordinates_and_warns_once(monkeypatch, caplog):
    reprojector = CoordinateReprojector()

    def failing_project(definition, x, y):
        raise ProjectionError("transform_failed: test")

    monkeypatch.setattr(reprojector, "project", failing_project)
    with caplog.at_level(logging.WARNING, logger="sanggwon_geo.projection"):
        points = reprojector.normalize([[953900.0, 1952000.0], [954000.0, 1952100.0]])

    assert [(p.lat, p.lon) for p in points] == [(1952000.0, 953900.0), (1952100.0, 954000.0)]
    assert len([r for r in caplog.records if "reprojection_degraded" in r.getMessage()]) == 1


def test_transformer_is_cached_per_definition():
    reprojector = CoordinateReprojector()
    reprojector.project(UTMK_GRS80, 953900.0, 1952000.0)
    reprojector.project(UTMK_GRS80, 954000.0, 1952100.0)
    assert list(reprojector._transformers) == [UTMK_GRS80.name]


def test_custom_decision_table():
    reprojector = CoordinateReprojector([CrsRule(1000.0, False, WGS84), CrsRule(float("inf"), True, UTMK_GRS80)])
    assert reprojector.detect(999.0) is WGS84
    assert reprojector.detect(1000.0) is UTMK_GRS80
