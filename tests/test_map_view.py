import pytest

from community_events.map_view import (
    DEFAULT_CENTER,
    DEFAULT_ZOOM,
    FIT_PADDING,
    SINGLE_POINT_ZOOM,
    LatLngBounds,
    MapView,
    ViewState,
    fit_view,
    pixel_offset,
)

from .conftest import make_event


def test_no_points_keeps_current_view():
    current = ViewState((40.0, -90.0), 11)
    assert fit_view([], current) is current
    assert fit_view([]) == ViewState(DEFAULT_CENTER, DEFAULT_ZOOM)


def test_single_point_centres_at_close_zoom():
    view = fit_view([(39.80, -89.64)])
    assert view.center == (39.80, -89.64)
    assert view.zoom == SINGLE_POINT_ZOOM == 14


def test_two_points_fit_with_padding():
    points = [(39.80, -89.64), (39.79, -89.65)]
    size = (640, 420)
    view = fit_view(points, size=size)

    assert view.bounds == LatLngBounds(39.79, -89.65, 39.80, -89.64)
    assert all(view.bounds.contains(p) for p in points)
    for p in points:
        x, y = pixel_offset(view, p, size)
        assert FIT_PADDING[0] <= x <= size[0] - FIT_PADDING[0]
        assert FIT_PADDING[1] <= y <= size[1] - FIT_PADDING[1]


def test_fitted_zoom_is_the_tightest_that_fits():
    points = [(39.80, -89.64), (39.79, -89.65)]
    size = (640, 420)
    view = fit_view(points, size=size)
    closer = ViewState(view.center, view.zoom + 1)
    offsets = [pixel_offset(closer, p, size) for p in points]
    assert any(
        not (FIT_PADDING[0] <= x <= size[0] - FIT_PADDING[0])
        or not (FIT_PADDING[1] <= y <= size[1] - FIT_PADDING[1])
        for x, y in offsets
    )


def test_identical_points_use_max_zoom_without_dividing_by_zero():
    view = fit_view([(39.8, -89.6), (39.8, -89.6)])
    assert view.center == pytest.approx((39.8, -89.6))
    assert view.zoom == 18


def test_map_view_refits_only_for_a_new_list():
    events = [make_event("1"), make_event("2", lat=39.79, lng=-89.65)]
    view = MapView()
    assert view.set_events(events) is True
    first = view.view
    assert view.set_events(events) is False
    assert view.view is first
    assert [m.event_id for m in view.markers] == ["1", "2"]

    assert view.set_events(events[:1]) is True
    assert view.view.zoom == SINGLE_POINT_ZOOM


def test_empty_list_leaves_view_where_it_was():
    view = MapView()
    view.set_events([make_event("1")])
    before = view.view
    view.set_events([])
    assert view.view == before
    assert view.markers == []


def test_marker_click_reports_event():
    clicked = []
    events = [make_event("1"), make_event("2", lat=39.79)]
    view = MapView(on_marker_click=clicked.append)
    view.set_events(events)

    assert view.click("2") is events[1]
    assert clicked == [events[1]]
    assert view.click("missing") is None
    assert clicked == [events[1]]
