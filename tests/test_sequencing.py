from beatplan.models.domain import Stop
from beatplan.services.routing.metrics import path_distance_km
from beatplan.services.routing.sequencing import nearest_neighbor_order, two_opt

DEPOT = (24.70, 46.70)


def _stop(cid: str, lat: float, lon: float) -> Stop:
    return Stop(customer_id=cid, latitude=lat, longitude=lon, territory_id="T01")


def _line(count: int) -> list[Stop]:
    return [_stop(f"s{i}", DEPOT[0], DEPOT[1] + 0.01 * (i + 1)) for i in range(count)]


def test_nearest_neighbor_order_walks_outward():
    stops = _line(5)
    shuffled = [stops[3], stops[0], stops[4], stops[2], stops[1]]

    ordered = nearest_neighbor_order(shuffled, *DEPOT)

    assert [stop.customer_id for stop in ordered] == ["s0", "s1", "s2", "s3", "s4"]


def test_two_opt_untangles_a_crossing_path():
    stops = _line(6)
    tangled = [stops[0], stops[4], stops[2], stops[3], stops[1], stops[5]]

    improved = two_opt(tangled, *DEPOT)

    assert path_distance_km(improved, *DEPOT) < path_distance_km(tangled, *DEPOT)
    assert [stop.customer_id for stop in improved] == ["s0", "s1", "s2", "s3", "s4", "s5"]


def test_two_opt_keeps_every_stop():
    stops = [
        _stop("a", 24.71, 46.71),
        _stop("b", 24.69, 46.72),
        _stop("c", 24.72, 46.69),
        _stop("d", 24.68, 46.68),
        _stop("e", 24.70, 46.73),
    ]

    improved = two_opt(stops, *DEPOT)

    assert sorted(stop.customer_id for stop in improved) == ["a", "b", "c", "d", "e"]
    assert path_distance_km(improved, *DEPOT) <= path_distance_km(stops, *DEPOT) + 1e-9


def test_two_opt_short_routes_unchanged():
    stops = _line(2)
    assert two_opt(stops, *DEPOT) == stops


def test_two_opt_zero_iterations_returns_input_order():
    stops = _line(4)
    reordered = [stops[2], stops[0], stops[3], stops[1]]
    assert two_opt(reordered, *DEPOT, max_iterations=0) == reordered
