"""Route model and route-map key matching."""

from perch.routing.patterns import RouteFilter, RouteKey, compile_key
from perch.routing.route import Route, RouteRepresentation, is_child_of, parse_route, routes_equal

__all__ = [
    "Route",
    "RouteFilter",
    "RouteKey",
    "RouteRepresentation",
    "compile_key",
    "is_child_of",
    "parse_route",
    "routes_equal",
]
