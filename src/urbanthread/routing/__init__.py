"""Route scoring package."""

from urbanthread.routing.incidents import find_route_incidents
from urbanthread.routing.scorer import compare_routes, recommend, score_routes

__all__ = ["compare_routes", "find_route_incidents", "recommend", "score_routes"]
