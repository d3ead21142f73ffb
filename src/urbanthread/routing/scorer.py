"""Incident-weighted route variants.

The variants are rows of one table evaluated by a single scoring function;
adding a variant means adding a ``RouteVariant``, not another code path.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from urbanthread.geo import distance_km
from urbanthread.models import (
    GeoPoint,
    IncidentSummary,
    RouteAnalysis,
    RouteComparison,
    RouteResult,
    RouteSet,
    RouteType,
)


DELAY_MINUTES = {"High": 5, "Medium": 2, "Low": 0}
SAFETY_PENALTY = {"High": 15, "Medium": 8, "Low": 3}

FASTEST_BASE_SAFETY = 90
FASTEST_SAFETY_FLOOR = 30
ECO_SAFETY = 75
SAFEST_BASE_SAFETY = 95
SAFEST_PENALTY_PER_INCIDENT = 2


@dataclass(frozen=True)
class IncidentTally:
    total: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    @property
    def delay_minutes(self) -> int:
        return self.high * DELAY_MINUTES["High"] + self.medium * DELAY_MINUTES["Medium"]

    @property
    def safety_penalty(self) -> int:
        return (
            self.high * SAFETY_PENALTY["High"]
            + self.medium * SAFETY_PENALTY["Medium"]
            + self.low * SAFETY_PENALTY["Low"]
        )


def _count_all(_: IncidentSummary) -> bool:
    return True


def tally(
    incidents: Iterable[IncidentSummary],
    counts: Callable[[IncidentSummary], bool] = _count_all,
) -> IncidentTally:
    high = medium = low = 0
    for incident in incidents:
        if not counts(incident):
            continue
        if incident.severity == "High":
            high += 1
        elif incident.severity == "Medium":
            medium += 1
        else:
            low += 1
    return IncidentTally(total=high + medium + low, high=high, medium=medium, low=low)


def _count_none(_: IncidentSummary) -> bool:
    return False


def _not_high_traffic(incident: IncidentSummary) -> bool:
    return not (incident.severity == "High" and incident.category == "Traffic")


def _fastest_safety(on_route: IncidentTally, observed: IncidentTally) -> int:
    return max(FASTEST_SAFETY_FLOOR, FASTEST_BASE_SAFETY - on_route.safety_penalty)


def _eco_safety(on_route: IncidentTally, observed: IncidentTally) -> int:
    return ECO_SAFETY


def _safest_safety(on_route: IncidentTally, observed: IncidentTally) -> int:
    # Penalised by everything observed nearby, not by its own (empty) tally.
    return SAFEST_BASE_SAFETY - SAFEST_PENALTY_PER_INCIDENT * observed.total


@dataclass(frozen=True)
class RouteVariant:
    name: RouteType
    distance_multiplier: float
    minutes_per_km: float
    cost_per_km: float
    counts_incident: Callable[[IncidentSummary], bool]
    safety: Callable[[IncidentTally, IncidentTally], int]
    description: str = ""
    features: tuple[str, ...] = ()


FASTEST = RouteVariant(
    name="fastest",
    distance_multiplier=1.0,
    minutes_per_km=1.2,
    cost_per_km=8,
    counts_incident=_count_all,
    safety=_fastest_safety,
    description="Direct route using major roads and highways",
    features=("Highway routes preferred", "Minimal stops", "Reported incidents considered"),
)
ECO = RouteVariant(
    name="eco",
    distance_multiplier=1.08,
    minutes_per_km=1.4,
    cost_per_km=6,
    counts_incident=_not_high_traffic,
    safety=_eco_safety,
    description="Avoids highways and keeps a steady, fuel-efficient speed",
    features=("Reduced highway usage", "Smoother traffic flow", "Optimal speed maintenance"),
)
SAFEST = RouteVariant(
    name="safest",
    distance_multiplier=1.15,
    minutes_per_km=1.6,
    cost_per_km=7,
    counts_incident=_count_none,
    safety=_safest_safety,
    description="Local roads routed around every known incident zone",
    features=("Avoids highways", "Uses local roads", "Routes around reported incidents"),
)

VARIANTS: tuple[RouteVariant, ...] = (FASTEST, ECO, SAFEST)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_duration(minutes: int) -> str:
    return f"{minutes // 60}h {minutes % 60}m"


def score_variant(
    variant: RouteVariant,
    origin: GeoPoint,
    destination: GeoPoint,
    incidents: Sequence[IncidentSummary],
    currency_symbol: str = "₹",
) -> RouteResult:
    """Evaluate one variant against the incidents near the trip."""
    base_km = distance_km(origin, destination)
    variant_km = base_km * variant.distance_multiplier

    observed = tally(incidents)
    on_route = tally(incidents, variant.counts_incident)

    minutes = round_half_up(variant_km * variant.minutes_per_km) + on_route.delay_minutes
    cost = round_half_up(variant_km * variant.cost_per_km)
    safety = min(100, max(0, variant.safety(on_route, observed)))

    return RouteResult(
        type=variant.name,
        duration=format_duration(minutes),
        duration_minutes=minutes,
        distance=f"{variant_km:.1f} km",
        distance_km=round(variant_km, 2),
        cost_estimate=cost,
        estimated_fuel_cost=f"{currency_symbol}{cost}",
        incidents_on_route=on_route.total,
        high_severity_incidents=on_route.high,
        safety_score=safety,
        start_address=f"{origin.lat}, {origin.lng}",
        end_address=f"{destination.lat}, {destination.lng}",
        description=variant.description,
        features=list(variant.features),
    )


def score_routes(
    origin: GeoPoint,
    destination: GeoPoint,
    incidents: Sequence[IncidentSummary] = (),
    currency_symbol: str = "₹",
) -> RouteSet:
    """Score fastest, eco and safest for one trip. Pure."""
    results = {
        variant.name: score_variant(variant, origin, destination, incidents, currency_symbol)
        for variant in VARIANTS
    }
    return RouteSet(**results)


def recommend(routes: RouteSet, incidents: Sequence[IncidentSummary]) -> RouteType:
    """Pick one variant from incident load and time penalties."""
    observed = tally(incidents)
    eco_penalty = routes.eco.duration_minutes - routes.fastest.duration_minutes

    if observed.total > 5 or observed.high > 2:
        return "safest"
    if eco_penalty < 30 and observed.total < 3:
        return "eco"
    if observed.total <= 2 and routes.fastest.duration_minutes < 60:
        return "fastest"
    return "safest" if observed.total > 2 else "fastest"


def compare_routes(
    origin: GeoPoint,
    destination: GeoPoint,
    incidents: Sequence[IncidentSummary] = (),
    currency_symbol: str = "₹",
) -> RouteComparison:
    """Score all variants and explain the trade-offs."""
    routes = score_routes(origin, destination, incidents, currency_symbol)
    observed = tally(incidents)

    eco_extra = routes.eco.duration_minutes - routes.fastest.duration_minutes
    safest_extra = routes.safest.duration_minutes - routes.fastest.duration_minutes
    eco_savings = routes.fastest.cost_estimate - routes.eco.cost_estimate

    recommendations: list[str] = []
    if eco_extra < 30:
        recommendations.append(
            f"Eco route adds {eco_extra} min and saves {currency_symbol}{eco_savings}"
        )
    if safest_extra < 60:
        recommendations.append(f"Safest route adds {safest_extra} min and avoids all incidents")
    if observed.total:
        recommendations.append(
            f"{observed.total} active incident(s) nearby, {observed.high} high severity"
        )

    return RouteComparison(
        routes=routes,
        analysis=RouteAnalysis(
            eco_extra_minutes=eco_extra,
            safest_extra_minutes=safest_extra,
            eco_savings=eco_savings,
            recommendations=recommendations,
        ),
        recommended=recommend(routes, incidents),
        incidents=list(incidents),
    )
