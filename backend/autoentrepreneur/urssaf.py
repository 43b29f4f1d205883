"""Simulateur de cotisations URSSAF (micro-entreprise).

Approximation des barèmes publiés, pas un calcul fiscal :

- taux de base : commerciale 12,4 %, artisanale 22 %, libérale 22 % ;
- ACRE : taux de base divisé par deux (première année) ;
- versement libératoire : taux fixe par activité (1 %, 1,8 %, 2,2 %),
  l'ACRE n'est alors pas appliquée.
"""
from dataclasses import dataclass, asdict
from decimal import Decimal

from autoentrepreneur.errors import ValidationError
from autoentrepreneur.finance import round_cents

ACTIVITIES = ("commercial", "artisanal", "liberal")

BASE_RATES = {
    "commercial": Decimal("0.124"),
    "artisanal": Decimal("0.22"),
    "liberal": Decimal("0.22"),
}
FLAT_RATES = {
    "commercial": Decimal("0.01"),
    "artisanal": Decimal("0.018"),
    "liberal": Decimal("0.022"),
}
ACRE_FACTOR = Decimal("0.5")


@dataclass(frozen=True)
class UrssafSimulation:
    revenue_cents: int
    activity: str
    acre: bool
    flat_rate: bool
    rate: float                 # en pourcentage (12.4 pour 12,4 %)
    contribution_cents: int
    quarterly_cents: int
    monthly_cents: int

    def as_dict(self) -> dict:
        return asdict(self)


def contribution_rate(activity: str, acre: bool = False, flat_rate: bool = False) -> Decimal:
    if activity not in BASE_RATES:
        raise ValidationError(f"Unknown activity {activity!r}, expected one of {', '.join(ACTIVITIES)}")
    if flat_rate:
        return FLAT_RATES[activity]
    rate = BASE_RATES[activity]
    if acre:
        rate = rate * ACRE_FACTOR
    return rate


def simulate(revenue_cents: int, activity: str = "liberal", acre: bool = False, flat_rate: bool = False) -> UrssafSimulation:
    if revenue_cents is None or revenue_cents < 0:
        raise ValidationError("Revenue must be a positive amount")
    rate = contribution_rate(activity, acre, flat_rate)
    contribution = Decimal(int(revenue_cents)) * rate
    return UrssafSimulation(
        revenue_cents=int(revenue_cents),
        activity=activity,
        acre=bool(acre),
        flat_rate=bool(flat_rate),
        rate=float(rate * 100),
        contribution_cents=round_cents(contribution),
        quarterly_cents=round_cents(contribution / 4),
        monthly_cents=round_cents(contribution / 12),
    )
