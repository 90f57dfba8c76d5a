from __future__ import annotations

from innoquest.settlement.numeric import round_half_up


def base_demand(avg_purchase_probability: float | None, population_size: int, fallback: float = 0.5) -> int:
    """Units sold from a purchase probability given in percent.

    None means the probability is unknown and the fallback percent is used;
    0 is a real answer (price too high for anyone to buy).
    """
    probability = fallback if avg_purchase_probability is None else avg_purchase_probability
    return max(0, round_half_up(population_size * probability / 100.0))


def apply_multiplier(demand: int, multiplier: float) -> int:
    if multiplier == 1.0:
        return demand
    return max(0, round_half_up(demand * multiplier))


def revenue_for(demand: int, price: float) -> float:
    if price <= 0:
        return 0.0
    return demand * price
