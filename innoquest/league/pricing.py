from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
import numpy as np

from innoquest.league.ports import PricingService

logger = logging.getLogger(__name__)


class BoundedPricing:
    """Wraps a pricing service so one slow or failing lookup cannot stall settlement.

    Timeouts, errors and non-numeric answers all come back as None (unknown),
    which the demand calculation turns into its fallback probability.
    """

    def __init__(self, service: PricingService, timeout_seconds: float = 2.0, max_workers: int = 4):
        self.service = service
        self.timeout_seconds = timeout_seconds
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pricing")

    def resolve(self, team_id: str, product_id: str | None, price: float) -> float | None:
        future = self._pool.submit(self.service.resolve_avg_purchase_probability, team_id, product_id, price)
        try:
            value = future.result(timeout=self.timeout_seconds)
        except FutureTimeout:
            future.cancel()
            logger.warning("Pricing lookup for team %s timed out after %.1fs; using fallback", team_id, self.timeout_seconds)
            return None
        except Exception as exc:
            logger.warning("Pricing lookup for team %s failed (%s); using fallback", team_id, exc)
            return None
        if value is None:
            logger.warning("No purchase probabilities for team %s at price %s; using fallback", team_id, price)
            return None
        try:
            value = float(value)
        except (TypeError, ValueError):
            logger.warning("Pricing lookup for team %s returned %r; using fallback", team_id, value)
            return None
        if np.isnan(value):
            return None
        return float(np.clip(value, 0.0, 100.0))

    def close(self) -> None:
        self._pool.shutdown(wait=False, cancel_futures=True)
