from __future__ import annotations

import math

from .config import EngineConfig
from .models import Strategy, StrategyDecision


class StrategySelector:
    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()

    def sample_size(self, estimated_total: int) -> int:
        cfg = self.config
        target = math.ceil(estimated_total * cfg.sampling_fraction)
        return max(cfg.min_sample_size, min(cfg.max_sample_size, target))

    def select(
        self,
        caller_pagination_present: bool,
        estimated_total: int,
        record_threshold: int | None = None,
        *,
        force_complete: bool = False,
        force_sample: bool = False,
    ) -> StrategyDecision:
        if caller_pagination_present:
            return StrategyDecision(Strategy.DIRECT)
        if force_complete:
            return StrategyDecision(Strategy.COMPLETE)
        if force_sample:
            return StrategyDecision(Strategy.SAMPLED, self.sample_size(estimated_total))
        threshold = self.config.record_threshold if record_threshold is None else record_threshold
        if estimated_total <= threshold:
            return StrategyDecision(Strategy.COMPLETE)
        return StrategyDecision(Strategy.SAMPLED, self.sample_size(estimated_total))


def coverage_percent(records: int, total: int) -> float:
    """Share of ``total`` covered by ``records``, rounded to two decimals."""
    if total <= 0:
        return 100.0 if records > 0 else 0.0
    return round(min(100.0, records * 100.0 / total), 2)
