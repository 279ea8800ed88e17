# dealbot/stats.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict

from loguru import logger

from dealbot.platforms import Network


@dataclass(frozen=True)
class ConversionStats:
    amazon: int = 0
    earnpe: int = 0
    earnkaro: int = 0

    @property
    def total(self) -> int:
        return self.amazon + self.earnpe + self.earnkaro

    def __sub__(self, other: "ConversionStats") -> "ConversionStats":
        return ConversionStats(
            amazon=self.amazon - other.amazon,
            earnpe=self.earnpe - other.earnpe,
            earnkaro=self.earnkaro - other.earnkaro,
        )

    def as_dict(self) -> Dict[str, int]:
        return {
            "amazon": self.amazon,
            "earnpe": self.earnpe,
            "earnkaro": self.earnkaro,
            "total": self.total,
        }


class StatsCounter:
    """Per-network conversion counts; total is always derived from the three."""

    def __init__(self):
        self._stats = ConversionStats()

    def increment(self, network: Network) -> None:
        field_name = getattr(network, "value", network)
        if field_name not in ("amazon", "earnpe", "earnkaro"):
            raise ValueError(f"no counter for network {network!r}")
        self._stats = replace(self._stats, **{field_name: getattr(self._stats, field_name) + 1})

    def snapshot(self) -> ConversionStats:
        return self._stats

    def reset(self) -> None:
        self._stats = ConversionStats()
        logger.info("[Stats] conversion statistics reset")
