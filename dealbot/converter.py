# dealbot/converter.py
"""
LinkConverter: the one object that owns config, registry, mapping store and
counters for a process.

convert_all(text):
  1) scan every URL, classify, rewrite, splice back by position
  2) backup sweeps (Amazon, EarnPe, EarnKaro) over the partly converted text,
     using the same rule table, for anything the first pass did not rewrite
  3) save the mapping store (full overwrite)
  4) return the text plus the counter delta for this call
A URL whose rewrite raises is left as it was; the rest of the batch goes on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from loguru import logger

from dealbot.config import Settings
from dealbot.linkwrap import AffiliateTransformer
from dealbot.mappings import MappingStore
from dealbot.platforms import Network, PlatformRegistry, PlatformRule
from dealbot.scanner import DomainClassifier, UniversalScanner
from dealbot.stats import ConversionStats, StatsCounter

SWEEP_ORDER = (Network.AMAZON, Network.EARNPE, Network.EARNKARO)


@dataclass(frozen=True)
class ConversionResult:
    text: str
    stats: ConversionStats = field(default_factory=ConversionStats)


class LinkConverter:
    def __init__(
        self,
        settings: Settings,
        *,
        registry: Optional[PlatformRegistry] = None,
        store: Optional[MappingStore] = None,
        stats: Optional[StatsCounter] = None,
        scanner: Optional[UniversalScanner] = None,
        load_mappings: bool = True,
    ):
        self.settings = settings
        self.registry = registry or PlatformRegistry()
        self.classifier = DomainClassifier(self.registry)
        self.scanner = scanner or UniversalScanner()
        self.store = store if store is not None else MappingStore(settings.mappings_path)
        self.stats = stats or StatsCounter()
        self.transformer = AffiliateTransformer(settings, self.registry, self.store)

        if load_mappings:
            self.store.load()

        counts = self.registry.platform_counts()
        logger.info(
            "[Convert] ✅ platforms ready: EarnPe={} EarnKaro={} Amazon={}",
            counts["earnpe"], counts["earnkaro"], len(self.registry.rules_for(Network.AMAZON)),
        )

    # =========================
    # PUBLIC
    # =========================
    def convert_all(self, text: str) -> ConversionResult:
        if not text or not isinstance(text, str):
            logger.warning("[Convert] ⚠️ no text to convert")
            return ConversionResult(text if isinstance(text, str) else "")

        logger.info("[Convert] 🚀 starting link conversion ({} chars)", len(text))
        before = self.stats.snapshot()

        converted = self._universal_pass(text)
        for network in SWEEP_ORDER:
            converted = self._sweep(converted, network)

        self.store.save()

        delta = self.stats.snapshot() - before
        log = logger.success if delta.total else logger.info
        log(
            "[Convert] 📊 amazon={} earnpe={} earnkaro={} total={} ({} → {} chars)",
            delta.amazon, delta.earnpe, delta.earnkaro, delta.total, len(text), len(converted),
        )
        return ConversionResult(converted, delta)

    def convert_url(self, url: str) -> str:
        """Classify and rewrite one URL; counters move only if it changed."""
        host, network, rule = self.classifier.resolve(url)
        if network == Network.UNKNOWN:
            logger.warning("[Convert] ❓ unknown domain {!r}: {}", host, url)
            return url
        if rule is None:
            logger.info("[Convert] 🎯 keyword match {} → {}", host, network.value)
        return self._apply(url, network, rule)

    def get_stats(self) -> Dict[str, Any]:
        out: Dict[str, Any] = self.stats.snapshot().as_dict()
        out["platforms"] = self.registry.platform_counts()
        return out

    def reset_stats(self) -> None:
        self.stats.reset()

    def get_url_mappings(self) -> MappingStore:
        return self.store

    # =========================
    # PASSES
    # =========================
    def _universal_pass(self, text: str) -> str:
        pieces = []
        cursor = 0
        for match in self.scanner.scan(text):
            pieces.append(text[cursor:match.start])
            pieces.append(self.convert_url(match.url))
            cursor = match.end
        pieces.append(text[cursor:])
        return "".join(pieces)

    def _sweep(self, text: str, network: Network) -> str:
        pattern = self.registry.sweep_pattern(network)
        # The first pass already warned about a missing id.
        if pattern is None or not self.settings.affiliate_id(network):
            return text

        def _repl(m) -> str:
            url = m.group(0)
            rule = self.registry.rule_for_host(self.classifier.extract_domain(url), network)
            return self._apply(url, network, rule)

        return pattern.sub(_repl, text)

    def _apply(self, url: str, network: Network, rule: Optional[PlatformRule]) -> str:
        try:
            new_url = self.transformer.transform(url, network, rule)
        except Exception as e:
            logger.error("[Convert] ❌ {} rewrite failed for {}: {}", network.value, url, e)
            return url
        if new_url != url:
            self.stats.increment(network)
        return new_url
