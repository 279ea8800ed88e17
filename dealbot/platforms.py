# dealbot/platforms.py
"""
Static retailer tables per affiliate network.

Each PlatformRule ties one registered domain to its network, the rewrite it
gets, the platform name written into mappings, and the alias host used when
a shortened redirect is synthesized. Rules are evaluated in table order,
first match wins. The same rules drive classification and the backup sweeps.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple


class Network(str, Enum):
    AMAZON = "amazon"
    EARNPE = "earnpe"
    EARNKARO = "earnkaro"
    UNKNOWN = "unknown"


class RewriteKind(str, Enum):
    DEEP_LINK = "deep-link-append"
    SHORT_REDIRECT = "shortened-redirect"
    CANONICAL = "canonical-rewrite"


# scheme://[sub.]domain/<rest>, rest stops at whitespace or a closing bracket
_REST = r"/[^\s\])}>]*"


@dataclass(frozen=True)
class PlatformRule:
    domain: str
    network: Network
    kind: RewriteKind
    platform: str
    alias: str = "short"
    pattern: "re.Pattern[str]" = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "pattern", re.compile(self.pattern_source(), re.I))

    def pattern_source(self) -> str:
        return r"https?://(?:[a-z0-9-]+\.)*" + re.escape(self.domain) + _REST

    def matches_host(self, host: str) -> bool:
        host = (host or "").lower()
        return host == self.domain or host.endswith("." + self.domain)


def _rules(network: Network, rows: Iterable[tuple]) -> Tuple[PlatformRule, ...]:
    out: List[PlatformRule] = []
    for row in rows:
        domain, kind, platform = row[:3]
        alias = row[3] if len(row) > 3 else "short"
        out.append(PlatformRule(domain, network, kind, platform, alias))
    return tuple(out)


_DEEP = RewriteKind.DEEP_LINK
_SHORT = RewriteKind.SHORT_REDIRECT
_CANON = RewriteKind.CANONICAL

# =========================
# TABLES
# =========================
AMAZON_RULES = _rules(Network.AMAZON, [
    (d, _CANON, "amazon") for d in (
        "amzn.to",
        "amazon.in", "amazon.com", "amazon.co.uk", "amazon.de", "amazon.fr",
        "amazon.it", "amazon.es", "amazon.co.jp", "amazon.ca", "amazon.com.au",
        "amazon.com.mx", "amazon.com.br", "amazon.ae", "amazon.sa", "amazon.sg",
        "amazon.com.tr",
    )
])

EARNPE_RULES = _rules(Network.EARNPE, [
    ("flipkart.com",       _DEEP,  "flipkart"),
    ("fkrt.to",            _DEEP,  "flipkart"),
    ("myntra.com",         _DEEP,  "myntra"),
    ("mynt.ro",            _DEEP,  "myntra"),
    ("ajio.com",           _DEEP,  "ajio"),
    ("tatacliq.com",       _DEEP,  "tatacliq"),
    ("boat-lifestyle.com", _SHORT, "boat-lifestyle.com", "boat"),
    ("nykaa.com",          _SHORT, "nykaa.com",          "nykaa"),
    ("croma.com",          _SHORT, "croma.com",          "croma"),
    ("samsung.com",        _SHORT, "samsung.com",        "samsung"),
    ("oneplus.in",         _SHORT, "oneplus.in",         "oneplus"),
    ("gonoise.com",        _SHORT, "gonoise.com",        "gonoise"),
    ("firstcry.com",       _SHORT, "firstcry.com",       "firstcry"),
    ("realme.com",         _SHORT, "realme.com",         "realme"),
    ("mi.com",             _SHORT, "mi.com",             "mi"),
    ("vivo.com",           _SHORT, "vivo.com",           "vivo"),
    ("purplle.com",        _SHORT, "purplle.com",        "purplle"),
    ("snapdeal.com",       _SHORT, "snapdeal.com",       "snapdeal"),
    ("limeroad.com",       _SHORT, "limeroad.com",       "limeroad"),
    ("koovs.com",          _SHORT, "koovs.com",          "koovs"),
    ("tinyurl.com",        _SHORT, "tinyurl.com"),
    ("bitl.li",            _SHORT, "bitl.li"),
])

EARNKARO_RULES = _rules(Network.EARNKARO, [
    ("meesho.com",     _DEEP,  "meesho"),
    ("paytmmall.com",  _DEEP,  "paytmmall"),
    ("bigbasket.com",  _DEEP,  "bigbasket"),
    ("swiggy.com",     _DEEP,  "swiggy"),
    ("zomato.com",     _DEEP,  "zomato"),
    ("makemytrip.com", _SHORT, "makemytrip.com", "makemytrip"),
    ("goibibo.com",    _SHORT, "goibibo.com",    "goibibo"),
    ("lenskart.com",   _SHORT, "lenskart.com",   "lenskart"),
    ("bewakoof.com",   _SHORT, "bewakoof.com",   "bewakoof"),
    ("pharmeasy.in",   _SHORT, "pharmeasy.in",   "pharmeasy"),
    ("1mg.com",        _SHORT, "1mg.com",        "1mg"),
    ("netmeds.com",    _SHORT, "netmeds.com",    "netmeds"),
    ("shopclues.com",  _SHORT, "shopclues.com",  "shopclues"),
    ("blinkit.com",    _SHORT, "blinkit.com",    "blinkit"),
    ("zeptonow.com",   _SHORT, "zeptonow.com",   "zepto"),
    ("dunzo.com",      _SHORT, "dunzo.com",      "dunzo"),
])

# Only consulted for hosts no rule claims.
EARNPE_KEYWORDS = ("fashion", "clothing", "beauty", "cosmetics", "apparel")
EARNKARO_KEYWORDS = ("food", "grocery", "delivery", "transport", "travel")


# =========================
# REGISTRY
# =========================
class PlatformRegistry:
    """Read-only after construction."""

    def __init__(
        self,
        amazon: Iterable[PlatformRule] = AMAZON_RULES,
        earnpe: Iterable[PlatformRule] = EARNPE_RULES,
        earnkaro: Iterable[PlatformRule] = EARNKARO_RULES,
        *,
        earnpe_keywords: Iterable[str] = EARNPE_KEYWORDS,
        earnkaro_keywords: Iterable[str] = EARNKARO_KEYWORDS,
    ):
        self._tables: Dict[Network, Tuple[PlatformRule, ...]] = {
            Network.AMAZON: tuple(amazon),
            Network.EARNPE: tuple(earnpe),
            Network.EARNKARO: tuple(earnkaro),
        }
        self._keywords: Tuple[Tuple[Network, Tuple[str, ...]], ...] = (
            (Network.EARNPE, tuple(k.lower() for k in earnpe_keywords)),
            (Network.EARNKARO, tuple(k.lower() for k in earnkaro_keywords)),
        )
        self._sweeps: Dict[Network, Optional["re.Pattern[str]"]] = {
            net: (re.compile("|".join(r.pattern_source() for r in rules), re.I) if rules else None)
            for net, rules in self._tables.items()
        }

    @property
    def rules(self) -> Tuple[PlatformRule, ...]:
        return tuple(r for rules in self._tables.values() for r in rules)

    def rules_for(self, network: Network) -> Tuple[PlatformRule, ...]:
        return self._tables.get(network, ())

    def rule_for_host(self, host: str, network: Optional[Network] = None) -> Optional[PlatformRule]:
        if not host:
            return None
        candidates = self.rules_for(network) if network else self.rules
        for rule in candidates:
            if rule.matches_host(host):
                return rule
        return None

    def keyword_network(self, host: str) -> Network:
        host = (host or "").lower()
        for network, words in self._keywords:
            if any(w in host for w in words):
                return network
        return Network.UNKNOWN

    def classify(self, domain: str) -> Network:
        rule = self.rule_for_host(domain)
        if rule:
            return rule.network
        return self.keyword_network(domain)

    def generic_rule(self, network: Network, host: str) -> PlatformRule:
        """Fallback rule for a keyword-matched host: shortened redirect on the generic alias."""
        host = (host or "").lower()
        if host.startswith("www."):
            host = host[4:]
        return PlatformRule(host or "unknown", network, RewriteKind.SHORT_REDIRECT, host or network.value)

    def sweep_pattern(self, network: Network) -> Optional["re.Pattern[str]"]:
        return self._sweeps.get(network)

    def platform_counts(self) -> Dict[str, int]:
        return {
            "earnpe": len(self.rules_for(Network.EARNPE)),
            "earnkaro": len(self.rules_for(Network.EARNKARO)),
        }
