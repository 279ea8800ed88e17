# dealbot/scanner.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple
from urllib.parse import urlsplit

from loguru import logger

from dealbot.platforms import Network, PlatformRegistry, PlatformRule

# =========================
# REGEX
# =========================
URL_RE = re.compile(r"https?://(?:www\.)?[^\s\])}>]*", re.I)
_HOST_FALLBACK_RE = re.compile(r"://(?:www\.)?([^/\s]+)", re.I)


@dataclass(frozen=True)
class UrlMatch:
    url: str
    start: int
    end: int


class UniversalScanner:
    """Finds every http(s) URL in free text, in order of appearance."""

    def __init__(self, pattern: "re.Pattern[str]" = URL_RE):
        self.pattern = pattern

    def scan(self, text: str) -> Iterator[UrlMatch]:
        # Spans, not values: the same URL can appear twice and each
        # occurrence is replaced on its own.
        for m in self.pattern.finditer(text or ""):
            yield UrlMatch(m.group(0), m.start(), m.end())

    def extract_urls(self, text: str) -> Iterator[str]:
        return (m.url for m in self.scan(text))


def extract_domain(url: str) -> str:
    """
    Lower-cased hostname of a URL.
    Structural parse first; if that fails, take whatever sits between '://'
    (minus a leading 'www.') and the next '/' or whitespace. '' when neither works.
    """
    try:
        host = urlsplit(url or "").hostname
    except ValueError:
        host = None
    if host:
        return host.lower()
    m = _HOST_FALLBACK_RE.search(url or "")
    if m:
        logger.debug("[Scan] fallback host extraction for {}", url)
        return m.group(1).lower()
    return ""


class DomainClassifier:
    def __init__(self, registry: PlatformRegistry):
        self.registry = registry

    extract_domain = staticmethod(extract_domain)

    def classify(self, domain: str) -> Network:
        if not domain:
            return Network.UNKNOWN
        return self.registry.classify(domain)

    def resolve(self, url: str) -> Tuple[str, Network, Optional[PlatformRule]]:
        """Host, network, and the registered rule (None for keyword or unknown hosts)."""
        host = self.extract_domain(url)
        if not host:
            return host, Network.UNKNOWN, None
        rule = self.registry.rule_for_host(host)
        if rule:
            return host, rule.network, rule
        return host, self.registry.keyword_network(host), None
