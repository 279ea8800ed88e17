# dealbot/linkwrap.py
"""
Per-network affiliate rewriting for a single URL.

Responsibilities
- Amazon    -> strip tracking params, localize the marketplace, add ?tag=... (+ aux params)
               amzn.to short links just get the tag appended (never expanded)
- EarnPe    -> deep link (?affid=...) for bespoke platforms, synthesized short redirect otherwise
- EarnKaro  -> same shape as EarnPe with its own id and platforms
- A URL that already carries our marker/id is returned untouched.
- Deep links, short redirects and full Amazon rewrites each leave a ConversionRecord.
"""

from __future__ import annotations

import re
from typing import Optional

from loguru import logger

from dealbot.config import Settings
from dealbot.mappings import MappingStore
from dealbot.platforms import Network, PlatformRegistry, PlatformRule, RewriteKind
from dealbot.scanner import extract_domain

# =========================
# AMAZON CONSTANTS
# =========================
AMAZON_SHORT_HOSTS = ("amzn.to",)
# No language=en_IN: "language" is on the strip list below.
AMAZON_AUX_PARAMS = "ref_=as_li_ss_tl&linkCode=ogi"

REGION_DOMESTIC = "india"
REGION_GLOBAL = "global"
DOMESTIC_DOMAIN = "amazon.in"
INTERNATIONAL_DOMAIN = "amazon.com"

# Tracking / foreign-affiliate params removed from full Amazon links.
AMAZON_TRACKING_PARAMS = (
    "tag", "ref", "linkCode", "camp", "creative", "ascsubtag", "keywords",
    "qid", "sprefix", "sr", "_encoding", "psc", "refRID", "th", "smid",
    "linkId", "ref_", "adgrpid", "hvadid", "hvpos", "hvnetw", "hvrand",
    "hvpone", "hvptwo", "hvqmt", "hvdev", "hvdvcmdl", "hvlocint", "hvlocphy",
    "hvtargid", "pf_rd_p", "pf_rd_r", "pd_rd_wg", "pd_rd_r", "pd_rd_w",
    "pf_rd_i", "pf_rd_m", "pf_rd_s", "pf_rd_t", "pd_rd_i", "ie", "nodeId",
    "store-ref", "dchild", "crid", "language", "rnid", "rh", "sort",
    "low-price", "high-price", "review-rank", "avg-customer-review",
)

# =========================
# REGEX
# =========================
_TRACKING_RES = tuple(
    re.compile(r"[?&]" + re.escape(p) + r"=[^&]*", re.I) for p in AMAZON_TRACKING_PARAMS
)
_DOMESTIC_RE = re.compile(r"amazon\.in\b", re.I)
_INTERNATIONAL_RE = re.compile(
    r"amazon\.(?:com\.au|com\.mx|com\.br|com\.tr|co\.uk|co\.jp|com|de|fr|it|es|ca|ae|sa|sg)\b",
    re.I,
)

PARTNER_MARKERS = {
    Network.EARNPE: "earnpe",
    Network.EARNKARO: "earnkaro",
}
_LOG_TAG = {
    Network.AMAZON: "[Amazon]",
    Network.EARNPE: "[EarnPe]",
    Network.EARNKARO: "[EarnKaro]",
}


# =========================
# HELPERS
# =========================
def append_query(url: str, params: str) -> str:
    """Add 'k=v[&k=v]' to a URL: '?' if it has no query yet, '&' otherwise. Fragment stays last."""
    base, hash_, frag = url.partition("#")
    sep = "&" if "?" in base else "?"
    return f"{base}{sep}{params}{hash_}{frag}"

def has_param(url: str, name: str, value: str) -> bool:
    """True if the query carries exactly name=value (not name=value-something)."""
    pat = r"[?&]" + re.escape(name) + "=" + re.escape(value) + r"(?:[&#]|$)"
    return re.search(pat, url or "") is not None

def strip_tracking_params(url: str) -> str:
    """
    Drop each known tracking param with its own substitution, then tidy the
    separators left behind ('?&', '&&', trailing '?', a query that lost its '?').
    """
    base, hash_, frag = url.partition("#")
    for pat in _TRACKING_RES:
        base = pat.sub("", base)
    base = re.sub(r"[?&]{2,}", "&", base)
    base = re.sub(r"[?&]+$", "", base)
    if "?" not in base and "&" in base:
        base = base.replace("&", "?", 1)
    base = base.replace("?&", "?")
    return f"{base}{hash_}{frag}"

def detect_amazon_region(url: str) -> str:
    """Explicit amazon.in wins, any other marketplace is global, no hint means domestic."""
    if _DOMESTIC_RE.search(url):
        return REGION_DOMESTIC
    if _INTERNATIONAL_RE.search(url):
        return REGION_GLOBAL
    return REGION_DOMESTIC

def localize_amazon(url: str, region: str) -> str:
    if region == REGION_DOMESTIC:
        return _INTERNATIONAL_RE.sub(DOMESTIC_DOMAIN, url)
    return _DOMESTIC_RE.sub(INTERNATIONAL_DOMAIN, url)

def is_amazon_short(host: str) -> bool:
    host = (host or "").lower()
    return any(host == h or host.endswith("." + h) for h in AMAZON_SHORT_HOSTS)


# =========================
# TRANSFORMER
# =========================
class AffiliateTransformer:
    def __init__(self, settings: Settings, registry: PlatformRegistry, store: MappingStore):
        self.settings = settings
        self.registry = registry
        self.store = store
        self._partner_handlers = {
            RewriteKind.DEEP_LINK: self._deep_link,
            RewriteKind.SHORT_REDIRECT: self._short_redirect,
        }

    def transform(self, url: str, network: Network, rule: Optional[PlatformRule] = None) -> str:
        if network == Network.AMAZON:
            return self.convert_amazon(url)
        if network == Network.EARNPE:
            return self.convert_earnpe(url, rule)
        if network == Network.EARNKARO:
            return self.convert_earnkaro(url, rule)
        return url

    # ---------- Amazon ----------
    def convert_amazon(self, url: str) -> str:
        tag = self.settings.amazon_tag
        if not tag:
            logger.warning("[Amazon] ⚠️ tag not configured; leaving {} as-is", url)
            return url
        if has_param(url, "tag", tag):
            logger.debug("[Amazon] already tagged: {}", url)
            return url

        if is_amazon_short(extract_domain(url)):
            # Not expanded: the tag rides on the short link as-is.
            affiliate_url = append_query(url, f"tag={tag}&{AMAZON_AUX_PARAMS}")
            logger.info("[Amazon] ✅ short link {} → {}", url, affiliate_url)
            return affiliate_url

        region = detect_amazon_region(url)
        cleaned = localize_amazon(strip_tracking_params(url), region)
        affiliate_url = append_query(cleaned, f"tag={tag}&{AMAZON_AUX_PARAMS}")

        if not has_param(affiliate_url, "tag", tag):
            logger.error("[Amazon] ❌ tag verification failed for {}; keeping original", url)
            return url

        self.store.create(
            original_url=url,
            affiliate_url=affiliate_url,
            network=Network.AMAZON,
            platform="amazon",
            affiliate_id=tag,
            region=region,
        )
        logger.info("[Amazon] ✅ ({}) {} → {}", region, url, affiliate_url)
        return affiliate_url

    # ---------- EarnPe / EarnKaro ----------
    def convert_earnpe(self, url: str, rule: Optional[PlatformRule] = None) -> str:
        return self._convert_partner(url, Network.EARNPE, self.settings.earnpe_id, rule)

    def convert_earnkaro(self, url: str, rule: Optional[PlatformRule] = None) -> str:
        return self._convert_partner(url, Network.EARNKARO, self.settings.earnkaro_id, rule)

    def _convert_partner(
        self, url: str, network: Network, affiliate_id: Optional[str], rule: Optional[PlatformRule]
    ) -> str:
        tag = _LOG_TAG[network]
        if not affiliate_id:
            logger.warning("{} ⚠️ id not configured; leaving {} as-is", tag, url)
            return url
        if PARTNER_MARKERS[network] in url.lower() or has_param(url, "affid", affiliate_id):
            logger.debug("{} already converted: {}", tag, url)
            return url

        host = extract_domain(url)
        if rule is None or rule.network != network:
            rule = self.registry.rule_for_host(host, network) or self.registry.generic_rule(network, host)

        handler = self._partner_handlers.get(rule.kind, self._short_redirect)
        return handler(url, rule, affiliate_id)

    def _deep_link(self, url: str, rule: PlatformRule, affiliate_id: str) -> str:
        affiliate_url = append_query(url, f"affid={affiliate_id}")
        self.store.create(
            original_url=url,
            affiliate_url=affiliate_url,
            network=rule.network,
            platform=rule.platform,
            affiliate_id=affiliate_id,
        )
        logger.info("{} ✅ {} deep link {} → {}", _LOG_TAG[rule.network], rule.platform, url, affiliate_url)
        return affiliate_url

    def _short_redirect(self, url: str, rule: PlatformRule, affiliate_id: str) -> str:
        code = self.store.new_code()
        short_url = f"https://{rule.alias}.io/{code}"
        self.store.create(
            short_code=code,
            original_url=url,
            affiliate_url=short_url,
            network=rule.network,
            platform=rule.platform,
            affiliate_id=affiliate_id,
        )
        logger.info("{} ✅ {} short redirect {} → {}", _LOG_TAG[rule.network], rule.platform, url, short_url)
        return short_url
