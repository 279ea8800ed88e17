# dealbot/mappings.py
"""
Short-code → conversion record table, persisted as one JSON object.

- load(): read the file if present and well-formed; otherwise start empty.
- save(): rewrite the whole file (temp file + rename), never append.
- Codes are 8 alphanumeric chars; a code already in the table is never reused.
"""

from __future__ import annotations

import json
import os
import secrets
import string
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional

from loguru import logger

from dealbot.platforms import Network

CODE_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 16


class ShortCodeExhausted(RuntimeError):
    pass


@dataclass(frozen=True)
class ConversionRecord:
    short_code: str
    original_url: str
    affiliate_url: Optional[str]
    network: Network
    platform: str
    affiliate_id: str
    created_at: int  # epoch millis
    region: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"originalUrl": self.original_url}
        if self.affiliate_url is not None:
            out["affiliateUrl"] = self.affiliate_url
        out.update({
            "affiliateId": self.affiliate_id,
            "platform": self.platform,
            "affiliateNetwork": self.network.value,
            "timestamp": self.created_at,
        })
        if self.region:
            out["region"] = self.region
        return out

    @classmethod
    def from_json(cls, short_code: str, data: Dict[str, Any]) -> "ConversionRecord":
        network = Network(data["affiliateNetwork"])
        if network == Network.UNKNOWN:
            raise ValueError("affiliateNetwork must be amazon, earnpe or earnkaro")
        return cls(
            short_code=short_code,
            original_url=str(data["originalUrl"]),
            affiliate_url=(str(data["affiliateUrl"]) if data.get("affiliateUrl") is not None else None),
            network=network,
            platform=str(data["platform"]),
            affiliate_id=str(data["affiliateId"]),
            created_at=int(data["timestamp"]),
            region=data.get("region") or None,
        )


def generate_short_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


class MappingStore:
    def __init__(
        self,
        path: os.PathLike | str,
        *,
        clock: Callable[[], float] = time.time,
        code_factory: Callable[[], str] = generate_short_code,
    ):
        self.path = Path(path)
        self._clock = clock
        self._code_factory = code_factory
        self._records: Dict[str, ConversionRecord] = {}
        self._dirty = False

    # ---------- table ----------
    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, code: object) -> bool:
        return code in self._records

    def __iter__(self) -> Iterator[ConversionRecord]:
        return iter(list(self._records.values()))

    def get(self, code: str) -> Optional[ConversionRecord]:
        return self._records.get(code)

    def records(self) -> Dict[str, ConversionRecord]:
        return dict(self._records)

    @property
    def dirty(self) -> bool:
        return self._dirty

    def new_code(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = self._code_factory()
            if code not in self._records:
                return code
            logger.warning("[Mappings] short code collision on {}; retrying", code)
        raise ShortCodeExhausted(f"no free short code after {MAX_CODE_ATTEMPTS} attempts")

    def add(self, record: ConversionRecord) -> ConversionRecord:
        if record.short_code in self._records:
            raise ValueError(f"short code {record.short_code} already mapped")
        self._records[record.short_code] = record
        self._dirty = True
        return record

    def create(
        self,
        *,
        original_url: str,
        affiliate_url: Optional[str],
        network: Network,
        platform: str,
        affiliate_id: str,
        region: Optional[str] = None,
        short_code: Optional[str] = None,
    ) -> ConversionRecord:
        return self.add(ConversionRecord(
            short_code=short_code or self.new_code(),
            original_url=original_url,
            affiliate_url=affiliate_url,
            network=network,
            platform=platform,
            affiliate_id=affiliate_id,
            created_at=int(self._clock() * 1000),
            region=region,
        ))

    # ---------- persistence ----------
    def load(self) -> int:
        self._records = {}
        self._dirty = False
        if not self.path.exists():
            logger.info("[Mappings] no mapping file at {}; starting empty", self.path)
            return 0
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("[Mappings] could not read {}: {}; starting empty", self.path, e)
            return 0
        if not isinstance(raw, dict):
            logger.warning("[Mappings] {} is not a JSON object; starting empty", self.path)
            return 0

        for code, data in raw.items():
            try:
                self._records[code] = ConversionRecord.from_json(code, data)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("[Mappings] skipping bad entry {}: {}", code, e)
        logger.info("[Mappings] 📂 loaded {} URL mappings from {}", len(self._records), self.path)
        return len(self._records)

    def save(self) -> bool:
        if not self._dirty:
            logger.debug("[Mappings] nothing new to save")
            return True
        payload = {code: rec.to_json() for code, rec in self._records.items()}
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".mappings-", suffix=".json", dir=str(self.path.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except (OSError, TypeError) as e:
            logger.error("[Mappings] ❌ save to {} failed: {}", self.path, e)
            return False
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        self._dirty = False
        logger.info("[Mappings] 💾 saved {} URL mappings to {}", len(payload), self.path)
        return True
