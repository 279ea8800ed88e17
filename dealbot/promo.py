# dealbot/promo.py
from __future__ import annotations

import random
from typing import Optional, Sequence

PROMOTIONAL_MESSAGES = (
    "\n\n💰 Heavy Discount Shopping Deals only on our channel! 🔥\n🛍️ Join today and save on every purchase! 💸",
    "\n\n🎯 Double the fun of shopping! Heavy Discounts + Cash Back! 💰\n🔥 Trusted Deal Partner - Join now! 🚀",
    "\n\n💥 Save Money, Shop More! Daily Best Deals here! 🛒\n✨ Maximum Savings with Minimum Price! Join now! 💎",
    "\n\n🌟 Smart Shopping = Smart Savings! Heavy Discount Deals Daily! 💸\n🔥 Join and become a Smart Shopper! 🧠💰",
    "\n\n🎊 Shopping Festival Everyday! Massive Discounts + Extra Cashback! 🎁\n💯 Your Money Saving Partner! Join today! 🚀",
)

# Any of these means the text already went through add_promo (or the source ran its own promo).
PROMO_MARKERS = ("Heavy Discount",)


def has_promo(text: str, messages: Sequence[str] = PROMOTIONAL_MESSAGES) -> bool:
    t = text or ""
    if any(m in t for m in PROMO_MARKERS):
        return True
    return any(msg.strip() in t for msg in messages)


def add_promo(
    text: str,
    *,
    messages: Sequence[str] = PROMOTIONAL_MESSAGES,
    rng: Optional[random.Random] = None,
) -> str:
    """Append one random promo unless the text already carries one."""
    text = text or ""
    if not messages or has_promo(text, messages):
        return text
    return text + (rng or random).choice(list(messages))
