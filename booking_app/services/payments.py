"""Money handling helpers shared across services and the CLI."""

from __future__ import annotations

import re

MAX_MONEY_CENTS = 10_000_000 * 100


def parse_money_to_cents(txt: str) -> int:
    txt = (txt or "").strip().replace(",", "")
    if txt == "":
        return 0
    m = re.match(r"^\s*([0-9]+(?:\.[0-9]{1,2})?)\s*$", txt)
    return int(round(float(m.group(1)) * 100)) if m else 0


def cents_guard(value_cents: int, label: str) -> int:
    if value_cents is None:
        return 0
    if value_cents > MAX_MONEY_CENTS:
        raise ValueError(f"{label} too large (max 10,000,000.00).")
    if value_cents < -MAX_MONEY_CENTS:
        raise ValueError(f"{label} too negative (min -10,000,000.00).")
    return int(value_cents)


def money(cents: int) -> str:
    return f"{(cents or 0) / 100:.2f}"
