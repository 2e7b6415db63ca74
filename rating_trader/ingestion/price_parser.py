"""
Target-price parsing.

The feed publishes price targets as display strings (``"$150.00"``,
``"1,250.50"``, occasionally ``""`` or ``"N/A"``). ``parse_price`` turns the
numeric ones into floats and returns ``None`` for everything else so the
analyzer can skip the record and keep going.
"""

from __future__ import annotations

import math
import re
from typing import Optional

_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


def parse_price(raw: Optional[str]) -> Optional[float]:
    """Convert a textual price target to a float.

    Accepted decorations: surrounding whitespace, a leading ``$`` and
    thousands separators (``,``).

    Args:
        raw: Price text as stored on the rating record.

    Returns:
        The numeric value, or ``None`` if ``raw`` is empty, not numeric,
        not finite, or not positive.

    Examples::

        parse_price("$4.20")      -> 4.2
        parse_price("1,250")      -> 1250.0
        parse_price("N/A")        -> None
    """
    if raw is None:
        return None
    text = raw.strip()
    if text.startswith("$"):
        text = text[1:].lstrip()
    text = text.replace(",", "")
    if not text or not _NUMBER_RE.match(text):
        return None
    value = float(text)
    if not math.isfinite(value) or value <= 0:
        return None
    return value
