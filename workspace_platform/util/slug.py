from __future__ import annotations

import re
import secrets
import string
from typing import Any, Optional


SLUG_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

_FALLBACK_BASE = "workspace"


def slug_base(seed: str | None, *, max_length: int = 20) -> str:
    """Human-readable part of a workspace slug.

    "Jane.Doe+work@example.com" -> "jane-doe-work"
    """
    s = str(seed or "")
    # Drop the email domain
    s = s.split("@", 1)[0]
    s = s.lower()
    s = re.sub(r"[^a-z0-9]+", "-", s)
    s = s.strip("-")
    # Truncation can leave a dangling dash ("abc-" from "abc-def")
    s = s[:max_length].strip("-")
    return s


def generate_workspace_slug(
    seed: str | None,
    *,
    rng: Optional[Any] = None,
    max_base_length: int = 20,
    suffix_length: int = 4,
) -> str:
    """Build a URL-safe slug: readable prefix + short random suffix.

    The suffix makes collisions unlikely enough that we skip a uniqueness
    round-trip; users can rename the slug later. `rng` is anything with a
    `.choice()` (e.g. `random.Random(seed)` in tests); defaults to `secrets`.
    """
    base = slug_base(seed, max_length=max_base_length) or _FALLBACK_BASE
    src = rng if rng is not None else secrets
    suffix = "".join(src.choice(SLUG_SUFFIX_ALPHABET) for _ in range(max(1, int(suffix_length))))
    return f"{base}-{suffix}"
