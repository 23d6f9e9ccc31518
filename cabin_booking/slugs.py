import re
import unicodedata
from collections.abc import Awaitable, Callable

# Letters NFKD does not decompose into ASCII
_TRANSLITERATE = str.maketrans(
    {"ø": "o", "Ø": "o", "æ": "ae", "Æ": "ae", "å": "a", "Å": "a", "ß": "ss", "đ": "d", "ł": "l"}
)
_INVALID = re.compile(r"[^a-z0-9\s-]")
_SEPARATORS = re.compile(r"[\s-]+")


def slugify(value: str) -> str:
    """
    "Hytte Øst" -> "hytte-ost", "Fjellstue på Toppen!" -> "fjellstue-pa-toppen".
    """
    text = unicodedata.normalize("NFKD", value.translate(_TRANSLITERATE))
    text = text.encode("ascii", "ignore").decode("ascii").lower()
    text = _INVALID.sub("", text)
    return _SEPARATORS.sub("-", text).strip("-")


async def unique_slug(
    name: str, exists: Callable[[str], Awaitable[bool]], fallback: str = "cabin"
) -> str:
    """First free slug of ``name``, ``name-2``, ``name-3``..."""
    base = slugify(name) or fallback
    candidate, n = base, 1
    while await exists(candidate):
        n += 1
        candidate = f"{base}-{n}"
    return candidate
