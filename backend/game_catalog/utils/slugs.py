"""Slug helpers for platform and game identifiers."""

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Return a lowercase, hyphen separated ASCII slug for `value`.

    Accents are folded (`Pokémon` -> `pokemon`) and any run of other
    characters becomes a single hyphen. May return an empty string when
    `value` holds no letters or digits.
    """
    folded = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub("-", folded.lower()).strip("-")
