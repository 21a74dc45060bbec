"""Default text normalization applied to category values when ``clean_text`` is on."""

import re
import unicodedata

_NON_WORD = re.compile(r"[\W_]+")


def clean_text(value: str) -> str:
    """Strip accents and punctuation, then join capitalized words.

    ``"  new-york city "`` and ``"New York, City"`` both become
    ``"NewYorkCity"``, so spelling variants land in the same category.
    """
    txt = unicodedata.normalize("NFKD", str(value)).encode("ascii", "ignore").decode("ascii")
    words = _NON_WORD.sub(" ", txt).split()
    return "".join(w.capitalize() for w in words)


def clean_if(value: str, should_clean: bool, clean_fn=clean_text) -> str:
    return clean_fn(value) if should_clean else value
