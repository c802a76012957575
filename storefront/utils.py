import html
import re
import unicodedata
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import bleach


def clean_keyword(value: Optional[str]) -> str:
    """Reduce a user-supplied search keyword to plain text.

    - Removes every HTML tag using bleach.clean(..., tags=set(), strip=True)
    - Unescapes the entities bleach introduces, so '&' stays '&'
    - Trims whitespace

    Punctuation is kept; the search query is parameterised.
    """
    if value is None:
        return ""
    # remove NULL bytes
    val = value.replace("\x00", "")
    val = bleach.clean(val, tags=set(), strip=True)
    return html.unescape(val).strip()


def slugify(value: Optional[str]) -> str:
    """Lower-case, ASCII-fold and hyphenate ``value``.

    ``"Electronics & Gadgets"`` becomes ``"electronics-gadgets"``.
    """
    if value is None:
        return ""
    condensed = " ".join(str(value).split()).lower()
    ascii_name = unicodedata.normalize("NFKD", condensed).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", ascii_name).strip("-")


# Business rule: money stored rounded to 2 decimals
def round_amount(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
