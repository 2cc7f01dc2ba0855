"""Follow-up question hints derived from where the caller is going."""

import re
from typing import Iterable, Optional

from callcab.config import SituationalConfig
from callcab.schemas.lookup_schema import SituationalContext


def _matches(text: str, keywords: Iterable[str]) -> list[str]:
    found = []
    for keyword in keywords:
        pattern = r"(?<!\w)" + re.escape(keyword) + r"(?!\w)"
        if re.search(pattern, text, flags=re.IGNORECASE):
            found.append(keyword)
    return found


def build_situational_context(
    texts: Iterable[Optional[str]],
    keywords: Optional[SituationalConfig] = None,
) -> SituationalContext:
    """Scan address texts for airport, ski area and medical keywords.

    Keywords match whole words only, so "den" matches "DEN airport" but not
    "Garden Street".
    """
    keywords = keywords or SituationalConfig()
    combined = " ".join(text for text in texts if text)

    airport = _matches(combined, keywords.airport_keywords)
    ski = _matches(combined, keywords.ski_keywords)
    medical = _matches(combined, keywords.medical_keywords)

    return SituationalContext(
        suggest_luggage_question=bool(airport),
        suggest_skis_question=bool(ski),
        suggest_mobility_question=bool(medical),
        matched_keywords=airport + ski + medical,
    )
