"""Query tokenization shared by the lexical backends."""

import re
from typing import List

TERM_PATTERN = re.compile(r"\w+", re.UNICODE)


def query_terms(query: str) -> List[str]:
    """Split a free-text query into word terms, dropping punctuation."""
    return TERM_PATTERN.findall(query)
