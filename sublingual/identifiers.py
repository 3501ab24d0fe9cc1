#!/usr/bin/env python3
"""
IMDb identifier validation and extraction

An identifier is "tt" followed by 7 or 8 digits. Anything else is treated as
"not found" everywhere in the pipeline, never stored and never queried with.
"""

import re
from typing import Optional

IDENTIFIER_RE = re.compile(r'^tt\d{7,8}$')

# Embedded form: not glued to other letters/digits on either side
_EMBEDDED_RE = re.compile(r'(?<![A-Za-z0-9])(tt\d{7,8})(?!\d)')

# Web search results link to the title page
_TITLE_URL_RE = re.compile(r'imdb\.com/title/(tt\d{7,8})(?!\d)')


def is_valid_identifier(value: Optional[str]) -> bool:
    """True only for an exact tt + 7-8 digit string"""
    if not isinstance(value, str):
        return False
    return IDENTIFIER_RE.fullmatch(value) is not None


def find_identifier(text: Optional[str]) -> Optional[str]:
    """Return the first identifier embedded in free text, or None"""
    if not text:
        return None
    match = _EMBEDDED_RE.search(text)
    return match.group(1) if match else None


def find_title_url_identifier(text: Optional[str]) -> Optional[str]:
    """Return the identifier of the first imdb.com/title/ link in text, or None"""
    if not text:
        return None
    match = _TITLE_URL_RE.search(text)
    return match.group(1) if match else None
