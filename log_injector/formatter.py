"""
printf-style conversion specifiers for C parameter types.
"""

import re
from typing import List, Optional, Tuple

# Checked in order; keys that are substrings of others come after them.
FORMAT_TABLE: Tuple[Tuple[str, str], ...] = (
    ("long double", "%Lf"),
    ("long long", "%lld"),
    ("long", "%ld"),
    ("char", "%s"),
    ("double", "%lf"),
    ("float", "%f"),
    ("bool", "%d"),
    ("int", "%d"),
)

POINTER_FORMAT = "%p"

_TAG_KEYWORDS = frozenset({"struct", "union", "enum", "class"})
_ARRAY_SUFFIX_RE = re.compile(r"\[[^\]]*\]")


def type_tokens(type_string: str) -> List[str]:
    """
    Split a type into the words the mapper looks at.

    Pointer stars and array suffixes are dropped, and so is the tag name
    following struct/union/enum/class (``struct point`` must not match int).
    """
    cleaned = _ARRAY_SUFFIX_RE.sub(" ", type_string or "")
    cleaned = re.sub(r"[*&()]", " ", cleaned)
    tokens = []
    skip_next = False
    for token in cleaned.split():
        if skip_next:
            skip_next = False
            continue
        if token in _TAG_KEYWORDS:
            skip_next = True
        tokens.append(token)
    return tokens


def _contains_sequence(tokens: List[str], words: List[str]) -> bool:
    n = len(words)
    return any(tokens[i:i + n] == words for i in range(len(tokens) - n + 1))


def get_format(type_string: str) -> Optional[str]:
    """
    Map a C type to a printf specifier, or None when nothing applies.

    >>> get_format("const char *")
    '%s'
    >>> get_format("unsigned long long")
    '%lld'
    >>> get_format("struct foo *") is None
    True
    """
    tokens = type_tokens(type_string)
    if not tokens:
        return None

    for key, specifier in FORMAT_TABLE:
        words = key.split()
        if len(words) > 1:
            if _contains_sequence(tokens, words):
                return specifier
        elif any(key in token for token in tokens):
            return specifier
    return None
