"""
Parameter re-parser for C function definitions.

The header declaration only gives a provisional parameter list; the
definition found in the source file is authoritative (different names,
stale types, line wrapping). This module re-derives the list from the raw
signature lines using a handful of regex shapes, falling back to a
last-token heuristic so that a segment never fails to parse.
"""

import logging
import re
from typing import Iterable, List, Optional

from log_injector.models import ParameterDescriptor

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
#  Regex Patterns
# ═══════════════════════════════════════════════════════════════════════════════

_IDENT = r"[A-Za-z_]\w*"
_TYPE_TOKEN = r"[A-Za-z_][\w:]*"
_TYPE = rf"{_TYPE_TOKEN}(?:\s+{_TYPE_TOKEN})*"
_STARS = r"(?:\*\s*)+"
_QUALIFIER = r"(?:const|volatile|restrict|__restrict|__restrict__)"

_TYPE_KEYWORDS = frozenset({
    "void", "char", "short", "int", "long", "float", "double", "bool",
    "signed", "unsigned", "const", "volatile", "struct", "union", "enum",
    "size_t", "int8_t", "int16_t", "int32_t", "int64_t",
    "uint8_t", "uint16_t", "uint32_t", "uint64_t",
})

_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT_RE = re.compile(r"//[^\n]*")

# 1. type [*]* name[[N]]
_SCALAR_OR_ARRAY_RE = re.compile(
    rf"^(?P<type>{_TYPE})(?:\s+|\s*(?P<stars>{_STARS}))"
    rf"(?P<name>{_IDENT})(?:\s*\[\s*(?P<size>[^\[\]]+?)\s*\])?$"
)

# 2. type [*]* name[]
_UNSIZED_ARRAY_RE = re.compile(
    rf"^(?P<type>{_TYPE})(?:\s+|\s*(?P<stars>{_STARS}))"
    rf"(?P<name>{_IDENT})\s*\[\s*\]$"
)

# 3. type * const [*]* name[[N]]
_QUALIFIED_POINTER_RE = re.compile(
    rf"^(?P<type>{_TYPE})\s*\*\s*(?P<quals>(?:{_QUALIFIER}\s*\**\s*)+)"
    rf"(?P<name>{_IDENT})(?:\s*\[\s*(?P<size>[^\[\]]*?)\s*\])?$"
)

# 4. ret (*name)(args)
_FUNCTION_POINTER_RE = re.compile(
    rf"^(?P<ret>.+?)\s*\(\s*\*\s*(?P<name>{_IDENT})\s*\)\s*\((?P<args>.*)\)$"
)


# ═══════════════════════════════════════════════════════════════════════════════
#  Signature text helpers
# ═══════════════════════════════════════════════════════════════════════════════

def normalize_signature(lines: Iterable[str]) -> str:
    """Join signature lines into one string without comments or runs of whitespace."""
    text = "\n".join(lines).replace("\r", "")
    text = _BLOCK_COMMENT_RE.sub(" ", text)
    text = _LINE_COMMENT_RE.sub(" ", text)
    return re.sub(r"\s+", " ", text).strip()


def extract_parameter_text(signature: str, function_name: Optional[str] = None) -> str:
    """
    Isolate the text between a function's parentheses.

    Starts at the '(' following function_name when it is present, otherwise
    at the first '('. Ends at the balancing ')', or the last ')' when the
    parentheses never balance.
    """
    start = -1
    if function_name:
        match = re.search(rf"(?<!\w){re.escape(function_name)}\s*\(", signature)
        if match:
            start = match.end() - 1
    if start < 0:
        start = signature.find("(")
    if start < 0:
        return ""

    depth = 0
    for i in range(start, len(signature)):
        ch = signature[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return signature[start + 1:i]

    end = signature.rfind(")")
    if end > start:
        return signature[start + 1:end]
    return signature[start + 1:]


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """Split on separator, ignoring separators nested in () or []."""
    parts = []
    depth = 0
    current = []
    for ch in text:
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(0, depth - 1)
        if ch == separator and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


# ═══════════════════════════════════════════════════════════════════════════════
#  Segment classification
# ═══════════════════════════════════════════════════════════════════════════════

def _star_count(text: Optional[str]) -> int:
    return (text or "").count("*")


def parse_parameter(segment: str) -> Optional[ParameterDescriptor]:
    """
    Classify one comma-delimited parameter. Returns None for segments that
    carry no parameter (empty, ``void``, ``...``).
    """
    seg = re.sub(r"\s+", " ", segment).strip()
    # C++ default argument
    if "=" in seg:
        seg = seg.split("=", 1)[0].strip()
    if not seg or seg in ("void", "..."):
        return None

    m = _SCALAR_OR_ARRAY_RE.match(seg)
    if m:
        stars = _star_count(m.group("stars"))
        size = m.group("size")
        type_str = m.group("type")
        if size:
            type_str = f"{type_str} [{size}]"
        return ParameterDescriptor(
            name=m.group("name"),
            type=type_str,
            is_pointer=bool(stars or size),
            indirection=stars + (1 if size else 0),
        )

    m = _UNSIZED_ARRAY_RE.match(seg)
    if m:
        return ParameterDescriptor(
            name=m.group("name"),
            type=f"{m.group('type')} [...]",
            is_pointer=True,
            indirection=_star_count(m.group("stars")) + 1,
        )

    m = _QUALIFIED_POINTER_RE.match(seg)
    if m:
        size = m.group("size")
        type_str = m.group("type")
        if size is not None:
            type_str = f"{type_str} [{size or '...'}]"
        return ParameterDescriptor(
            name=m.group("name"),
            type=type_str,
            is_pointer=True,
            indirection=1 + _star_count(m.group("quals")) + (1 if size is not None else 0),
        )

    m = _FUNCTION_POINTER_RE.match(seg)
    if m:
        return ParameterDescriptor(
            name=m.group("name"),
            type=f"{m.group('ret').strip()} (*)(...)",
            is_pointer=True,
            indirection=1,
        )

    return _fallback_parameter(seg)


def _fallback_parameter(seg: str) -> Optional[ParameterDescriptor]:
    tokens = seg.split(" ")
    if len(tokens) < 2:
        # a bare type such as "obs_source_t" (unnamed C++ parameter)
        logger.debug(f"Dropping unnamed parameter segment '{seg}'")
        return None
    name = re.sub(r"\[.*$", "", tokens[-1]).strip("*&() ")
    type_str = " ".join(tokens[:-1])
    if not re.fullmatch(_IDENT, name) or name in _TYPE_KEYWORDS:
        # unnamed parameter, nothing to log
        logger.debug(f"Dropping unnamed parameter segment '{seg}'")
        return None
    logger.debug(f"Fallback parse for parameter segment '{seg}' -> name='{name}'")
    return ParameterDescriptor(
        name=name,
        type=type_str,
        is_pointer="*" in seg or "[" in seg,
        indirection=seg.count("*") + seg.count("["),
    )


# ═══════════════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════════════

def parse_parameter_list(params_text: str) -> List[ParameterDescriptor]:
    """Parse the text between a function's parentheses."""
    result = []
    for segment in split_top_level(params_text):
        param = parse_parameter(segment)
        if param is not None:
            result.append(param)
    return result


def reparse_parameters(
    signature_lines: Iterable[str],
    params: List[ParameterDescriptor],
    function_name: Optional[str] = None,
) -> List[ParameterDescriptor]:
    """
    Replace the contents of params with the parameters of the definition
    spanning signature_lines (signature start to body-open line inclusive).
    The same list object is returned.
    """
    signature = normalize_signature(signature_lines)
    params[:] = parse_parameter_list(extract_parameter_text(signature, function_name))
    return params
