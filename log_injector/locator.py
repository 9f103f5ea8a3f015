"""
Function locator for C/C++ sources.

Works line by line with a running brace depth; there is no real parser.
A line on which the depth goes from 0 to 1 opens a top-level block. From
there the locator walks backward to the start of the declarator and checks
whether one of the pending exported functions owns the block.

Known limitations:
    - a whole function on one line (``int f(void) { return 0; }``) nets to
      depth 0 and is never reported as a body-open line
    - braces produced by macros or unbalanced across #if branches confuse
      the depth counter for the rest of the file
"""

import logging
import re
from typing import Iterator, List, Optional, Set, Tuple

from log_injector.models import BodyOpen, LocatedFunction, PendingFunctions

logger = logging.getLogger(__name__)

# Blocks whose braces do not count as nesting (their contents stay top level).
# Matched against stripped code, where "C" has already become "".
_TRANSPARENT_BLOCK_RE = re.compile(
    r'^\s*(?:extern\s+""|namespace(?:\s+[\w:]+)?)\s*\{\s*$'
)
_TAG_KEYWORD_RE = re.compile(r"\b(?:struct|union|enum)\b")
_CALL_NAME_RE = re.compile(r"([A-Za-z_]\w*)\s*\(")


class BraceTracker:
    """
    Running brace depth for one file.

    Braces inside string and character literals and inside comments
    (including block comments spanning lines) are ignored.
    """

    def __init__(self):
        self.depth = 0
        self._in_block_comment = False
        self._transparent = 0

    def strip_code(self, line: str) -> str:
        """Return the line with literals and comments blanked out."""
        out = []
        i = 0
        n = len(line)
        while i < n:
            ch = line[i]
            if self._in_block_comment:
                end = line.find("*/", i)
                if end == -1:
                    return "".join(out)
                self._in_block_comment = False
                out.append(" ")
                i = end + 2
                continue
            if ch == "/" and i + 1 < n and line[i + 1] == "/":
                break
            if ch == "/" and i + 1 < n and line[i + 1] == "*":
                self._in_block_comment = True
                i += 2
                continue
            if ch in "\"'":
                j = i + 1
                while j < n and line[j] != ch:
                    j += 2 if line[j] == "\\" else 1
                out.append(ch + ch)
                i = j + 1
                continue
            out.append(ch)
            i += 1
        return "".join(out)

    def feed(self, line: str) -> Tuple[int, int, str]:
        """
        Apply one line. Returns (depth_before, depth_after, code) where code
        is the trimmed line with literals and comments removed.
        """
        code = self.strip_code(line.strip())
        before = self.depth
        opens = code.count("{")
        closes = code.count("}")

        if before == 0 and opens == 1 and closes == 0 and _TRANSPARENT_BLOCK_RE.match(code):
            self._transparent += 1
            opens = 0

        self.depth += opens - closes
        if self.depth < 0 and self._transparent:
            restored = min(-self.depth, self._transparent)
            self.depth += restored
            self._transparent -= restored
        return before, self.depth, code


def is_body_open(depth_before: int, depth_after: int) -> bool:
    """A new top-level block opened on this line."""
    return depth_before == 0 and depth_after == 1


def find_signature_start(
    code_lines: List[str],
    raw_lines: List[str],
    body_line: int,
    max_lines: int = 32,
) -> Optional[int]:
    """
    Walk backward from a body-open line to the start of its declarator.

    The start is the line holding the '(' that balances the last ')'
    before the brace. A line with a struct/union/enum keyword reached
    before any parenthesis also ends the scan (aggregate definitions).
    Returns None when a statement boundary (';', '}', '=' or a
    preprocessor line) is hit first.
    """
    depth = 0
    seen_close = False
    lowest = max(0, body_line - max_lines + 1)

    for idx in range(body_line, lowest - 1, -1):
        text = code_lines[idx]
        if idx == body_line:
            brace = text.find("{")
            text = text[:brace] if brace != -1 else text
        elif raw_lines[idx].lstrip().startswith("#"):
            return None

        for ch in reversed(text):
            if ch == ")":
                depth += 1
                seen_close = True
            elif ch == "(":
                depth -= 1
                if seen_close and depth == 0:
                    return idx
            elif depth == 0 and ch in ";}=":
                return None

        if not seen_close and _TAG_KEYWORD_RE.search(text):
            return idx

    return None


def _top_level_call_names(signature: str) -> List[str]:
    """Identifiers directly followed by '(' at parenthesis depth 0."""
    names = []
    for match in _CALL_NAME_RE.finditer(signature):
        prefix = signature[:match.start()]
        if prefix.count("(") - prefix.count(")") == 0:
            names.append(match.group(1))
    return names


def match_owner(
    signature_text: str,
    pending: PendingFunctions,
    exclude: Optional[Set[str]] = None,
) -> Optional[str]:
    """
    Name of the pending function declared in signature_text, or None.
    With several candidates the first one in pending order wins.
    """
    candidates = [
        name for name in _top_level_call_names(signature_text)
        if name in pending and not (exclude and name in exclude)
    ]
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0]
    for name in pending.names():
        if name in candidates:
            return name
    return None


def scan_body_opens(lines: List[str], max_signature_lines: int = 32) -> Tuple[List[BodyOpen], List[str]]:
    """
    Find every body-open line of a file.

    Returns the BodyOpen records (signature_start is None when no
    declarator was found) and the comment/literal-free code of each line.
    """
    tracker = BraceTracker()
    code_lines: List[str] = []
    opens: List[BodyOpen] = []

    for idx, line in enumerate(lines):
        before, after, code = tracker.feed(line)
        code_lines.append(code)
        if is_body_open(before, after):
            start = find_signature_start(code_lines, lines, idx, max_signature_lines)
            opens.append(BodyOpen(
                line_index=idx,
                signature_start=start,
                depth_before=before,
                depth_after=after,
            ))

    if tracker.depth != 0:
        logger.debug(f"Brace depth ended at {tracker.depth} (unbalanced braces)")
    return opens, code_lines


def signature_span(code_lines: List[str], body_open: BodyOpen) -> range:
    """Line indices holding the declarator, brace line included."""
    span = body_open.signature_range
    # "(" alone on the first line: the name sits on the line before
    if span.start > 0 and code_lines[span.start].lstrip().startswith("("):
        return range(span.start - 1, span.stop)
    return span


def signature_text(code_lines: List[str], body_open: BodyOpen) -> str:
    """Declarator text from the signature start up to the opening brace."""
    if body_open.signature_start is None:
        return ""
    span = signature_span(code_lines, body_open)
    parts = list(code_lines[span.start:body_open.line_index])
    last = code_lines[body_open.line_index]
    brace = last.find("{")
    parts.append(last[:brace] if brace != -1 else last)
    return re.sub(r"\s+", " ", " ".join(parts)).strip()


def locate_functions(
    lines: List[str],
    pending: PendingFunctions,
    max_signature_lines: int = 32,
) -> Iterator[LocatedFunction]:
    """
    Yield the pending functions defined in lines, in file order.

    Pending state is not modified here; a name is yielded at most once per
    call and callers retire it with pending.claim().
    """
    opens, code_lines = scan_body_opens(lines, max_signature_lines)
    yielded: Set[str] = set()

    for body_open in opens:
        if body_open.signature_start is None:
            continue
        name = match_owner(signature_text(code_lines, body_open), pending, exclude=yielded)
        if name is None:
            continue
        descriptor = pending.get(name)
        if descriptor is None:
            continue
        yielded.add(name)
        logger.debug(f"Located '{name}' body at line {body_open.line_index + 1}")
        span = signature_span(code_lines, body_open)
        yield LocatedFunction(
            descriptor=descriptor,
            body_open=body_open,
            signature_lines=lines[span.start:span.stop],
        )
