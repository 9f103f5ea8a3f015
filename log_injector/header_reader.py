"""
Exported function extraction from header files.

A function is exported when its declaration reads
``MARKER <type/qualifier words> name(``. Each candidate found by the
coarse pattern is confirmed by a second search for the complete
declaration, which also yields the provisional parameter list.
"""

import logging
import re
from functools import lru_cache
from typing import Dict, Iterable, List, Optional

from log_injector.models import FunctionDescriptor, ParameterDescriptor
from log_injector.param_parser import split_top_level

logger = logging.getLogger(__name__)


@lru_cache(maxsize=16)
def exported_function_regex(marker: str = "EXPORT") -> "re.Pattern":
    """Coarse pattern: marker, one or more type words, then the name."""
    return re.compile(
        rf"(?<!\w){re.escape(marker)}\s+(?:[A-Za-z0-9_*]+\s+)+\**([A-Za-z0-9_]+)\s*\("
    )


def full_function_regex(function_name: str, marker: str = "EXPORT") -> "re.Pattern":
    """Complete declaration of one function; group 1 is the parameter text."""
    return re.compile(
        rf"(?<!\w){re.escape(marker)}\s+(?:[A-Za-z0-9_*]+\s+)+\**"
        rf"{re.escape(function_name)}\s*\(([^)]*)\)",
        re.DOTALL,
    )


def parse_declared_parameters(params_string: str) -> List[ParameterDescriptor]:
    """
    Coarse parameter list from a header declaration.

    The pointer flag is "contains '*'", the name is the last token without
    stars and the type is everything before it.
    """
    params = []
    for raw in split_top_level(params_string):
        param = " ".join(raw.split())
        if not param or param == "void":
            continue

        is_pointer = "*" in param
        parts = param.split(" ")
        if len(parts) < 2:
            continue
        name = parts[-1].replace("*", "")
        type_str = " ".join(parts[:-1])
        # pointer attached to the type instead of the name
        if "*" in type_str:
            type_str = type_str.replace("*", "").strip()

        params.append(ParameterDescriptor(
            name=name,
            type=type_str,
            is_pointer=is_pointer,
            indirection=param.count("*"),
        ))
    return params


def extract_exported_functions(header_content: str, marker: str = "EXPORT") -> List[FunctionDescriptor]:
    """
    All exported functions declared in a header, in declaration order.
    A name declared twice is reported once.
    """
    functions: List[FunctionDescriptor] = []
    seen = set()

    for match in exported_function_regex(marker).finditer(header_content):
        function_name = match.group(1)
        if function_name in seen:
            continue

        declaration = full_function_regex(function_name, marker).search(header_content)
        if not declaration:
            logger.debug(f"Discarding unconfirmed export candidate '{function_name}'")
            continue

        seen.add(function_name)
        functions.append(FunctionDescriptor(
            name=function_name,
            params=parse_declared_parameters(declaration.group(1)),
        ))

    return functions


def extract_exported_names(header_content: str, marker: str = "EXPORT") -> List[str]:
    return [f.name for f in extract_exported_functions(header_content, marker)]


def merge_exports(
    headers: Iterable[List[FunctionDescriptor]],
    into: Optional[Dict[str, FunctionDescriptor]] = None,
) -> Dict[str, FunctionDescriptor]:
    """
    Merge per-header results into one name-keyed mapping.
    The first declaration of a name wins.
    """
    merged: Dict[str, FunctionDescriptor] = into if into is not None else {}
    for functions in headers:
        for func in functions:
            if func.name not in merged:
                merged[func.name] = func
    return merged
