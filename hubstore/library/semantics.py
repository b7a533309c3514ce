"""Optional-dependency discovery inside semantics.json.

Some content types only name their sub-content types in the editor
configuration, e.g. a ``library`` field whose ``options`` list reads
``["H5P.Text 1.1", "H5P.Image 1.1"]``. Those are not declared in
library.json and have to be scanned for.
"""

from __future__ import annotations

import re
from typing import Any

UBER_NAME_OPTION_RE = re.compile(r"^[\w.-]{1,255} [0-9]+\.[0-9]+\Z")


def find_dependencies_in_semantics(semantics: Any) -> list[str]:
    """Return every option value shaped like ``"MachineName major.minor"``.

    Walks the whole tree. Duplicates are kept in discovery order; callers
    de-duplicate.
    """
    found: list[str] = []
    stack = [semantics]

    while stack:
        chunk = stack.pop()
        if isinstance(chunk, list):
            stack.extend(reversed(chunk))
        elif isinstance(chunk, dict):
            options = chunk.get("options")
            if isinstance(options, list):
                found.extend(
                    option
                    for option in options
                    if isinstance(option, str) and UBER_NAME_OPTION_RE.match(option)
                )
            stack.extend(reversed(list(chunk.values())))

    return found
