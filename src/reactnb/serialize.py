from __future__ import annotations

import re
from collections import OrderedDict

from .model import Notebook

_CANON_KEY_ORDER = ["id", "kind", "name", "tags"]

_BACKTICK_RUN = re.compile(r"^\s*(`{3,})", re.M)


def _token_rank(item: tuple[str, str]) -> int:
    key = item[0]
    return _CANON_KEY_ORDER.index(key) if key in _CANON_KEY_ORDER else len(_CANON_KEY_ORDER)


def _quote(value: str) -> str:
    if value and not any(ch.isspace() or ch == '"' for ch in value):
        return value
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _fence_for(body: str) -> str:
    """Backticks longer than any backtick run opening a line of the body."""
    longest = max((len(run) for run in _BACKTICK_RUN.findall(body)), default=2)
    return "`" * max(3, longest + 1)


def serialize(nb: Notebook) -> str:
    parts: list[str] = []
    header = nb.header_text
    if not header.endswith("\n"):
        header += "\n"
    parts.append(header)
    for cell in nb.cells:
        tokens = OrderedDict(cell.header_tokens)
        # the model is authoritative over stale fence tokens
        tokens["id"] = cell.id
        tokens["kind"] = cell.kind
        tok_strs = [f"{k}={_quote(v)}" for k, v in sorted(tokens.items(), key=_token_rank)]
        fence = _fence_for(cell.body)
        parts.append(f"{fence}cell " + " ".join(tok_strs))
        if cell.body:
            parts.append(cell.body)
        parts.append(fence)
    return "\n".join(parts).rstrip("\n") + "\n"
