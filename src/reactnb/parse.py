from __future__ import annotations

import re
from collections import OrderedDict
from typing import Tuple

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .model import Cell, Notebook

MAGIC_PREFIX = "%REACTNB "
DEFAULT_KIND = "js"

# A cell opens with three or more backticks followed by "cell" and closes at
# a backtick-only line at least as long as the opener and longer than any
# backtick block still open in the body.
_CELL_OPEN = re.compile(r"(`{3,})cell(?:\s+(.*))?$")
_BACKTICKS_ONLY = re.compile(r"`{3,}$")
_NESTED_OPEN = re.compile(r"(`{3,})[^`\s]")
_FENCE_TOKEN = re.compile(r'([^\s=]+)(?:=(?:"((?:\\.|[^"\\])*)"?|(\S*)))?')
_ESCAPE = re.compile(r'\\(["\\])')


def _parse_cell_header_tokens(s: str) -> OrderedDict[str, str]:
    """Parse space-separated key=value tokens from a cell fence line.

    Quoted values may hold spaces; inside them \\" is a quote and \\\\ a
    backslash. A key without '=' gets an empty value.

    Example: 'id=chart kind=js name="flavor picker" tags=ui,input'
    """
    out: OrderedDict[str, str] = OrderedDict()
    for m in _FENCE_TOKEN.finditer(s):
        key, quoted, bare = m.groups()
        if quoted is not None:
            out[key] = _ESCAPE.sub(r"\1", quoted)
        else:
            out[key] = bare or ""
    return out


def _split_header(lines: list[str]) -> Tuple[str, str, int]:
    """Return (magic_version, header_text, index of the first cell line)."""
    start = next((i for i, line in enumerate(lines) if line.strip()), None)
    if start is None:
        raise ValueError("Empty file: missing magic header line")
    if not lines[start].startswith(MAGIC_PREFIX):
        raise ValueError("Missing or invalid magic header line '%REACTNB x.y'")
    end = next(
        (i for i in range(start + 1, len(lines)) if _CELL_OPEN.match(lines[i].lstrip())),
        len(lines),
    )
    header_text = "\n".join(lines[start:end]).rstrip("\n") + "\n"
    return lines[start].strip().lstrip("%"), header_text, end


def _read_body(lines: list[str], idx: int, fence_len: int) -> Tuple[list[str], int]:
    """Collect body lines from idx; return them and the index after the closer.

    Backtick blocks opened with an info string (```js) nest, so their bare
    closers belong to the body. A closer longer than every open block still
    ends the cell.
    """
    body: list[str] = []
    nested: list[int] = []
    while idx < len(lines):
        stripped = lines[idx].strip()
        opener = _NESTED_OPEN.match(stripped)
        if _BACKTICKS_ONLY.match(stripped):
            width = len(stripped)
            if width >= fence_len and (not nested or width > max(nested)):
                return body, idx + 1
            if nested and width >= nested[-1]:
                nested.pop()
        elif opener is not None:
            nested.append(len(opener.group(1)))
        body.append(lines[idx])
        idx += 1
    return body, idx


def parse_text(text: str, path: str | None = None) -> Notebook:
    lines = text.splitlines()
    magic_version, header_text, idx = _split_header(lines)
    cells: list[Cell] = []

    while idx < len(lines):
        opener = _CELL_OPEN.match(lines[idx].lstrip())
        if opener is None:
            idx += 1
            continue
        tokens = _parse_cell_header_tokens(opener.group(2) or "")
        body_lines, idx = _read_body(lines, idx + 1, len(opener.group(1)))
        cells.append(
            Cell(
                id=tokens.get("id") or "",
                kind=tokens.get("kind") or DEFAULT_KIND,
                body="\n".join(body_lines).rstrip("\n"),
                header_tokens=tokens,
            )
        )

    return Notebook(header_text=header_text, cells=cells, magic_version=magic_version, path=path)


def parse_file(path: str) -> Notebook:
    with open(path, "r", encoding="utf-8") as f:
        return parse_text(f.read(), path=path)


def read_header(nb: Notebook) -> dict:
    """Load the YAML mapping that follows the magic line.

    Raises ValueError when the header is not valid YAML or not a mapping.
    """
    lines = nb.header_text.splitlines()
    start = 1 if lines and lines[0].startswith(MAGIC_PREFIX) else 0
    try:
        data = YAML(typ="safe").load("\n".join(lines[start:]))
    except YAMLError as e:
        raise ValueError(f"Invalid YAML header: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("YAML header must be a mapping")
    return data
