from __future__ import annotations

from io import StringIO

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq

from .parse import MAGIC_PREFIX, parse_text
from .serialize import serialize

_HEADER_KEY_ORDER: list[str] = [
    "title",
    "description",
    "created",
    "updated",
    "globals",
    "tags",
    "version",
]


def _key_rank(key: object) -> int:
    try:
        return _HEADER_KEY_ORDER.index(key)
    except ValueError:
        return len(_HEADER_KEY_ORDER)


def _canonical_globals(value: object) -> object:
    """Sorted, de-duplicated, one-line list of extra global names."""
    if not isinstance(value, list):
        return value
    seq = CommentedSeq(sorted({str(v) for v in value}))
    seq.fa.set_flow_style()
    return seq


def _canonical_header(data: CommentedMap) -> CommentedMap:
    """Known keys in their usual order, unknown keys after them as written.

    Comments attached to a key travel with it.
    """
    out = CommentedMap()
    for key in sorted(data, key=_key_rank):
        out[key] = _canonical_globals(data[key]) if key == "globals" else data[key]
        if key in data.ca.items:
            out.ca.items[key] = data.ca.items[key]
    out.ca.comment = data.ca.comment
    return out


def format_header_text(header_text: str) -> str:
    """Canonical form of a header block; text without a magic line is returned as is."""
    magic, _, body = header_text.lstrip("\n").partition("\n")
    if not magic.startswith(MAGIC_PREFIX):
        return header_text
    magic = magic.strip()
    if not body.strip():
        return magic + "\n"

    yaml = YAML()
    yaml.preserve_quotes = True
    data = yaml.load(body)
    if not isinstance(data, CommentedMap):
        return f"{magic}\n{body.rstrip()}\n"

    buf = StringIO()
    yaml.dump(_canonical_header(data), buf)
    return f"{magic}\n{buf.getvalue().rstrip()}\n"


def format_text(text: str) -> str:
    nb = parse_text(text)
    nb.header_text = format_header_text(nb.header_text)
    return serialize(nb)
