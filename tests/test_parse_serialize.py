import sys
import unittest
from pathlib import Path

# Ensure 'src' is on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from reactnb.model import Cell
from reactnb.parse import parse_file, parse_text, read_header
from reactnb.serialize import serialize

EXAMPLE = Path(__file__).resolve().parents[1] / "examples" / "minimal.reactnb"


class TestParseSerialize(unittest.TestCase):
    def test_roundtrip_minimal(self):
        nb1 = parse_file(str(EXAMPLE))
        text = serialize(nb1)
        nb2 = parse_text(text)

        self.assertEqual([c.id for c in nb1.cells], [c.id for c in nb2.cells])
        self.assertEqual([c.kind for c in nb1.cells], [c.kind for c in nb2.cells])
        self.assertEqual([c.body for c in nb1.cells], [c.body for c in nb2.cells])
        self.assertEqual(nb1.header_text, nb2.header_text)

    def test_cells_and_kinds(self):
        nb = parse_file(str(EXAMPLE))
        self.assertEqual(nb.magic_version, "REACTNB 1.0")
        self.assertEqual(nb.path, str(EXAMPLE))
        kinds = {c.id: c.kind for c in nb.cells}
        self.assertEqual(kinds["intro"], "md")
        self.assertEqual(kinds["picker"], "js")
        self.assertEqual(kinds["footer"], "html")

    def test_kind_defaults_to_js(self):
        nb = parse_text("%REACTNB 1.0\n\n```cell id=a\nx = 1\n```\n")
        self.assertEqual(nb.cells[0].kind, "js")
        self.assertIn("kind=js", serialize(nb))

    def test_token_quotes_and_escapes(self):
        text = (
            "%REACTNB 1.0\ntitle: quoted\n\n"
            '```cell id=a kind=js name="flavor \\"picker\\""'
            "\nx = 1\n```\n"
        )
        nb = parse_text(text)
        self.assertEqual(nb.cells[0].header_tokens["name"], 'flavor "picker"')

        nb2 = parse_text(serialize(nb))
        self.assertEqual(nb2.cells[0].header_tokens["name"], 'flavor "picker"')

    def test_token_backslashes_roundtrip(self):
        text = '%REACTNB 1.0\n\n```cell id=a kind=js name="C:\\\\dir one\\\\"\nx = 1\n```\n'
        nb = parse_text(text)
        self.assertEqual(nb.cells[0].header_tokens["name"], "C:\\dir one\\")

        out = serialize(nb)
        self.assertIn('name="C:\\\\dir one\\\\"', out)
        nb2 = parse_text(out)
        self.assertEqual(nb2.cells[0].header_tokens["name"], "C:\\dir one\\")
        self.assertEqual(serialize(nb2), out)

    def test_bare_token_keeps_backslashes(self):
        nb = parse_text("%REACTNB 1.0\n\n```cell id=a kind=js path=C:\\data\nx = 1\n```\n")
        self.assertEqual(nb.cells[0].header_tokens["path"], "C:\\data")
        self.assertEqual(parse_text(serialize(nb)).cells[0].header_tokens["path"], "C:\\data")

    def test_markdown_cell_with_fenced_block(self):
        text = (
            "%REACTNB 1.0\ntitle: t\n\n"
            "```cell id=doc kind=md\n"
            "# Usage\n"
            "```js\n"
            "x = 1\n"
            "```\n"
            "More prose here.\n"
            "```\n"
            "```cell id=a kind=js\n"
            "x = 1\n"
            "```\n"
        )
        nb = parse_text(text)
        self.assertEqual([c.id for c in nb.cells], ["doc", "a"])
        self.assertEqual(nb.cells[0].body, "# Usage\n```js\nx = 1\n```\nMore prose here.")
        self.assertEqual(nb.cells[1].body, "x = 1")

        out = serialize(nb)
        self.assertIn("````cell id=doc kind=md\n", out)
        self.assertIn("More prose here.\n````\n```cell id=a kind=js\n", out)
        nb2 = parse_text(out)
        self.assertEqual([c.body for c in nb2.cells], [c.body for c in nb.cells])

    def test_longer_fence_closes_only_on_matching_length(self):
        text = "%REACTNB 1.0\n\n````cell id=a kind=md\nbefore\n```\nafter\n````\n"
        nb = parse_text(text)
        self.assertEqual(len(nb.cells), 1)
        self.assertEqual(nb.cells[0].body, "before\n```\nafter")

    def test_unclosed_inner_block_roundtrip(self):
        nb = parse_text("%REACTNB 1.0\n\n```cell id=a kind=md\nbefore\n```\n")
        nb.cells[0].body = "intro\n```js\nx = 1"
        nb.cells.append(Cell(id="b", kind="js", body="y = 2"))

        nb2 = parse_text(serialize(nb))
        self.assertEqual([c.id for c in nb2.cells], ["a", "b"])
        self.assertEqual([c.body for c in nb2.cells], ["intro\n```js\nx = 1", "y = 2"])

    def test_missing_magic(self):
        with self.assertRaises(ValueError):
            parse_text("title: nope\n```cell id=a\n1\n```\n")
        with self.assertRaises(ValueError):
            parse_text("")

    def test_read_header(self):
        nb = parse_file(str(EXAMPLE))
        header = read_header(nb)
        self.assertEqual(header["title"], "Minimal")
        self.assertEqual(header["globals"], ["flavors"])

    def test_read_header_invalid(self):
        nb = parse_text("%REACTNB 1.0\n- just\n- a list\n")
        with self.assertRaises(ValueError):
            read_header(nb)
        nb = parse_text("%REACTNB 1.0\ntitle: [unclosed\n")
        with self.assertRaises(ValueError):
            read_header(nb)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
