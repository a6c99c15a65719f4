from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from sourcemap_unpack.errors import FetchError, RestoreWriteError
from sourcemap_unpack.format import identity
from sourcemap_unpack.restore import RestoreOptions, restore_sources
from sourcemap_unpack.types import RestoreResult, SourceMap

SVG = b'<svg xmlns="http://www.w3.org/2000/svg"/>'
STUB = 'export default __webpack_public_path__ + "static/media/logo.5d5d9eef.svg";'


class FakeFetcher:
    def __init__(self, responses: dict[str, bytes]) -> None:
        self.responses = responses
        self.requested: list[str] = []

    def get_bytes(self, url: str) -> bytes:
        self.requested.append(url)
        if url not in self.responses:
            raise FetchError(f"HTTP 404 when fetching {url}")
        return self.responses[url]


def _restore(sm: SourceMap, out: Path, **kwargs) -> RestoreResult:
    kwargs.setdefault("formatter", identity)
    return restore_sources(sm, out, RestoreOptions(**kwargs))


class TestRestore(unittest.TestCase):
    def setUp(self):
        self._td = tempfile.TemporaryDirectory()
        self.out = Path(self._td.name)

    def tearDown(self):
        self._td.cleanup()

    def test_end_to_end_traversal_is_collapsed(self):
        sm = SourceMap(
            sources=("webpack:///./src/App.js", "webpack:///./src/../../etc/evil.js"),
            sources_content=("console.log(1)", "console.log(2)"),
        )
        result = _restore(sm, self.out)

        self.assertEqual(result.restored, 2)
        self.assertEqual(result.errors, [])
        self.assertEqual((self.out / "src" / "App.js").read_text(encoding="utf-8"), "console.log(1)")
        self.assertEqual((self.out / "src" / "etc" / "evil.js").read_text(encoding="utf-8"), "console.log(2)")

    def test_fewer_contents_than_sources(self):
        sm = SourceMap(sources=("a.js", "b.js", "c.js"), sources_content=("a", "b"))
        result = _restore(sm, self.out)

        self.assertEqual(result.restored, 2)
        self.assertEqual((self.out / "b.js").read_text(encoding="utf-8"), "b")
        self.assertFalse((self.out / "c.js").exists())

    def test_more_contents_than_sources(self):
        sm = SourceMap(sources=("a.js",), sources_content=("a", "orphan"))
        result = _restore(sm, self.out)

        self.assertEqual(result.restored, 1)
        self.assertEqual(sorted(p.name for p in self.out.iterdir()), ["a.js"])

    def test_no_contents(self):
        result = _restore(SourceMap(sources=("a.js", "b.js")), self.out)
        self.assertEqual((result.restored, result.skipped), (0, 0))

    def test_empty_content_is_skipped(self):
        sm = SourceMap(sources=("a.js", "b.js"), sources_content=("", "b"))
        result = _restore(sm, self.out)

        self.assertEqual((result.restored, result.skipped), (1, 1))
        self.assertFalse((self.out / "a.js").exists())

    def test_fallback_name_for_empty_path(self):
        sm = SourceMap(sources=("a.js", "webpack:///"), sources_content=("a", "b"))
        _restore(sm, self.out)
        self.assertEqual((self.out / "source_1.js").read_text(encoding="utf-8"), "b")

    def test_collision_is_last_write_wins(self):
        sm = SourceMap(sources=("webpack:///./a.js", "./a.js"), sources_content=("first", "second"))
        result = _restore(sm, self.out)

        self.assertEqual(result.restored, 2)
        self.assertEqual((self.out / "a.js").read_text(encoding="utf-8"), "second")

    def test_write_error_is_collected_and_run_continues(self):
        sm = SourceMap(sources=("a", "a/b.js", "c.js"), sources_content=("file", "nested", "c"))
        result = _restore(sm, self.out)

        self.assertEqual(result.restored, 2)
        self.assertEqual(len(result.errors), 1)
        self.assertIsInstance(result.errors[0], RestoreWriteError)
        self.assertIn("a/b.js", str(result.errors[0]))
        self.assertTrue((self.out / "c.js").exists())

    def test_unencodable_content_does_not_abort(self):
        sm = SourceMap(sources=("a.js", "b.js"), sources_content=('var s = "\ud800";', "ok"))
        result = _restore(sm, self.out)

        self.assertEqual(result.restored, 2)
        self.assertEqual(result.errors, [])
        self.assertEqual((self.out / "a.js").read_text(encoding="utf-8"), 'var s = "?";')
        self.assertEqual((self.out / "b.js").read_text(encoding="utf-8"), "ok")

    def test_formatter_failure_writes_original(self):
        def broken(content: str, filename: str) -> str:
            raise RuntimeError("boom")

        sm = SourceMap(sources=("a.js",), sources_content=("var a=1",))
        result = _restore(sm, self.out, formatter=broken)

        self.assertEqual(result.restored, 1)
        self.assertEqual((self.out / "a.js").read_text(encoding="utf-8"), "var a=1")

    def test_formatter_receives_file_name(self):
        seen: list[str] = []

        def upper(content: str, filename: str) -> str:
            seen.append(filename)
            return content.upper()

        sm = SourceMap(sources=("src/a.ts",), sources_content=("let a",))
        _restore(sm, self.out, formatter=upper)

        self.assertEqual(seen, ["a.ts"])
        self.assertEqual((self.out / "src" / "a.ts").read_text(encoding="utf-8"), "LET A")

    def test_same_map_twice_gives_same_counts(self):
        sm = SourceMap(sources=("a.js", "b.js", "../c.js", ""), sources_content=("a", "", "c", "d"))
        with tempfile.TemporaryDirectory() as other:
            first = _restore(sm, self.out)
            second = _restore(sm, Path(other))
        self.assertEqual((first.restored, first.skipped), (second.restored, second.skipped))

    def test_index_map_sections_are_restored(self):
        sm = SourceMap(
            sources=(),
            sections=(
                SourceMap(sources=("a.js",), sources_content=("a",)),
                SourceMap(sources=("lib/b.js",), sources_content=("b",)),
            ),
        )
        result = _restore(sm, self.out)

        self.assertEqual(result.restored, 2)
        self.assertTrue((self.out / "lib" / "b.js").exists())


class TestLoaderStubs(unittest.TestCase):
    def setUp(self):
        self._td = tempfile.TemporaryDirectory()
        self.out = Path(self._td.name)

    def tearDown(self):
        self._td.cleanup()

    def test_stub_is_skipped_without_fetcher(self):
        sm = SourceMap(sources=("webpack:///./src/logo.svg",), sources_content=(STUB,))
        result = _restore(sm, self.out)

        self.assertEqual((result.restored, result.skipped, result.assets_fetched), (0, 1, 0))
        self.assertFalse((self.out / "src" / "logo.svg").exists())

    def test_real_svg_is_written(self):
        sm = SourceMap(sources=("webpack:///./src/logo.svg",), sources_content=(SVG.decode(),))
        result = _restore(sm, self.out)

        self.assertEqual(result.restored, 1)
        self.assertEqual((self.out / "src" / "logo.svg").read_bytes(), SVG)

    def test_stub_is_fetched_from_origin(self):
        fetcher = FakeFetcher({"https://example.com/static/media/logo.5d5d9eef.svg": SVG})
        sm = SourceMap(sources=("webpack:///./src/logo.svg",), sources_content=(STUB,))
        result = _restore(sm, self.out, base_url="https://example.com/app/static/js/main.js", fetcher=fetcher)

        self.assertEqual((result.restored, result.skipped, result.assets_fetched), (1, 0, 1))
        self.assertEqual(fetcher.requested, ["https://example.com/static/media/logo.5d5d9eef.svg"])
        self.assertEqual((self.out / "src" / "logo.svg").read_bytes(), SVG)

    def test_stub_needs_base_url(self):
        fetcher = FakeFetcher({})
        sm = SourceMap(sources=("logo.svg",), sources_content=(STUB,))
        result = _restore(sm, self.out, fetcher=fetcher)

        self.assertEqual(result.skipped, 1)
        self.assertEqual(fetcher.requested, [])

    def test_failed_fetch_skips_without_writing_stub(self):
        fetcher = FakeFetcher({})
        sm = SourceMap(sources=("logo.svg", "a.js"), sources_content=(STUB, "a"))
        result = _restore(sm, self.out, base_url="https://example.com/", fetcher=fetcher)

        self.assertEqual((result.restored, result.skipped, result.assets_fetched), (1, 1, 0))
        self.assertEqual(len(result.errors), 1)
        self.assertIsInstance(result.errors[0], FetchError)
        self.assertFalse((self.out / "logo.svg").exists())

    def test_fetched_asset_with_other_extension_is_renamed(self):
        png = b"\x89PNG\r\n\x1a\n"
        fetcher = FakeFetcher({"https://example.com/static/media/icon.1a2b.png": png})
        sm = SourceMap(
            sources=("webpack:///./src/icon.svg",),
            sources_content=('module.exports = __webpack_public_path__ + "static/media/icon.1a2b.png";',),
        )
        result = _restore(sm, self.out, base_url="https://example.com", fetcher=fetcher)

        self.assertEqual(result.assets_fetched, 1)
        self.assertEqual((self.out / "src" / "icon.png").read_bytes(), png)
        self.assertFalse((self.out / "src" / "icon.svg").exists())


if __name__ == "__main__":
    unittest.main()
