from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path, PurePosixPath

from sourcemap_unpack.errors import UnsafePathError
from sourcemap_unpack.paths import (
    domain_dirname,
    filename_from_url,
    output_path_for,
    safe_join,
    sanitize_path,
    sanitize_relative_path,
    sanitize_segment,
)

ADVERSARIAL = [
    "../../etc/passwd",
    "/etc/passwd",
    "webpack:///../../../root/.ssh/id_rsa",
    "..\\..\\Windows\\System32\\drivers",
    "C:\\Users\\me\\..\\..\\secret.txt",
    "file:///..%2f../x",
    "./../.././../a.js",
    "a/..../b/.../c",
    'src/<script>:"|?*.js',
    "src/\x00\x01\x1f/evil.js",
    "....//....//etc",
    "\\\\server\\share\\x.js",
    "",
    "/",
    "..",
]


class TestSanitizePath(unittest.TestCase):
    def test_strips_webpack_scheme_and_dot_prefix(self):
        self.assertEqual(sanitize_path("webpack:///./src/App.js"), ("src", "App.js"))

    def test_collapses_traversal_segments(self):
        self.assertEqual(sanitize_path("webpack:///./src/../../etc/evil.js"), ("src", "etc", "evil.js"))
        self.assertEqual(sanitize_path("../../etc/passwd"), ("etc", "passwd"))

    def test_absolute_paths_become_relative(self):
        self.assertEqual(sanitize_path("/etc/passwd"), ("etc", "passwd"))
        self.assertEqual(sanitize_relative_path("file:///Users/me/project/index.ts"), "Users/me/project/index.ts")

    def test_windows_paths(self):
        self.assertEqual(
            sanitize_path("C:\\Windows\\sys<te>m32|?.dll"),
            ("C", "Windows", "system32.dll"),
        )

    def test_segment_cleaning(self):
        self.assertEqual(sanitize_segment("my file.js"), "my_file.js")
        self.assertEqual(sanitize_segment("name..."), "name")
        self.assertEqual(sanitize_segment(".env"), ".env")
        self.assertEqual(sanitize_segment("...hidden"), ".hidden")
        self.assertEqual(sanitize_segment("fi\x00le\x1f.js"), "file.js")
        self.assertEqual(sanitize_segment(".."), "")

    def test_drops_segments_with_invalid_text(self):
        self.assertEqual(sanitize_path("src/\ud800bad/a.js"), ("src", "a.js"))

    def test_never_yields_traversal_or_absolute_paths(self):
        for source in ADVERSARIAL:
            with self.subTest(source=source):
                parts = sanitize_path(source)
                for part in parts:
                    self.assertNotIn(part, ("", ".", ".."))
                    self.assertFalse(part.startswith(".."))
                    self.assertNotIn("/", part)
                    self.assertNotIn("\\", part)
                    self.assertNotIn(":", part)
                if parts:
                    self.assertFalse(PurePosixPath(*parts).is_absolute())

    def test_is_deterministic(self):
        for source in ADVERSARIAL + ["webpack:///./src/App.js"]:
            self.assertEqual(sanitize_path(source), sanitize_path(source))


class TestOutputPath(unittest.TestCase):
    def test_normal_path(self):
        base = Path("/tmp/out")
        out = output_path_for(base, "webpack:///./src/components/Button.tsx", 0)
        self.assertEqual(out, base / "src" / "components" / "Button.tsx")

    def test_empty_result_uses_index_fallback(self):
        base = Path("/tmp/out")
        self.assertEqual(output_path_for(base, "webpack:///", 3), base / "source_3.js")
        self.assertEqual(output_path_for(base, "../..", 7), base / "source_7.js")

    def test_oversized_result_uses_index_fallback(self):
        base = Path("/tmp/out")
        source = "/".join(["directory"] * 40) + "/index.js"
        self.assertEqual(output_path_for(base, source, 12), base / "source_12.js")

    @unittest.skipIf(os.name == "nt", "symlinks need privileges on Windows")
    def test_symlink_escape_uses_fallback(self):
        with tempfile.TemporaryDirectory() as td, tempfile.TemporaryDirectory() as outside:
            base = Path(td)
            (base / "link").symlink_to(outside, target_is_directory=True)
            self.assertEqual(output_path_for(base, "link/x.js", 5), base / "source_5.js")

    def test_safe_join_prevents_escape(self):
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(UnsafePathError):
                safe_join(Path(td), "../escape.js")


class TestNames(unittest.TestCase):
    def test_filename_from_url(self):
        self.assertEqual(filename_from_url("https://example.com/static/js/main.3f2a.js?v=1"), "main.3f2a.js")
        self.assertEqual(filename_from_url("https://example.com/"), "index.js")
        self.assertEqual(filename_from_url("https://example.com/", default="index.js.map"), "index.js.map")

    def test_domain_dirname_drops_port(self):
        self.assertEqual(domain_dirname("example.com:8080"), "example.com-unpacked")
        self.assertEqual(domain_dirname("example.com"), "example.com-unpacked")


if __name__ == "__main__":
    unittest.main()
