import json
import sys
import tempfile
import unittest
from pathlib import Path

from extconfig.extension_system.packages import PackageResolver
from extconfig.extension_system.schema_files import (
    ALLOWED_SCHEMA_EXTENSIONS,
    JsonSchemaLoader,
    SchemaResolver,
    is_allowed_schema_file,
)
from extconfig.kernel.errors import (
    MalformedSchemaReference,
    SchemaFileNotFound,
    SchemaLoadError,
    UnsupportedSchemaExtension,
)


FIXTURES = Path(__file__).parent / "fixtures" / "extensions"


class _StaticLoader:
    def __init__(self, value) -> None:
        self.value = value
        self.paths: list[Path] = []

    def load(self, path: Path):
        self.paths.append(path)
        return self.value


class _FailingLoader:
    def load(self, path: Path):
        raise RuntimeError("module threw during evaluation")


class SchemaResolverTests(unittest.TestCase):
    def setUp(self) -> None:
        self.packages = PackageResolver([FIXTURES])
        self.resolver = SchemaResolver(self.packages, {".json": JsonSchemaLoader()})

    def test_allow_list_has_exactly_three_suffixes(self) -> None:
        self.assertEqual(ALLOWED_SCHEMA_EXTENSIONS, (".json", ".js", ".cjs"))
        self.assertTrue(is_allowed_schema_file("a/b/schema.cjs"))
        self.assertFalse(is_allowed_schema_file("schema.yaml"))
        self.assertFalse(is_allowed_schema_file("schema"))

    def test_inline_schema_is_passed_through(self) -> None:
        schema = {"type": "object"}
        resolved = self.resolver.resolve("whatever", schema)
        self.assertIs(resolved.value, schema)
        self.assertIsNone(resolved.source_path)

    def test_non_path_non_object_reference_is_malformed(self) -> None:
        for reference in ([], 42, True, ["plugin.schema.json"]):
            with self.subTest(reference=reference):
                with self.assertRaises(MalformedSchemaReference) as ctx:
                    self.resolver.resolve("fake-plugin", reference)
                self.assertEqual(
                    str(ctx.exception),
                    "Incorrectly formatted schema field; must be a path to a schema file or a schema object.",
                )
                self.assertEqual(ctx.exception.val, reference)

    def test_unsupported_extension_names_allowed_suffixes(self) -> None:
        with self.assertRaises(UnsupportedSchemaExtension) as ctx:
            self.resolver.resolve("fake-plugin", "x.unsupported")
        self.assertEqual(str(ctx.exception), "Schema file has unsupported extension. Allowed: .json, .js, .cjs")
        self.assertEqual(ctx.exception.val, "x.unsupported")

    def test_allowed_extensions_pass_the_suffix_check(self) -> None:
        resolver = SchemaResolver(
            self.packages,
            {".json": _StaticLoader({}), ".js": _StaticLoader({}), ".cjs": _StaticLoader({})},
        )
        for name in ("x.json", "x.js", "x.cjs"):
            with self.subTest(name=name):
                with self.assertRaises(SchemaFileNotFound):
                    resolver.resolve("fake-plugin", name)

    def test_missing_package_or_file_is_not_found(self) -> None:
        with self.assertRaises(SchemaFileNotFound) as ctx:
            self.resolver.resolve("doop", "herp.json")
        self.assertIn("herp.json", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, FileNotFoundError)
        with self.assertRaises(SchemaFileNotFound):
            self.resolver.resolve("fake-plugin", "missing.json")

    def test_found_file_is_loaded_with_its_absolute_path(self) -> None:
        resolved = self.resolver.resolve("fake-plugin", "plugin.schema.json")
        expected_path = (FIXTURES / "fake-plugin" / "plugin.schema.json").resolve()
        self.assertEqual(resolved.source_path, expected_path)
        self.assertEqual(resolved.value, json.loads(expected_path.read_text(encoding="utf-8")))

    def test_loader_is_picked_by_suffix(self) -> None:
        cjs = _StaticLoader({"type": "string"})
        resolver = SchemaResolver(self.packages, {".json": JsonSchemaLoader(), ".cjs": cjs})
        resolved = resolver.resolve("fake-plugin", "plugin.schema.cjs")
        self.assertEqual(resolved.value, {"type": "string"})
        self.assertEqual(cjs.paths, [(FIXTURES / "fake-plugin" / "plugin.schema.cjs").resolve()])

    def test_allowed_suffix_without_loader_is_unsupported(self) -> None:
        with self.assertRaises(UnsupportedSchemaExtension):
            self.resolver.resolve("fake-plugin", "plugin.schema.cjs")

    def test_load_failures_are_wrapped(self) -> None:
        with self.assertRaises(SchemaLoadError) as ctx:
            self.resolver.resolve("fake-plugin", "broken.schema.json")
        self.assertIsInstance(ctx.exception.__cause__, json.JSONDecodeError)
        self.assertEqual(ctx.exception.val, "broken.schema.json")

        resolver = SchemaResolver(self.packages, {".cjs": _FailingLoader()})
        with self.assertRaisesRegex(SchemaLoadError, "module threw during evaluation"):
            resolver.resolve("fake-plugin", "plugin.schema.cjs")


class PackageResolverTests(unittest.TestCase):
    def test_first_search_path_with_the_package_wins(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            first = Path(tmp) / "first"
            (first / "fake-plugin").mkdir(parents=True)
            (first / "fake-plugin" / "plugin.schema.json").write_text("{}", encoding="utf-8")
            packages = PackageResolver([first, FIXTURES])
            located = packages.locate("fake-plugin", "plugin.schema.json")
            self.assertEqual(located, (first / "fake-plugin" / "plugin.schema.json").resolve())

    def test_falls_back_to_importable_python_package(self) -> None:
        packages = PackageResolver([FIXTURES])
        located = packages.locate("json", "__init__.py")
        self.assertEqual(located.name, "__init__.py")
        self.assertEqual(located.parent.name, "json")

    def test_dotted_name_never_imports_its_parent(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / "extconfig_exploding_pkg.py").write_text(
                "raise RuntimeError('imported during lookup')\n", encoding="utf-8"
            )
            sys.path.insert(0, tmp)
            try:
                packages = PackageResolver([FIXTURES])
                with self.assertRaises(FileNotFoundError):
                    packages.locate("extconfig_exploding_pkg.sub", "s.json")
                resolver = SchemaResolver(packages, {".json": JsonSchemaLoader()})
                with self.assertRaises(SchemaFileNotFound):
                    resolver.resolve("extconfig_exploding_pkg.sub", "s.json")
            finally:
                sys.path.remove(tmp)
            self.assertNotIn("extconfig_exploding_pkg", sys.modules)

    def test_package_names_cannot_walk_out_of_search_paths(self) -> None:
        packages = PackageResolver([FIXTURES / "fake-plugin"])
        for pkg_name in ("..", "../extensions", "../fixtures", "a/b", "@scope/..", "/tmp", "a\\b"):
            with self.subTest(pkg_name=pkg_name):
                with self.assertRaises(FileNotFoundError):
                    packages.package_root(pkg_name)

    def test_scoped_package_name(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            scoped = Path(tmp) / "@acme" / "fake"
            scoped.mkdir(parents=True)
            (scoped / "schema.json").write_text("{}", encoding="utf-8")
            located = PackageResolver([tmp]).locate("@acme/fake", "schema.json")
            self.assertEqual(located, (scoped / "schema.json").resolve())

    def test_schema_path_cannot_leave_the_package(self) -> None:
        packages = PackageResolver([FIXTURES])
        absolute = str((FIXTURES / "fake-driver" / "driver.schema.json").resolve())
        for relative_path in ("../fake-driver/driver.schema.json", absolute):
            with self.subTest(relative_path=relative_path):
                with self.assertRaisesRegex(FileNotFoundError, "escapes package"):
                    packages.locate("fake-plugin", relative_path)

    def test_unknown_package_raises(self) -> None:
        packages = PackageResolver([FIXTURES])
        with self.assertRaisesRegex(FileNotFoundError, "not installed"):
            packages.package_root("no-such-extension-package")
        with self.assertRaises(FileNotFoundError):
            packages.package_root("")


if __name__ == "__main__":
    unittest.main()
