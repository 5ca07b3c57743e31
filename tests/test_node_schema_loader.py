import shutil
import unittest
from pathlib import Path

from extconfig.extension_system import Manifest, PluginConfig, reset_schemas
from extconfig.extension_system.schema_files import NodeModuleSchemaLoader
from extconfig.kernel.config import load_default_config
from extconfig.kernel.errors import SchemaLoadError


FIXTURES = Path(__file__).parent / "fixtures" / "extensions"
PLUGIN_DIR = FIXTURES / "fake-plugin"


class NodeModuleSchemaLoaderTests(unittest.TestCase):
    def test_unknown_module_type(self):
        with self.assertRaises(ValueError):
            NodeModuleSchemaLoader("amd")

    def test_missing_node_executable_is_a_load_failure(self):
        loader = NodeModuleSchemaLoader("commonjs", node_executable="extconfig-no-such-node")
        with self.assertRaisesRegex(SchemaLoadError, "Could not run 'extconfig-no-such-node'"):
            loader.load(PLUGIN_DIR / "plugin.schema.cjs")

    @unittest.skipUnless(shutil.which("node"), "node is not installed")
    def test_commonjs_module(self):
        value = NodeModuleSchemaLoader("commonjs").load((PLUGIN_DIR / "plugin.schema.cjs").resolve())
        self.assertEqual(value, {"type": "object", "properties": {"foo": {"type": "string"}}})

    @unittest.skipUnless(shutil.which("node"), "node is not installed")
    def test_module_default_export(self):
        value = NodeModuleSchemaLoader("module").load((PLUGIN_DIR / "plugin.schema.js").resolve())
        self.assertEqual(value["properties"]["bar"], {"type": "boolean"})

    @unittest.skipUnless(shutil.which("node"), "node is not installed")
    def test_module_that_throws(self):
        with self.assertRaisesRegex(SchemaLoadError, "exited with"):
            NodeModuleSchemaLoader("commonjs").load((PLUGIN_DIR / "broken.schema.json").resolve())


class NodeSchemaReferenceTests(unittest.TestCase):
    def setUp(self):
        reset_schemas()

    def tearDown(self):
        reset_schemas()

    def test_missing_node_is_reported_as_problem(self):
        config = load_default_config()
        config["schema"]["node_executable"] = "extconfig-no-such-node"
        plugins = PluginConfig.create(Manifest(home=FIXTURES), config=config)
        ext_data = {"pkg_name": "fake-plugin", "version": "1.0", "main_class": "Fake", "schema": "plugin.schema.cjs"}
        problems = plugins.get_schema_problems(ext_data, "fake")
        self.assertEqual(len(problems), 1)
        self.assertRegex(problems[0].err, "^Unable to register schema at path plugin\\.schema\\.cjs; Could not run")

    @unittest.skipUnless(shutil.which("node"), "node is not installed")
    def test_cjs_schema_reference_registers(self):
        plugins = PluginConfig.create(Manifest(home=FIXTURES), config=load_default_config())
        ext_data = {"pkg_name": "fake-plugin", "version": "1.0", "main_class": "Fake", "schema": "plugin.schema.cjs"}
        self.assertEqual(plugins.get_schema_problems(ext_data, "fake"), [])
        self.assertEqual(plugins.registry.get("fake")["properties"]["foo"], {"type": "string"})


if __name__ == "__main__":
    unittest.main()
