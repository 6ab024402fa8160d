# python
"""
Tests for plugins: coercion, discovery and integration into a CLI.

Scope
- Plugin / coerce_plugin shapes and failures.
- Loader: local files, pyproject dependencies and entry points.
- Integration: ordering, service lifecycles, hook dispatch.

Conventions
- CLIs are built with trap_signals=False and a mock registry so that no
  process-wide handler is installed and nothing is logged to the terminal.
- Files are written into temporary directories only.
"""
import importlib.metadata
import os
import sys
import tempfile
import textwrap
import types
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest import TestCase, mock

from switchyard.cli import CLI
from switchyard.commands import Command
from switchyard.faults import ConfigError, PluginError
from switchyard.plugins import *
from switchyard.registry import Token
from switchyard.testing import mock_registry


class TestPlugin(TestCase):
    def testNameIsRequired(self):
        with self.assertRaises(PluginError):
            Plugin("  ")
        with self.assertRaises(PluginError):
            Plugin(None)

    def testDefaults(self):
        plugin = Plugin("audit")
        self.assertIsNone(plugin.version)
        self.assertEqual(plugin.commands, {})
        self.assertEqual(plugin.services, ())
        self.assertEqual(plugin.hooks, Hooks())

    def testServiceShapes(self):
        token = Token("db")
        plugin = Plugin("audit", services=(
            (token, dict),
            {"token": token, "factory": dict, "lifecycle": "transient"},
        ))
        self.assertEqual(plugin.services, (
            Service(token, dict, "singleton"),
            Service(token, dict, "transient"),
        ))

    def testInvalidServices(self):
        with self.assertRaises(ValueError):
            Plugin("audit", services=(Service(Token("db"), dict, "scoped"),))
        with self.assertRaises(TypeError):
            Plugin("audit", services=(Service("db", dict),))

    def testHooksFromMapping(self):
        hook = lambda name: None
        self.assertIs(Plugin("audit", hooks={"before_command": hook}).hooks.before_command, hook)
        with self.assertRaises(TypeError):
            Plugin("audit", hooks={"after_init": "nope"})


class TestCoercePlugin(TestCase):
    def testMapping(self):
        plugin = coerce_plugin({"name": "audit", "version": "1.0.0"})
        self.assertEqual((plugin.name, plugin.version), ("audit", "1.0.0"))

    def testModuleWithPluginAttribute(self):
        module = types.ModuleType("audit_plugin")
        module.plugin = Plugin("audit")
        self.assertIs(coerce_plugin(module), module.plugin)

    def testModuleAttributes(self):
        module = types.ModuleType("audit_plugin")
        module.name = "audit"
        module.commands = {"audit": Command("audit")}
        self.assertEqual(list(coerce_plugin(module).commands), ["audit"])

    def testMissingName(self):
        with self.assertRaises(PluginError):
            coerce_plugin({"version": "1.0.0"})
        with self.assertRaises(PluginError):
            coerce_plugin(SimpleNamespace(commands={}))


class TestLoader(TestCase):
    def setUp(self):
        directory = tempfile.TemporaryDirectory()
        self.addCleanup(directory.cleanup)
        self.root = Path(directory.name)
        environment = mock.patch.dict(os.environ)
        environment.start()
        self.addCleanup(environment.stop)
        os.environ.pop("DEBUG", None)

    def write(self, relative, content):
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content))
        return path

    def testGroups(self):
        self.assertEqual(Loader("tool").groups, ("switchyard.plugins", "tool.plugins"))

    def testLocalPlugins(self):
        path = self.write("plugins/hello.py", """
            from switchyard import Command

            name = "hello"
            commands = {"hello": Command("hello", handler=lambda context: "hi")}
        """)
        self.write("plugins/_private.py", "raise RuntimeError('must not be imported')\n")
        plugins = Loader("tool", root=self.root).load()
        self.assertEqual(len(plugins), 1)
        plugin = plugins[0]
        self.assertEqual(plugin.name, "hello")
        self.assertEqual(plugin.package, "local:hello")
        self.assertEqual(plugin.package_version, "0.0.0")
        self.assertEqual(plugin.path, str(path))
        self.assertEqual(list(plugin.commands), ["hello"])

    def testLocalPluginDefiningDataclass(self):
        self.write("plugins/records.py", """
            from __future__ import annotations

            from dataclasses import dataclass

            name = "records"

            @dataclass
            class Record:
                key: str
                value: int = 0
        """)
        self.addCleanup(sys.modules.pop, "tool_plugins.records", None)
        plugins = Loader("tool", root=self.root).load()
        self.assertEqual([plugin.name for plugin in plugins], ["records"])
        self.assertIn("tool_plugins.records", sys.modules)

    def testFailedLocalPluginIsUnregistered(self):
        self.write("plugins/broken.py", "raise RuntimeError('boom')\n")
        Loader("tool", root=self.root).load()
        self.assertNotIn("tool_plugins.broken", sys.modules)

    def testSecondarySearchPath(self):
        self.write("src/plugins/extra.py", "name = 'extra'\nversion = '2.0.0'\n")
        loader = Loader("tool", root=self.root)
        loader.load()
        self.assertEqual(loader.get("extra").package_version, "2.0.0")

    def testBrokenLocalPluginIsSkipped(self):
        self.write("plugins/broken.py", "raise RuntimeError('boom')\n")
        self.write("plugins/ok.py", "name = 'ok'\n")
        with self.assertLogs("switchyard.plugins", level="DEBUG") as logs:
            plugins = Loader("tool", root=self.root).load()
        self.assertEqual([plugin.name for plugin in plugins], ["ok"])
        self.assertTrue(any("Failed to load local plugin" in line for line in logs.output))

    def testBrokenLocalPluginWarnsInDebug(self):
        os.environ["DEBUG"] = "1"
        self.write("plugins/broken.py", "raise RuntimeError('boom')\n")
        with self.assertLogs("switchyard.plugins", level="WARNING"):
            Loader("tool", root=self.root).load()

    def testLocalDisabled(self):
        self.write("plugins/hello.py", "name = 'hello'\n")
        self.assertEqual(Loader("tool", allow_local=False, root=self.root).load(), [])

    def testDependencies(self):
        self.write("pyproject.toml", """
            [project]
            name = "app"
            dependencies = ["rich>=13.0", "tool-audit ; python_version >= '3.12'"]

            [project.optional-dependencies]
            test = ["pytest>=7", "rich"]
        """)
        self.assertEqual(Loader("tool", root=self.root).dependencies(), ["rich", "tool-audit", "pytest"])

    def testMissingPyproject(self):
        self.assertEqual(Loader("tool", root=self.root).dependencies(), [])

    def testInvalidPyproject(self):
        self.write("pyproject.toml", "[project\n")
        with self.assertRaises(ConfigError):
            Loader("tool", root=self.root).dependencies()

    def testEntryPoints(self):
        self.write("pyproject.toml", """
            [project]
            name = "app"
            dependencies = ["tool-audit", "missing-dist"]
        """)
        wanted = SimpleNamespace(group="tool.plugins", value="tool_audit:plugin", load=lambda: Plugin("audit"))
        ignored = SimpleNamespace(group="console_scripts", value="tool_audit:main", load=lambda: None)
        distribution = SimpleNamespace(version="1.4.0", entry_points=[wanted, ignored])

        def lookup(name):
            if name == "tool-audit":
                return distribution
            raise importlib.metadata.PackageNotFoundError(name)

        with mock.patch("importlib.metadata.distribution", side_effect=lookup):
            plugins = Loader("tool", allow_local=False, root=self.root).load()
        self.assertEqual(len(plugins), 1)
        self.assertEqual(plugins[0].name, "audit")
        self.assertEqual(plugins[0].package, "tool-audit")
        self.assertEqual(plugins[0].package_version, "1.4.0")
        self.assertEqual(plugins[0].path, "tool_audit:plugin")


class TestIntegration(TestCase):
    def setUp(self):
        self.registry = mock_registry()
        self.events = []

    def cli(self, *plugins, **options):
        return CLI(
            "tool",
            "1.0.0",
            registry=self.registry,
            trap_signals=False,
            plugins=PluginOptions(plugins=plugins, allow_local=False, **options),
        )

    def event(self, label):
        return lambda *args: self.events.append((label, *args))

    def testIntegrationOrder(self):
        token = Token("audit")

        def factory():
            self.events.append(("service",))
            return "audit-service"

        def middleware(context, command, next):
            self.events.append(("middleware", command.name))
            return next()

        plugin = Plugin(
            "audit",
            commands={"audit": Command("audit", handler=lambda context: self.events.append(("audit",)))},
            services=(Service(token, factory),),
            middleware=(middleware,),
            hooks=Hooks(before_init=self.event("before_init"), after_init=self.event("after_init")),
        )
        cli = self.cli(plugin)
        cli.plugins.initialize()
        self.assertEqual(self.events, [("before_init",), ("service",), ("after_init",)])
        self.assertIn("audit", cli.commands)
        self.assertEqual(self.registry.get(token), "audit-service")
        self.assertEqual(cli.router.middleware, (middleware,))

    def testTransientServicesAreDeferred(self):
        calls = []
        token = Token("cache")
        cli = self.cli(Plugin("cache", services=(Service(token, lambda: calls.append(1) or "cache", "transient"),)))
        cli.plugins.initialize()
        self.assertEqual(calls, [])
        self.assertEqual(self.registry.get(token), "cache")
        self.assertEqual(self.registry.get(token), "cache")
        self.assertEqual(calls, [1])

    def testHooksFireOncePerDispatch(self):
        first = Plugin(
            "first",
            commands={"ping": Command("ping", handler=lambda context: self.events.append(("ping",)) or "pong")},
            hooks=Hooks(before_command=self.event("first:before"), after_command=self.event("first:after")),
        )
        second = Plugin(
            "second",
            hooks=Hooks(before_command=self.event("second:before"), after_command=self.event("second:after")),
        )
        cli = self.cli(first, second)
        self.assertEqual(cli.run(["ping"]), "pong")
        self.assertEqual(self.events, [
            ("first:before", "ping"),
            ("second:before", "ping"),
            ("ping",),
            ("first:after", "ping"),
            ("second:after", "ping"),
        ])
        cli.run(["ping"])
        self.assertEqual(len(self.events), 10)

    def testInitializeRunsOnce(self):
        cli = self.cli(Plugin("audit", hooks=Hooks(before_init=self.event("before_init"))))
        cli.plugins.initialize()
        cli.plugins.initialize()
        self.assertEqual(self.events, [("before_init",)])
        self.assertTrue(cli.plugins.is_loaded("audit"))
        self.assertEqual([plugin.name for plugin in cli.plugins.plugins], ["audit"])

    def testHelpListsPluginCommands(self):
        cli = self.cli(Plugin("audit", commands={"audit": Command("audit", "Audit the project")}))
        before = cli.commands["help"]
        cli.plugins.initialize()
        self.assertIsNot(cli.commands["help"], before)
        self.assertIn("Audit the project", cli.run(["help"]))

    def testLoadPlugin(self):
        cli = self.cli(Plugin("audit", hooks=Hooks(after_init=self.event("after_init"))))
        cli.plugins.initialize()
        cli.plugins.load_plugin("audit")
        self.assertEqual(self.events, [("after_init",), ("after_init",)])
        self.assertEqual(len(cli.plugins.plugins), 1)
        with self.assertRaises(PluginError):
            cli.plugins.load_plugin("missing")

    def testAutoLoadDiscovers(self):
        cli = self.cli(auto_load=True)
        discovered = LoadedPlugin.of(Plugin("found", commands={"found": Command("found")}))
        with mock.patch.object(Loader, "load", return_value=[discovered]) as load:
            cli.plugins.initialize()
        load.assert_called_once_with()
        self.assertIn("found", cli.commands)

    def testDisabled(self):
        cli = CLI("tool", "1.0.0", registry=self.registry, trap_signals=False, plugins=PluginOptions(enabled=False))
        self.assertIsNone(cli.plugins)


if __name__ == "__main__":
    unittest.main()
