"""
Switchyard plugins: discovery, integration and lifecycle hooks.

Plugin shape
- name (required, non-empty), version, description
- commands: name → Command (or Lazy, or a bare loader)
- services: Service(token, factory, lifecycle) entries; lifecycle is
  "singleton" (instantiated at integration time) or "transient" (a factory
  resolved on first use)
- middleware: outer middleware appended to the router
- hooks: Hooks(before_init, after_init, before_command, after_command)

A plugin may be given as a Plugin, as a module (its `plugin` attribute, or the
module's own attributes), as a mapping, or as any object carrying the
attributes above.

Discovery (Loader)
- Distributions: every requirement listed in the working directory's
  pyproject.toml ([project].dependencies and every optional-dependencies
  group) whose distribution declares an entry point in the "switchyard.plugins"
  group or the program-specific "<cli name>.plugins" group.
- Local files: with allow_local, every *.py file (not starting with "_") in
  the search paths ("plugins" and "src/plugins" by default).
- A plugin that fails to load is skipped. The failure is logged at debug
  level, or as a warning with its traceback when DEBUG is set.

Integration order
    before_init → services → commands → middleware → after_init
"""
import importlib.metadata
import importlib.util
import logging
import os
import re
import sys
import tomllib
import types
from collections import namedtuple
from collections.abc import Mapping
from pathlib import Path

from .faults import ConfigError, PluginError
from .registry import Token
from .utils import *

logger = logging.getLogger(__name__)

Service = namedtuple("Service", ("token", "factory", "lifecycle"), defaults=("singleton",))
"""
A service contributed by a plugin: registered under token, built by factory.
"""

Hooks = namedtuple(
    "Hooks",
    ("before_init", "after_init", "before_command", "after_command"),
    defaults=(None, None, None, None)
)
"""
Plugin lifecycle callbacks. before_command/after_command receive the command name.
"""

PluginOptions = namedtuple(
    "PluginOptions",
    ("enabled", "auto_load", "search_paths", "allow_local", "plugins"),
    defaults=(True, False, ("plugins", "src/plugins"), True, ())
)
"""
Plugin settings of a CLI: enabled gates everything, plugins is the explicit
registration table (integrated first), auto_load turns discovery on.
"""

LIFECYCLES = ("singleton", "transient")
GROUP = "switchyard.plugins"


def _service(object, /):
    match object:
        case Service():
            service = object
        case Mapping():
            service = Service(**object)
        case (token, factory) | (token, factory, _):
            service = Service(*object)
        case _:
            raise TypeError(f"unsupported plugin service {object!r}")
    if not isinstance(service.token, Token):
        raise TypeError("plugin service token must be a Token")
    if not callable(service.factory):
        raise TypeError("plugin service factory must be callable")
    if service.lifecycle not in LIFECYCLES:
        raise ValueError(f"plugin service lifecycle must be one of {', '.join(map(repr, LIFECYCLES))}")
    return service


def _hooks(object, /):
    hooks = object if isinstance(object, Hooks) else Hooks(**(object or {}))
    for name, hook in zip(Hooks._fields, hooks):
        if hook is not None and not callable(hook):
            raise TypeError(f"plugin hook {name!r} must be callable")
    return hooks


class Plugin(metaclass=SpecType):
    __introspectable__ = (
        "name",
        "version",
        "description",
        "commands",
        "middleware",
    )
    __displayable__ = (
        "name",
        "version",
    )

    def __init__(
            self,
            name,
            /,
            version=Unset,
            description=Unset,
            *,
            commands=Unset,
            services=(),
            middleware=(),
            hooks=Unset
    ):
        if not isinstance(name, str):
            raise PluginError("Plugin must define a name")
        elif not (name := name.strip()):
            raise PluginError("Plugin name cannot be empty")
        if not isinstance(commands := coalesce(commands, {}), Mapping):
            raise TypeError(f"plugin {name!r} commands must be a mapping")
        if not all(map(callable, middleware := tuple(middleware))):
            raise TypeError(f"plugin {name!r} middleware must be callables")

        self._name = name
        self._version = coalesce(version)
        self._description = coalesce(description)
        self._commands = dict(commands)
        self._services = tuple(map(_service, services))
        self._middleware = middleware
        self._hooks = _hooks(hooks)

    @property
    def services(self):
        return self._services

    @property
    def hooks(self):
        return self._hooks


class LoadedPlugin(Plugin):
    """
    A plugin plus where it came from: the distribution (or "local:<name>"),
    its version and the entry point or file it was loaded from.
    """
    __introspectable__ = Plugin.__introspectable__ + (
        "package",
        "package_version",
        "path",
    )
    __displayable__ = (
        "name",
        "package",
        "package_version",
    )

    @classmethod
    def of(cls, plugin, /, package=Unset, package_version=Unset, path=Unset):
        plugin = coerce_plugin(plugin)
        self = cls(
            plugin.name,
            plugin.version,
            plugin.description,
            commands=plugin.commands,
            services=plugin.services,
            middleware=plugin.middleware,
            hooks=plugin.hooks,
        )
        self._package = coalesce(package, getattr(plugin, "package", None))
        self._package_version = coalesce(package_version, getattr(plugin, "package_version", None))
        self._path = coalesce(path, getattr(plugin, "path", None))
        return self

    def __init__(self, name, /, *args, **kwargs):
        super().__init__(name, *args, **kwargs)
        self._package = None
        self._package_version = None
        self._path = None


def coerce_plugin(object, /):
    """
    Turn whatever a plugin module or entry point exported into a Plugin.

    Raises
    - PluginError: when the object carries no usable name.
    """
    if isinstance(object, types.ModuleType):
        object = getattr(object, "plugin", object)
    if isinstance(object, Plugin):
        return object

    if isinstance(object, Mapping):
        get = object.get
    else:
        def get(key, default=Unset):
            return getattr(object, key, default)

    if not isinstance(name := get("name", Unset), str) or not name.strip():
        raise PluginError(f"Plugin {object!r} must export a name")
    return Plugin(
        name,
        get("version", Unset),
        get("description", Unset),
        commands=get("commands", Unset),
        services=get("services", ()) or (),
        middleware=get("middleware", ()) or (),
        hooks=get("hooks", Unset),
    )


def _requirement(requirement, /):
    """
    Distribution name of a PEP 508 requirement string ("rich>=13" → "rich").
    """
    if match := re.match(r"\s*([A-Za-z0-9][A-Za-z0-9._-]*)", requirement):
        return match.group(1)
    return None


class Loader:
    def __init__(self, name, /, *, search_paths=("plugins", "src/plugins"), allow_local=True, root=Unset):
        if not isinstance(name, str):
            raise TypeError("plugin loader name must be a string")
        self._name = name
        self._search_paths = tuple(search_paths)
        self._allow_local = bool(allow_local)
        self._root = Path(coalesce(root, os.curdir))
        self._plugins = {}

    @property
    def groups(self):
        return GROUP, f"{self._name}.plugins"

    @property
    def plugins(self):
        return tuple(self._plugins.values())

    def get(self, name, /):
        return self._plugins.get(name)

    def _failed(self, message, error, /):
        if os.environ.get("DEBUG"):
            logger.warning("%s", message, exc_info=error)
        else:
            logger.debug("%s: %s", message, error)

    def dependencies(self):
        """
        Distribution names required by the project in the working directory.
        """
        path = self._root / "pyproject.toml"
        if not path.is_file():
            return []
        try:
            with path.open("rb") as file:
                project = tomllib.load(file).get("project", {})
        except tomllib.TOMLDecodeError as error:
            raise ConfigError(f"Invalid pyproject.toml: {error}", str(path)) from error

        requirements = list(project.get("dependencies", []))
        for group in project.get("optional-dependencies", {}).values():
            requirements += group
        names = dict.fromkeys(filter(None, map(_requirement, requirements)))
        return list(names)

    def _distribution(self, name, /):
        try:
            distribution = importlib.metadata.distribution(name)
        except importlib.metadata.PackageNotFoundError:
            logger.debug("dependency %r is not installed, skipping", name)
            return []

        plugins = []
        for entry_point in distribution.entry_points:
            if entry_point.group not in self.groups:
                continue
            try:
                plugin = LoadedPlugin.of(
                    entry_point.load(),
                    package=name,
                    package_version=distribution.version,
                    path=entry_point.value,
                )
            except Exception as error:
                self._failed(f"Failed to load plugin {name}", error)
                continue
            plugins.append(plugin)
        return plugins

    def _file(self, path, /):
        spec = importlib.util.spec_from_file_location(f"{self._name}_plugins.{path.stem}", path)
        if spec is None or spec.loader is None:
            raise PluginError(f"Cannot import plugin file {str(path)!r}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[spec.name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(spec.name, None)
            raise
        plugin = coerce_plugin(module)
        return LoadedPlugin.of(
            plugin,
            package=f"local:{plugin.name}",
            package_version=plugin.version or "0.0.0",
            path=str(path),
        )

    def local(self):
        plugins = []
        for search_path in self._search_paths:
            if not (directory := self._root / search_path).is_dir():
                continue
            for path in sorted(directory.glob("*.py")):
                if path.name.startswith("_"):
                    continue
                try:
                    plugins.append(self._file(path))
                except Exception as error:
                    self._failed(f"Failed to load local plugin {str(path)!r}", error)
        return plugins

    def load(self):
        """
        Discover every plugin: installed distributions first, then local files.
        """
        plugins = []
        for dependency in self.dependencies():
            plugins += self._distribution(dependency)
        if self._allow_local:
            plugins += self.local()
        for plugin in plugins:
            self._plugins[plugin.name] = plugin
        return plugins

    def add(self, plugin, /):
        self._plugins[plugin.name] = plugin
        return plugin


class Integration:
    """
    Wire plugins into a CLI: services into its registry, commands into its
    table (help is regenerated), middleware into its router.

    Hooks
    - before_command(name) / after_command(name) run every loaded plugin's
      hook, in load order.
    """

    def __init__(self, cli, registry, /, options=PluginOptions()):
        if not isinstance(options, PluginOptions):
            raise TypeError("plugin options must be PluginOptions")
        self._cli = cli
        self._registry = registry
        self._options = options
        self._loader = Loader(cli.name, search_paths=options.search_paths, allow_local=options.allow_local)
        self._plugins = []
        self._initialized = False

    @property
    def loader(self):
        return self._loader

    @property
    def plugins(self):
        return tuple(self._plugins)

    def is_loaded(self, name, /):
        return any(plugin.name == name for plugin in self._plugins)

    def initialize(self):
        if self._initialized or not self._options.enabled:
            return
        self._initialized = True
        for plugin in self._options.plugins:
            self.integrate(self._loader.add(LoadedPlugin.of(plugin)))
        if self._options.auto_load:
            self.load_all()

    def load_all(self):
        for plugin in self._loader.load():
            self.integrate(plugin)

    def load_plugin(self, name, /):
        if (plugin := self._loader.get(name)) is None:
            raise PluginError(f"Plugin {name!r} not found", name)
        self.integrate(plugin)

    def integrate(self, plugin, /):
        plugin = plugin if isinstance(plugin, LoadedPlugin) else LoadedPlugin.of(plugin)
        hooks = plugin.hooks

        if hooks.before_init is not None:
            hooks.before_init()

        for service in plugin.services:
            if service.lifecycle == "singleton":
                self._registry.register(service.token, service.factory())
            else:
                self._registry.register_factory(service.token, service.factory)

        for name, command in plugin.commands.items():
            self._cli.register_command(name, command)

        for middleware in plugin.middleware:
            self._cli.use(middleware)

        if hooks.after_init is not None:
            hooks.after_init()

        if not self.is_loaded(plugin.name):
            self._plugins.append(plugin)
        logger.debug("integrated plugin %r", plugin.name)

    def before_command(self, name, /):
        for plugin in self._plugins:
            if plugin.hooks.before_command is not None:
                plugin.hooks.before_command(name)

    def after_command(self, name, /):
        for plugin in self._plugins:
            if plugin.hooks.after_command is not None:
                plugin.hooks.after_command(name)


__all__ = (
    "Plugin",
    "LoadedPlugin",
    "Service",
    "Hooks",
    "PluginOptions",
    "Loader",
    "Integration",
    "coerce_plugin",
)
