"""
Switchyard orchestrator: one CLI object wiring registry, commands, router and plugins.

Construction (create_cli / CLI)
- Core services are registered unless the given registry already holds them:
  • ConfigToken   → Config(name, version, description)
  • LoggerToken   → Logger("switchyard.<name>"), verbose when --verbose is on the command line
  • PrompterToken → Prompter()
  • ConsoleToken  → rich Console used by commands for their output
- The command table starts with the built-in help and version commands; user
  commands are layered on top (and may replace them).
- Outer middleware from the configuration is handed to the router.
- With plugins enabled, an Integration is attached.

run(args=None)
    bootstrap (once) → setup(registry) → plugin initialization
    → before_command hooks → router.route(args) → after_command hooks

Any exception escaping run is logged as "Fatal error: <error>" and the process
exits with the error's exit code (1 for errors that carry none).
"""
import sys
import types

from rich.console import Console

from . import bootstrap, faults
from .commands import entry, table
from .plugins import Integration, PluginOptions
from .registry import Registry, Config, ConfigToken, LoggerToken, PrompterToken, ConsoleToken
from .router import Router
from .services import Logger, Prompter
from .universal import HelpOptions, help_command, version_command
from .utils import *


class CLI:
    def __init__(
            self,
            name,
            version,
            /,
            description=None,
            *,
            commands=Unset,
            registry=Unset,
            middleware=(),
            help=HelpOptions(),
            custom_router=None,
            default_command=None,
            default_handler=None,
            before_execute=None,
            plugins=PluginOptions(),
            on_before_route=None,
            on_after_route=None,
            on_error=None,
            trap_signals=True,
            setup=None
    ):
        if not isinstance(name, str) or not name.strip():
            raise TypeError("CLI name must be a non-empty string")
        if not isinstance(version, str):
            raise TypeError("CLI version must be a string")
        if not isinstance(help, HelpOptions):
            raise TypeError("CLI help options must be HelpOptions")
        if not isinstance(plugins, PluginOptions):
            raise TypeError("CLI plugin options must be PluginOptions")
        if setup is not None and not callable(setup):
            raise TypeError("CLI setup must be callable")

        self._name = name
        self._version = version
        self._description = description
        self._registry = registry if registry is not Unset else Registry()
        self._help_options = help
        self._trap_signals = bool(trap_signals)
        self._setup = setup
        self._bootstrapped = False

        for token, factory in (
                (ConfigToken, lambda: Config(name, version, description)),
                (LoggerToken, lambda: Logger(f"switchyard.{name}", verbose="--verbose" in sys.argv, colors=sys.stdout.isatty())),
                (PrompterToken, Prompter),
                (ConsoleToken, Console),
        ):
            if not self._registry.has(token):
                self._registry.register(token, factory())

        self._commands = {}
        self._commands["help"] = self._help = help_command(name, self._commands, help)
        self._commands["version"] = version_command(name, version)
        self._commands.update(table(coalesce(commands, {})))

        self._router = Router(
            self._commands,
            self._registry,
            on_before_route=on_before_route,
            on_after_route=on_after_route,
            on_error=on_error,
            custom_router=custom_router,
            default_command=default_command,
            default_handler=default_handler,
            before_execute=before_execute,
        )
        for function in middleware:
            self._router.use(function)

        self._plugins = Integration(self, self._registry, plugins) if plugins.enabled else None

    @property
    def name(self):
        return self._name

    @property
    def version(self):
        return self._version

    @property
    def description(self):
        return self._description

    @property
    def registry(self):
        return self._registry

    @property
    def router(self):
        return self._router

    @property
    def commands(self):
        return types.MappingProxyType(self._commands)

    @property
    def plugins(self):
        return self._plugins

    @property
    def bootstrapped(self):
        return self._bootstrapped

    def register_command(self, name, command, /):
        """
        Add (or replace) a command; the built-in help is regenerated so that it
        keeps describing the whole table.
        """
        self._commands[name] = entry(command)
        if name != "help" and self._commands.get("help") is self._help:
            self._commands["help"] = self._help = help_command(self._name, self._commands, self._help_options)

    def use(self, middleware, /):
        return self._router.use(middleware)

    def bootstrap(self):
        """
        Run the process bootstrap once for this CLI. Returns False on repeat calls.
        """
        if self._bootstrapped:
            return False
        self._bootstrapped = True
        if self._trap_signals:
            bootstrap.install(self._registry)
        return True

    def run(self, args=None, /):
        args = sys.argv[1:] if args is None else list(args)
        try:
            self.bootstrap()
            if self._setup is not None:
                self._setup(self._registry)
            if self._plugins is not None:
                self._plugins.initialize()

            name = args[0] if args else "help"
            if self._plugins is not None:
                self._plugins.before_command(name)
            result = self._router.route(args)
            if self._plugins is not None:
                self._plugins.after_command(name)
            return result
        except Exception as error:
            self._registry.get(LoggerToken).error(f"Fatal error: {error}")
            sys.exit(faults.exit_code(error))

    def __repr__(self):
        return f"CLI({self._name!r}, {self._version!r})"


def create_cli(name, version, /, description=None, **config):
    """
    Build a CLI. Keyword configuration matches CLI: commands, registry,
    middleware, help, custom_router, default_command, default_handler,
    before_execute, plugins, on_before_route, on_after_route, on_error,
    trap_signals and setup.
    """
    return CLI(name, version, description, **config)


__all__ = (
    "CLI",
    "create_cli",
)
