"""
Switchyard router: turn an argument vector into one executed command.

Resolution (route)
1. The leading token names the command ("help" when there is none); the rest
   is parsed with the flag grammar. on_before_route(context) runs.
2. custom_router(original_args) may return a Route. Its command and args are
   adopted; with skip_normal_routing and a known command the command runs
   immediately.
3. Lookup by name, then by alias (eager commands only), then default_command
   (with the whole original vector), then default_handler(args=, options=),
   otherwise CommandNotFoundError.
4. Subcommands are descended while the next argument is not a flag and names
   a subcommand. An unknown name fails only for commands without handler.
5. A handler-less command group reached without further arguments shows
   help for its path instead of running.
6. The outer middleware chain runs, terminating in command.execute(context);
   then on_after_route(context).

Errors raised anywhere in 1-6 go to on_error(error, context) when set.

Flag grammar
- --name=value  → {"name": "value"} (only the first "=" splits)
- --name value  → {"name": "value"} unless value starts with "-"
- --name        → {"name": True}
- -x value / -x → same rules for single-character flags
- any other dash-prefixed token is ignored
"""
from collections import namedtuple

from .commands import Context, Lazy, entry, resolve
from .faults import CLIError, ConfigError, CommandNotFoundError, UnknownSubcommandError
from .utils import *

Route = namedtuple("Route", ("command", "args", "skip_normal_routing"), defaults=(False,))
"""
Custom router verdict: the command to run and the arguments to give it.
"""

RouteContext = namedtuple("RouteContext", ("command", "args", "options"))
"""
What the route hooks see: the requested command name, the arguments after it
and their parsed options.
"""

Execution = namedtuple("Execution", ("command", "args", "options"))
"""
Replacement returned by before_execute.
"""


def parse_arguments(args, /):
    """
    Split raw arguments into (positionals, options) following the flag grammar.

    Values consumed by a flag are not positionals.
    """
    positionals = []
    options = {}
    index = 0

    while index < len(args):
        token = args[index]
        if token.startswith("--"):
            key, equals, value = token[2:].partition("=")
        elif token.startswith("-") and len(token) == 2:
            key, equals, value = token[1:], "", ""
        elif token.startswith("-"):
            index += 1
            continue
        else:
            positionals.append(token)
            index += 1
            continue

        if equals:
            options[key] = value
        elif index + 1 < len(args) and not args[index + 1].startswith("-"):
            options[key] = args[index := index + 1]
        else:
            options[key] = True
        index += 1

    return positionals, options


def parse_options(args, /):
    return parse_arguments(args)[1]


class Router:
    """
    Resolve and execute commands out of a (shared, mutable) command table.

    Hooks and routing callables are keyword-only and optional:
    on_before_route, on_after_route, on_error, custom_router, default_command,
    default_handler, before_execute.
    """

    def __init__(
            self,
            commands,
            registry,
            /,
            *,
            on_before_route=None,
            on_after_route=None,
            on_error=None,
            custom_router=None,
            default_command=None,
            default_handler=None,
            before_execute=None
    ):
        if not isinstance(commands, dict):
            raise TypeError("router command table must be a dict")
        for name, hook in (
                ("on_before_route", on_before_route),
                ("on_after_route", on_after_route),
                ("on_error", on_error),
                ("custom_router", custom_router),
                ("default_handler", default_handler),
                ("before_execute", before_execute),
        ):
            if hook is not None and not callable(hook):
                raise TypeError(f"router {name!r} must be callable")
        if default_command is not None and not isinstance(default_command, str):
            raise TypeError("router 'default_command' must be a string")
        for name, object in list(commands.items()):
            commands[name] = entry(object)

        self._commands = commands
        self._registry = registry
        self._middleware = []
        self._on_before_route = on_before_route
        self._on_after_route = on_after_route
        self._on_error = on_error
        self._custom_router = custom_router
        self._default_command = default_command
        self._default_handler = default_handler
        self._before_execute = before_execute

    @property
    def middleware(self):
        return tuple(self._middleware)

    def use(self, middleware, /):
        if not callable(middleware):
            raise TypeError("middleware must be callable")
        self._middleware.append(middleware)
        return middleware

    def _alias(self, alias, /):
        # Unresolved lazies are skipped; resolved ones were written back as commands.
        for command in list(self._commands.values()):
            if not isinstance(command, Lazy) and alias in command.aliases:
                return command
        return None

    def route(self, args, /):
        original = list(args)
        name, *remaining = original or ["help"]
        context = RouteContext(name, remaining, parse_options(remaining))

        try:
            if self._on_before_route is not None:
                self._on_before_route(context)

            if self._custom_router is not None and (custom := self._custom_router(original)) is not None:
                name, remaining = custom.command, list(custom.args)
                context = RouteContext(name, remaining, parse_options(remaining))
                if custom.skip_normal_routing and (command := resolve(self._commands, name)) is not None:
                    return self._execute(command, [name], remaining)

            if (command := resolve(self._commands, name)) is not None:
                path = [name]
            elif (command := self._alias(name)) is not None:
                path = [command.name]
            elif self._default_command is not None:
                if (command := resolve(self._commands, self._default_command)) is None:
                    raise ConfigError(f"Default command {self._default_command!r} not found")
                path, remaining = [self._default_command], original
            elif self._default_handler is not None:
                result = self._default_handler(args=original, options=parse_options(original))
                if self._on_after_route is not None:
                    self._on_after_route(context)
                return result
            else:
                raise CommandNotFoundError(name, sorted(self._commands))

            while command.subcommands and remaining and not remaining[0].startswith("-"):
                if (subcommand := command.subcommand(remaining[0])) is None:
                    if command.handler is None:
                        raise UnknownSubcommandError(remaining[0], path, command.subcommands)
                    break
                path.append(remaining[0])
                remaining = remaining[1:]
                command = subcommand

            if (
                    command.subcommands and
                    command.handler is None and
                    not any(not argument.startswith("-") for argument in remaining) and
                    (helper := resolve(self._commands, "help")) is not None
            ):
                return helper.execute(Context(path, {}, self._registry))

            result = self._execute(command, path, remaining)
            if self._on_after_route is not None:
                self._on_after_route(context)
            return result
        except Exception as error:
            if self._on_error is None:
                raise
            self._on_error(error, context)

    def _execute(self, command, path, remaining, /):
        """
        Run the outer middleware chain for one resolved command.
        """
        positionals, options = parse_arguments(remaining)

        if self._before_execute is not None:
            execution = self._before_execute(command=" ".join(path), args=positionals, options=options)
            if execution is not None:
                if execution.command != " ".join(path) and (
                        replacement := resolve(self._commands, execution.command)
                ) is not None:
                    command, path = replacement, [execution.command]
                positionals, options = list(execution.args), dict(execution.options)

        context = Context(positionals, options, self._registry)
        chain = tuple(self._middleware)

        def dispatch(index):
            if index < len(chain):
                return chain[index](context, command, rename(lambda: dispatch(index + 1), "next"))
            if command.handler is None:
                raise CLIError(f"Command {' '.join(path)!r} requires a subcommand")
            return command.execute(context)

        return dispatch(0)


__all__ = (
    "Router",
    "Route",
    "RouteContext",
    "Execution",
    "parse_arguments",
    "parse_options",
)
