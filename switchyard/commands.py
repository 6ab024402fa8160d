"""
Switchyard command layer: declare commands and run their inner chain.

What this module provides
- Command: the declarative command model (name, description, usage, examples,
  positional arguments, options, aliases, subcommands, handler) plus its
  inner middleware chain.
- Lazy: a deferred command. Its loader runs at most once; the resolved
  Command is memoized and written back into whichever table held the Lazy.
- Context: the per-invocation bag handed to middleware and handlers.
- command(...): the builder. The Command it returns runs, in fixed order:
  • the middleware given to the builder,
  • validate_arguments (positional binding, coercion, validators),
  • validate_options (aliases, required, coercion, validators, defaults),
  • log_execution (debug timing),
  • the handler.

Middleware contract
- middleware(context, command, next): call next() to continue; returning
  without calling it short-circuits everything after it, handler included.

Quick start
    from switchyard import command, Argument, Option

    greet = command(
        "greet",
        "Greet somebody",
        arguments={"name": Argument("string", "who to greet", required=True)},
        options={"times": Option("number", "repetitions", default=1, alias="t")},
        examples=("greet Ada", "greet Ada --times 3"),
        handler=lambda context: print(f"Hello {context.named['name']}!" * context.options["times"]),
    )
"""
import logging
import os
import time
import warnings
from collections.abc import Mapping, Iterable

from .arguments import Argument, Option, coerce
from .faults import CLIError, ValidationError
from .registry import Registry, LoggerToken
from .utils import *

logger = logging.getLogger(__name__)


class Lazy:
    """
    Deferred command: wraps a zero-argument loader returning a Command.
    """
    __slots__ = ("_loader", "_command")

    def __init__(self, loader, /):
        if not callable(loader):
            raise TypeError("lazy command loader must be callable")
        self._loader = loader
        self._command = Unset

    @property
    def resolved(self):
        return self._command is not Unset

    def resolve(self):
        if self._command is Unset:
            start = time.perf_counter()
            command = self._loader()
            if not isinstance(command, Command):
                raise TypeError(f"lazy command loader returned {type(command).__name__!r}, expected a command")
            logger.debug("loaded lazy command %r in %.2fms", command.name, (time.perf_counter() - start) * 1000)
            self._command = command
        return self._command

    def __repr__(self):
        return f"Lazy({self._command if self.resolved else getattr(self._loader, '__qualname__', '...')})"


def entry(object, /):
    """
    Normalize one command-table entry: Commands and Lazies pass through, a bare
    zero-argument callable becomes a Lazy.
    """
    if isinstance(object, Command | Lazy):
        return object
    if callable(object):
        return Lazy(object)
    raise TypeError(f"command table entries must be commands or loaders, not {type(object).__name__!r}")


def table(commands, /):
    if not isinstance(commands, Mapping):
        raise TypeError("command table must be a mapping of names to commands")
    return {name: entry(object) for name, object in commands.items()}


def resolve(commands, name, /):
    """
    Look a name up in a command table, resolving (and storing back) a Lazy.

    Returns None when the name is absent.
    """
    object = commands.get(name)
    if isinstance(object, Lazy):
        object = commands[name] = object.resolve()
    return object


def _sanitize_command(cls, metadata):
    """
    Internal: normalize and validate Command metadata in place.

    Raises
    - TypeError: on values of the wrong kind.
    - ValueError: on empty or whitespace-bearing names and aliases.
    """
    if not isinstance(name := metadata["name"], str):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif not name or name != name.strip() or any(character.isspace() for character in name):
        raise ValueError(f"{cls.__typename__} 'name' must be a non-empty word, got {name!r}")

    for field in ("description", "usage"):
        if not isinstance(metadata[field], str | Unset):
            raise TypeError(f"{cls.__typename__} {field!r} must be a string")
    metadata["description"] = coalesce(metadata["description"], "")
    metadata["usage"] = coalesce(metadata["usage"], name)

    for field in ("examples", "aliases"):
        if isinstance(metadata[field], str) or not isinstance(metadata[field], Iterable):
            raise TypeError(f"{cls.__typename__} {field!r} must be an iterable of strings")
        metadata[field] = tuple(metadata[field])
        if not all(isinstance(item, str) for item in metadata[field]):
            raise TypeError(f"{cls.__typename__} {field!r} must be an iterable of strings")
    if name in metadata["aliases"]:
        raise ValueError(f"{cls.__typename__} {name!r} cannot be its own alias")

    for field, type in (("arguments", Argument), ("options", Option)):
        if not isinstance(specs := coalesce(metadata[field], {}), Mapping):
            raise TypeError(f"{cls.__typename__} {field!r} must be a mapping")
        for key, spec in specs.items():
            if not isinstance(key, str) or not isinstance(spec, type):
                raise TypeError(f"{cls.__typename__} {field!r} must map names to {type.__typename__} specs")
        metadata[field] = dict(specs)

    metadata["subcommands"] = table(coalesce(metadata["subcommands"], {}))

    if not (metadata["handler"] is Unset or callable(metadata["handler"])):
        raise TypeError(f"{cls.__typename__} 'handler' must be callable")
    metadata["handler"] = coalesce(metadata["handler"])

    if not isinstance(metadata["middleware"], Iterable):
        raise TypeError(f"{cls.__typename__} 'middleware' must be an iterable of callables")
    metadata["middleware"] = tuple(metadata["middleware"])
    if not all(map(callable, metadata["middleware"])):
        raise TypeError(f"{cls.__typename__} 'middleware' must be an iterable of callables")


class Command(metaclass=SpecType):
    """
    Declarative command.

    Fields
    - name / description / usage (defaults to name) / examples / aliases
    - arguments: ordered name → Argument; order is the positional binding order.
    - options: name → Option.
    - subcommands: name → Command (or Lazy, or a bare loader).
    - handler: handler(context) or None for pure command groups.
    - middleware: the inner chain; empty for plain commands, which then call
      the handler directly.
    """
    __introspectable__ = (
        "name",
        "description",
        "usage",
        "examples",
        "arguments",
        "options",
        "aliases",
        "subcommands",
        "handler",
        "middleware",
    )
    __displayable__ = (
        "name",
        "description",
        "aliases",
    )

    def __init__(
            self,
            name,
            /,
            description=Unset,
            *,
            usage=Unset,
            examples=(),
            arguments=Unset,
            options=Unset,
            aliases=(),
            subcommands=Unset,
            handler=Unset,
            middleware=()
    ):
        metadata = {
            "name": name,
            "description": description,
            "usage": usage,
            "examples": examples,
            "arguments": arguments,
            "options": options,
            "aliases": aliases,
            "subcommands": subcommands,
            "handler": handler,
            "middleware": middleware,
        }
        _sanitize_command(Command, metadata)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)

    def subcommand(self, name, /):
        """
        Resolve a direct subcommand by name (memoizing a Lazy); None when absent.
        """
        return resolve(self._subcommands, name)

    def execute(self, context, /):
        """
        Run the inner chain with context, terminating in the handler.
        """
        chain = self._middleware

        def dispatch(index):
            if index < len(chain):
                return chain[index](context, self, rename(lambda: dispatch(index + 1), "next"))
            if self._handler is None:
                raise CLIError(f"Command {self._name!r} has no handler")
            return self._handler(context)

        return dispatch(0)


class Context:
    """
    Per-invocation state shared by middleware and the handler.

    - args: non-flag arguments after the command path.
    - named: argument name → coerced value; None until argument validation ran.
    - options: parsed (later coerced and defaulted) options.
    - registry: the CLI's registry, borrowed.
    """
    __slots__ = ("args", "named", "options", "registry")

    def __init__(self, args=(), options=Unset, registry=Unset, *, named=None):
        self.args = list(args)
        self.named = named
        self.options = dict(coalesce(options, {}))
        self.registry = registry if registry is not Unset else Registry()

    def __repr__(self):
        return f"Context(args={self.args!r}, named={self.named!r}, options={self.options!r})"


def _judge(validate, value, /):
    """
    Interpret a validator outcome: None when it passed, otherwise the failure
    message (possibly empty, meaning "use the generic one").
    """
    outcome = validate(value)
    if outcome is True:
        return None
    if isinstance(outcome, str):
        return outcome
    return None if outcome else ""


def validate_arguments(context, command, next, /):
    """
    Bind positional arguments by index, check required ones, coerce numbers and
    run validators. Every violation is reported at once.
    """
    errors = []
    named = {}

    for index, (name, spec) in enumerate(command.arguments.items()):
        if index >= len(context.args) or (spec.required and context.args[index] == ""):
            if spec.required:
                errors.append(f"Missing required argument: {name}")
            continue

        try:
            value = coerce(context.args[index], spec.type)
        except ValidationError:
            errors.append(f"Argument {name} must be a {spec.type}")
            continue

        if spec.validate is not None and (message := _judge(spec.validate, value)) is not None:
            errors.append(message or f"Invalid value for argument {name}")
            continue
        named[name] = value

    if errors:
        raise ValidationError.collect(errors)
    context.named = named
    return next()


def validate_options(context, command, next, /):
    """
    Normalize options against the command's Option specs.

    Steps
    - Short aliases (-t) are renamed to their long option (--times).
    - Missing required options are reported; absent optional ones receive
      their declared default (defaults are not validated).
    - Present values are coerced (numbers, booleans, comma-separated arrays)
      and passed to the option's validator.
    - Undeclared options pass through untouched.
    """
    options = dict(context.options)
    specs = command.options
    errors = []

    for name, spec in specs.items():
        if spec.alias is not None and spec.alias in options and spec.alias not in specs:
            value = options.pop(spec.alias)
            options.setdefault(name, value)

    for name, spec in specs.items():
        if name not in options:
            if spec.required:
                errors.append(f"Missing required option: --{name}")
            elif spec.defaulted:
                options[name] = spec.default
            continue

        if spec.type != "string":
            try:
                options[name] = coerce(options[name], spec.type)
            except ValidationError:
                errors.append(f"Option --{name} must be a {spec.type}")
                continue

        if spec.validate is not None and (message := _judge(spec.validate, options[name])) is not None:
            errors.append(message or f"Invalid value for option --{name}")

    if errors:
        raise ValidationError.collect(errors)
    context.options = options
    return next()


def _logger(registry, /):
    return registry.get(LoggerToken) if registry.has(LoggerToken) else logger


def log_execution(context, command, next, /):
    log = _logger(context.registry)
    log.debug(f"Executing command: {command.name}")
    start = time.perf_counter()
    try:
        result = next()
    except Exception:
        log.debug(f"Command {command.name} failed after {(time.perf_counter() - start) * 1000:.0f}ms")
        raise
    log.debug(f"Command {command.name} completed in {(time.perf_counter() - start) * 1000:.0f}ms")
    return result


def command(
        name,
        /,
        description=Unset,
        *,
        usage=Unset,
        examples=(),
        arguments=Unset,
        options=Unset,
        aliases=(),
        subcommands=Unset,
        handler=Unset,
        middleware=()
):
    """
    Build a Command whose inner chain validates and logs around the handler.

    Parameters mirror Command; middleware given here runs before the built-in
    validation and logging steps.

    Notes
    - With DEBUG set in the environment, a command carrying fewer than two
      examples triggers a UserWarning.
    """
    examples = tuple(examples) if not isinstance(examples, str) else examples
    if os.environ.get("DEBUG") and isinstance(examples, tuple) and len(examples) < 2:
        warnings.warn(f"Command {name!r} should have at least 2 diverse examples", stacklevel=2)

    return Command(
        name,
        description,
        usage=usage,
        examples=examples,
        arguments=arguments,
        options=options,
        aliases=aliases,
        subcommands=subcommands,
        handler=handler,
        middleware=(*middleware, validate_arguments, validate_options, log_execution),
    )


__all__ = (
    "Command",
    "Lazy",
    "Context",
    "command",
    "resolve",
    "validate_arguments",
    "validate_options",
    "log_execution",
)
