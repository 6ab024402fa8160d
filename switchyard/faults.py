"""
Switchyard faults (structured errors) and rendering.

Scope
- CLIError: the structured-error base. Every fault carries a message, a stable
  machine-readable code and the exit code the process should terminate with.
- Domain faults: validation, configuration, command/subcommand/service lookup,
  plugins, network, filesystem, authentication and permission failures.
- Helpers: handle_error() (last-resort formatter that honors exit codes),
  guard() (wrap a callable with handle_error), assert_defined()/assert_type().

Code table
    CLIError                CLI_ERROR          1
    ValidationError         VALIDATION_ERROR   1
    ConfigError             CONFIG_ERROR       1
    CommandNotFoundError    COMMAND_NOT_FOUND  1
    UnknownSubcommandError  COMMAND_NOT_FOUND  1
    ServiceNotFoundError    SERVICE_NOT_FOUND  1
    PluginError             PLUGIN_ERROR       1
    NetworkError            NETWORK_ERROR      2
    FileSystemError         FS_ERROR           3
    AuthenticationError     AUTH_ERROR         4
    PermissionDeniedError   PERMISSION_ERROR   5

Rendering
- Every fault knows how to render itself through rich (__rich__). The host
  application may define __styles__ and __prog__ in __main__ to restyle the
  header or rename the program shown in it.
"""
import builtins
import functools
import logging
import os
import sys
import traceback
from collections import defaultdict

from rich.console import Group
from rich.text import Text

from .utils import Unset, coalesce

_logger = logging.getLogger(__name__)


class CLIError(Exception):
    code = "CLI_ERROR"
    exit_code = 1

    def __init__(self, message, /, *, code=Unset, exit_code=Unset, hint=Unset):
        if not isinstance(message, str):
            raise TypeError(f"{type(self).__name__} message must be a string")
        super().__init__(message)
        self.message = message
        self.code = coalesce(code, type(self).code)
        self.exit_code = coalesce(exit_code, type(self).exit_code)
        self.hint = coalesce(hint)

    def __rich__(self):
        main = __import__("__main__")

        styles = defaultdict(str, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        } | getattr(main, "__styles__", {}))

        prog = getattr(main, "__prog__", os.path.basename(sys.argv[0]) or "cli")
        header = Text.assemble(
            "[ ",
            (prog, styles["prog-name"]),
            " — ",
            (self.code, styles["code"]),
            " | ",
            (type(self).__name__, styles["error-title"]),
            " ]"
        )
        renders = [header, Text(self.message, styles["error-message"])]
        if self.hint:
            renders.append(Text.assemble((" → ", styles["hint-arrow"]), (self.hint, styles["hint"])))
        return Group(*renders)


class ValidationError(CLIError):
    code = "VALIDATION_ERROR"

    def __init__(self, message, /, field=Unset, *, errors=(), hint=Unset):
        super().__init__(message, hint=hint)
        self.field = coalesce(field)
        self.errors = tuple(errors) or (message,)

    @classmethod
    def collect(cls, errors, /, field=Unset):
        """
        Bundle every violation of one invocation into a single multi-line fault.
        """
        errors = tuple(errors)
        return cls("\n".join(("Validation errors:", *errors)), field, errors=errors)


class ConfigError(CLIError):
    code = "CONFIG_ERROR"

    def __init__(self, message, /, path=Unset, *, hint=Unset):
        super().__init__(message, hint=hint)
        self.path = coalesce(path)


class CommandNotFoundError(CLIError):
    code = "COMMAND_NOT_FOUND"

    def __init__(self, command, /, available=(), *, message=Unset):
        self.command = command
        self.available = tuple(available)
        super().__init__(
            coalesce(message, f"Command {command!r} not found"),
            hint=f"available commands: {', '.join(self.available)}" if self.available else Unset
        )


class UnknownSubcommandError(CommandNotFoundError):
    def __init__(self, command, /, path=(), available=()):
        self.path = tuple(path)
        super().__init__(command, available, message=(
            f"Unknown subcommand {command!r} for command {' '.join(self.path)!r}. "
            f"Available subcommands: {', '.join(available)}"
        ))


class ServiceNotFoundError(CLIError):
    code = "SERVICE_NOT_FOUND"

    def __init__(self, service, /):
        super().__init__(f"Service {service!r} not found in registry")
        self.service = service


class PluginError(CLIError):
    code = "PLUGIN_ERROR"

    def __init__(self, message, /, plugin=Unset):
        super().__init__(message)
        self.plugin = coalesce(plugin)


class NetworkError(CLIError):
    code = "NETWORK_ERROR"
    exit_code = 2

    def __init__(self, message, /, url=Unset):
        super().__init__(message)
        self.url = coalesce(url)


class FileSystemError(CLIError):
    code = "FS_ERROR"
    exit_code = 3

    def __init__(self, message, /, path=Unset):
        super().__init__(message)
        self.path = coalesce(path)


class AuthenticationError(CLIError):
    code = "AUTH_ERROR"
    exit_code = 4

    def __init__(self, message="Authentication failed", /):
        super().__init__(message)


class PermissionDeniedError(CLIError):
    code = "PERMISSION_ERROR"
    exit_code = 5

    def __init__(self, message="Permission denied", /):
        super().__init__(message)


def is_user_error(error, /):
    """
    Tell faults caused by user input apart from unexpected failures.
    """
    return isinstance(error, CLIError)


def exit_code(error, /):
    """
    Exit status for an escaping error: the fault's own code, otherwise 1.
    """
    return error.exit_code if isinstance(error, CLIError) else 1


def handle_error(error, /, logger=Unset):
    """
    Log an error in a user-facing way and terminate the process.

    Behavior
    - CLIError: logs the message, the available commands for lookup faults and
      the failing field for validation faults, then exits with error.exit_code.
    - Any other exception: logs "Unexpected error: ..." and exits with 1.
    - With DEBUG=true in the environment, the traceback is logged as well.
    """
    log = coalesce(logger, _logger).error

    if isinstance(error, CLIError):
        log(error.message)
        if isinstance(error, CommandNotFoundError) and error.available:
            log("\nAvailable commands:")
            for name in error.available:
                log(f"  {name}")
        if isinstance(error, ValidationError) and error.field:
            log(f"Field: {error.field}")
    else:
        log(f"Unexpected error: {error}")

    if os.environ.get("DEBUG") == "true":
        log("\nStack trace:")
        log("".join(traceback.format_exception(error)).rstrip())

    sys.exit(exit_code(error))


def guard(function, /, handler=Unset):
    """
    Wrap a callable so that any exception is routed to handler (or handle_error).
    """
    if not callable(function):
        raise TypeError("guard() argument must be callable")

    @functools.wraps(function)
    def wrapper(*args, **kwargs):
        try:
            return function(*args, **kwargs)
        except Exception as error:
            if handler is Unset:
                return handle_error(error)
            return handler(error)

    return wrapper


def assert_defined(value, message, /):
    if value is None or value is Unset:
        raise ValidationError(message)
    return value


def assert_type(value, type, /, field=Unset):
    if not isinstance(value, type):
        subject = f"{field} to be " if field else ""
        raise ValidationError(
            f"Expected {subject}{getattr(type, '__name__', type)}, got {builtins.type(value).__name__}",
            field
        )
    return value


__all__ = (
    "CLIError",
    "ValidationError",
    "ConfigError",
    "CommandNotFoundError",
    "UnknownSubcommandError",
    "ServiceNotFoundError",
    "PluginError",
    "NetworkError",
    "FileSystemError",
    "AuthenticationError",
    "PermissionDeniedError",
    "is_user_error",
    "exit_code",
    "handle_error",
    "guard",
    "assert_defined",
    "assert_type",
)
