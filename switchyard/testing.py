"""
Switchyard testing helpers.

- MockPrompter: answers prompts from canned responses instead of the terminal.
- MockLogger: records "[LEVEL] message" lines in .output.
- mock_registry(**overrides): a registry with a silent logger and a mock prompter.
- run_command(command, args, options, registry): execute one command directly.
- Harness(commands): a small fixture bundling a registry, a MockLogger and a
  MockPrompter around a command table.
- capture(): context manager collecting stdout/stderr.

Quick example
    >>> harness = Harness({"greet": greet})
    >>> harness.run("greet", ["Ada"])
    >>> harness.output
    ['[SUCCESS] Hello Ada!']
"""
import contextlib
import io
from types import SimpleNamespace

from rich.console import Console

from .commands import Context, resolve
from .faults import CLIError, CommandNotFoundError
from .registry import Registry, Token, LoggerToken, PrompterToken, ConsoleToken
from .utils import *


class MockPrompter:
    """
    Prompter double.

    - responses: message → answer for text/select/multiselect (select and
      multiselect answers are choice indices), also returned whole by ask().
    - confirmations: message → bool for confirm().
    Unknown messages fall back to the default, or the first choice.
    """

    def __init__(self, responses=None, confirmations=None):
        self.responses = dict(responses or {})
        self.confirmations = dict(confirmations or {})
        self.interactive = True

    @staticmethod
    def _value(choice, /):
        match choice:
            case str():
                return choice
            case (_, value):
                return value
            case {"value": value}:
                return value
            case {"title": title}:
                return title
        return choice

    def confirm(self, message, /, default=True):
        return self.confirmations.get(message, default)

    def text(self, message, /, default="mock-response"):
        if message in self.responses:
            return str(self.responses[message])
        return default or "mock-response"

    def select(self, message, choices, /):
        choices = list(choices)
        index = self.responses.get(message, 0)
        if not choices:
            return None
        return self._value(choices[index] if 0 <= index < len(choices) else choices[0])

    def multiselect(self, message, choices, /):
        choices = list(choices)
        if not choices:
            return []
        indices = self.responses.get(message)
        if not isinstance(indices, list | tuple):
            return [self._value(choices[0])]
        return [self._value(choices[index]) for index in indices if 0 <= index < len(choices)]

    def ask(self, questions, /):
        return dict(self.responses)


class MockLogger:
    def __init__(self, *, silent=True):
        self.output = []
        self.silent = silent

    def log(self, level, message, /):
        line = f"[{str(level).upper()}] {message}"
        self.output.append(line)
        if not self.silent:
            print(line)

    def info(self, message, /):
        self.log("INFO", message)

    def warn(self, message, /):
        self.log("WARN", message)

    warning = warn

    def error(self, message, /):
        self.log("ERROR", message)

    def debug(self, message, /):
        self.log("DEBUG", message)

    def success(self, message, /):
        self.log("SUCCESS", message)


def _console():
    return Console(file=io.StringIO(), color_system=None, width=120)


def mock_registry(**overrides):
    """
    Registry preloaded with a MockLogger, a MockPrompter and a console writing
    to memory. Keyword overrides are registered under Token(<keyword>).
    """
    registry = Registry()
    registry.register(LoggerToken, MockLogger())
    registry.register(PrompterToken, MockPrompter())
    registry.register(ConsoleToken, _console())
    for key, value in overrides.items():
        registry.register(Token(key), value)
    return registry


def run_command(command, /, args=(), options=None, registry=Unset):
    if command.handler is None:
        raise CLIError(f"Command {command.name!r} has no handler")
    context = Context(args, options or {}, registry if registry is not Unset else mock_registry())
    return command.execute(context)


class Harness:
    def __init__(self, commands, /):
        self._commands = dict(commands)
        self.reset()

    @property
    def registry(self):
        return self._registry

    @property
    def logger(self):
        return self._logger

    @property
    def prompter(self):
        return self._prompter

    @property
    def output(self):
        return self._logger.output

    @property
    def console(self):
        """
        Everything commands printed on the registry console so far.
        """
        return self._registry.get(ConsoleToken).file.getvalue()

    def run(self, name, /, args=(), options=None):
        if (command := resolve(self._commands, name)) is None:
            raise CommandNotFoundError(name, sorted(self._commands))
        return run_command(command, args, options, self._registry)

    def respond(self, responses, /):
        self._prompter = MockPrompter(responses)
        self._registry.register(PrompterToken, self._prompter)

    def reset(self):
        self._logger = MockLogger()
        self._prompter = MockPrompter()
        self._registry = Registry()
        self._registry.register(LoggerToken, self._logger)
        self._registry.register(PrompterToken, self._prompter)
        self._registry.register(ConsoleToken, _console())


@contextlib.contextmanager
def capture():
    """
    Collect everything written to sys.stdout/sys.stderr inside the block.

        with capture() as output:
            print("hi")
        output.stdout  # "hi\\n"
    """
    result = SimpleNamespace(stdout="", stderr="")
    stdout, stderr = io.StringIO(), io.StringIO()
    try:
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            yield result
    finally:
        result.stdout = stdout.getvalue()
        result.stderr = stderr.getvalue()


__all__ = (
    "MockPrompter",
    "MockLogger",
    "mock_registry",
    "run_command",
    "Harness",
    "capture",
)
