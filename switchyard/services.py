"""
Switchyard services: the concrete collaborators registered by every CLI.

Logger
- A thin facade over a stdlib logging.Logger ("switchyard.<cli name>") that
  writes through rich's RichHandler on stderr.
- Methods: info, warn, error, debug, success (a custom SUCCESS level, 25) and
  log(level, message) where level is a name ("info", "warn", ...) or a number.
- verbose=True lets debug records through; silent=True mutes everything.

Prompter
- confirm, text, select, multiselect and ask, backed by questionary (imported
  lazily, so programs that never prompt do not need it).
- Non-interactive mode (CI set in the environment, or --no-interaction on the
  command line) turns every prompt into a CLIError instead of blocking.

Progress
- start, update, succeed, fail and stop around a rich status spinner.
- In CI, or when the console is not a terminal, plain lines are printed instead.
- with_progress(message, function) and with_progress_bar(items, handler) wrap
  the common "run this while showing progress" cases.
"""
import logging
import os
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import track

from .faults import CLIError
from .utils import *

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "success": SUCCESS,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class Logger:
    def __init__(self, name="switchyard", /, *, verbose=False, silent=False, colors=True, prefix=Unset):
        if not isinstance(name, str):
            raise TypeError("logger name must be a string")
        self._logger = logging.getLogger(name)
        self._prefix = f"[{prefix}] " if prefix else ""

        if not any(isinstance(handler, RichHandler) for handler in self._logger.handlers):
            self._logger.addHandler(RichHandler(
                console=Console(stderr=True, no_color=not colors),
                show_time=False,
                show_path=False,
                markup=False,
            ))
        self._logger.propagate = False
        self._logger.setLevel(logging.DEBUG if verbose else logging.INFO)
        self._logger.disabled = bool(silent)

    @property
    def name(self):
        return self._logger.name

    @property
    def verbose(self):
        return self._logger.level <= logging.DEBUG

    @property
    def silent(self):
        return self._logger.disabled

    def log(self, level, message, /):
        if isinstance(level, str):
            try:
                level = LEVELS[level.lower()]
            except KeyError:
                raise ValueError(f"unknown log level {level!r}") from None
        self._logger.log(level, "%s%s", self._prefix, message)

    def debug(self, message, /):
        self.log(logging.DEBUG, message)

    def info(self, message, /):
        self.log(logging.INFO, message)

    def success(self, message, /):
        self.log(SUCCESS, message)

    def warn(self, message, /):
        self.log(logging.WARNING, message)

    warning = warn

    def error(self, message, /):
        self.log(logging.ERROR, message)

    def __repr__(self):
        return f"Logger({self.name!r})"


def _import_questionary():
    """
    Import questionary lazily for interactive prompts.
    """
    try:
        import questionary
    except ModuleNotFoundError as error:
        raise CLIError(
            "questionary is not installed",
            hint="install it with: pip install questionary"
        ) from error
    return questionary


def is_interactive():
    """
    Whether prompts may block on the terminal for this process.
    """
    return not (os.environ.get("CI") or "--no-interaction" in sys.argv)


def _choices(questionary, choices, /):
    """
    Accept plain strings, (title, value) pairs or {"title", "value"} mappings.
    """
    result = []
    for choice in choices:
        match choice:
            case str():
                result.append(questionary.Choice(title=choice, value=choice))
            case (title, value):
                result.append(questionary.Choice(title=str(title), value=value))
            case {"title": title, **rest}:
                result.append(questionary.Choice(title=str(title), value=rest.get("value", title)))
            case _:
                raise TypeError(f"unsupported choice {choice!r}")
    return result


class Prompter:
    def __init__(self, interactive=None):
        self._interactive = is_interactive() if interactive is None else bool(interactive)

    @property
    def interactive(self):
        return self._interactive

    def _require(self, message, /):
        if not self._interactive:
            raise CLIError(message, code="NON_INTERACTIVE", hint="rerun without CI or --no-interaction to answer prompts")

    @staticmethod
    def _answered(answer, message, /):
        # questionary returns None when the prompt was cancelled (Ctrl+C / Esc).
        if answer is None:
            raise CLIError(f"Prompt cancelled: {message}", code="PROMPT_CANCELLED")
        return answer

    def confirm(self, message, /, default=False):
        self._require(f"Cannot prompt for confirmation in non-interactive mode: {message}")
        questionary = _import_questionary()
        return self._answered(questionary.confirm(message, default=default).ask(), message)

    def text(self, message, /, default=""):
        self._require(f"Cannot prompt for text in non-interactive mode: {message}")
        questionary = _import_questionary()
        return self._answered(questionary.text(message, default=default).ask(), message)

    def select(self, message, choices, /):
        self._require(f"Cannot prompt for selection in non-interactive mode: {message}")
        questionary = _import_questionary()
        return self._answered(
            questionary.select(message, choices=_choices(questionary, choices), use_shortcuts=False).ask(),
            message
        )

    def multiselect(self, message, choices, /):
        self._require(f"Cannot prompt for multi-selection in non-interactive mode: {message}")
        questionary = _import_questionary()
        return questionary.checkbox(message, choices=_choices(questionary, choices)).ask() or []

    def ask(self, questions, /):
        """
        Run a list of questionary question dicts; returns name → answer.
        """
        self._require("Cannot run prompts in non-interactive mode")
        return _import_questionary().prompt(list(questions))


class Progress:
    def __init__(self, console=Unset, /, *, animated=None):
        self._console = console if console is not Unset else Console(stderr=True)
        if animated is None:
            animated = not os.environ.get("CI") and self._console.is_terminal
        self._animated = bool(animated)
        self._status = None
        self._active = False
        self._message = ""

    @property
    def active(self):
        return self._active

    def _plain(self, line, /):
        self._console.print(line, markup=False, highlight=False)

    def start(self, message, /):
        if self._active:
            return
        self._active = True
        self._message = message
        if self._animated:
            self._status = self._console.status(message)
            self._status.start()
        else:
            self._plain(f"⏳ {message}")

    def update(self, message, /):
        self._message = message
        if self._status is not None:
            self._status.update(message)
        elif not self._animated:
            self._plain(f"⏳ {message}")

    def succeed(self, message=None, /):
        self.stop()
        if self._animated:
            self._console.print(f"[green]✓[/green] {message or self._message}", highlight=False)
        elif message:
            self._plain(f"✓ {message}")

    def fail(self, message=None, /):
        self.stop()
        if self._animated:
            self._console.print(f"[red]✗[/red] {message or self._message}", highlight=False)
        elif message:
            self._plain(f"✗ {message}")

    def stop(self):
        if self._status is not None:
            self._status.stop()
            self._status = None
        self._active = False


def with_progress(message, function, /, progress=Unset):
    """
    Run function() under a progress indicator: succeed on return, fail (and
    re-raise) on error.
    """
    progress = progress if progress is not Unset else Progress()
    progress.start(message)
    try:
        result = function()
    except BaseException:
        progress.fail()
        raise
    progress.succeed()
    return result


def with_progress_bar(items, handler, /, label="Working", console=Unset):
    """
    Call handler(item, index) for every item while a progress bar advances.
    """
    items = list(items)
    for index, item in enumerate(track(items, description=label, console=coalesce(console), transient=True)):
        handler(item, index)


__all__ = (
    "Logger",
    "Prompter",
    "Progress",
    "SUCCESS",
    "is_interactive",
    "with_progress",
    "with_progress_bar",
)
