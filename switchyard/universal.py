"""
Switchyard universal commands: help and version.

Scope
- help_command(name, commands, options): the built-in "help" command.
  • help                     → general help (sorted command list)
  • help <command> [sub...]  → help for a command, walking subcommands
  • help --examples          → the examples of every command
  • help <command> --json    → machine-readable command help
- version_command(name, version): the built-in "version" command.
- Renderers used by both (render_general, render_command, render_examples,
  render_json, render_markdown), usable on their own.

Rendering
- Text renderers build rich Text. Commands print them to the console
  registered under ConsoleToken (a fresh Console when there is none) and
  return the plain text, so callers and tests can inspect the output.
- Define a mapping named __styles__ in __main__ to override any palette entry.

Palette keys
- program-name, command-name, description, section-label
- name-column, argument-name, option-name, metavar, marker
- example, alias, loading, footer
"""
import json
import os
import platform
import sys
from collections import defaultdict, namedtuple

from rich.console import Console
from rich.text import Text

from .arguments import Option
from .commands import Lazy, command, resolve
from .faults import CommandNotFoundError, UnknownSubcommandError
from .registry import ConsoleToken
from .utils import Unset

HelpOptions = namedtuple("HelpOptions", ("show_examples", "format"), defaults=(True, "plain"))
"""
Help rendering preferences: whether command help lists examples, and the
output format ("plain", "markdown" or "json").
"""

HELP_FORMATS = ("plain", "markdown", "json")


def _styles():
    return defaultdict(str, {
        # === Headers ===
        "program-name": "bold #FF4D94",  # magenta-pink brand
        "command-name": "bold #00E6FF",  # cyan command title
        "description": "italic #A3A3A3",  # neutral gray
        "section-label": "bold #FFFFFF",  # white section headers

        # === Listings ===
        "name-column": "bold #36C5F0",  # sky-blue names
        "argument-name": "bold #FFD600",  # amber positionals
        "option-name": "bold #00E6FF",
        "metavar": "#FFD600",
        "marker": "#9CA3AF",  # (required), [default: ...]

        # === Trailers ===
        "example": "#E5E7EB",
        "alias": "#22C55E",
        "loading": "italic #737373",
        "footer": "#737373",
    } | getattr(__import__("__main__"), "__styles__", {}))


def _describe(entry, /):
    """
    Description of a table entry without forcing unresolved lazies.
    """
    if isinstance(entry, Lazy):
        return entry.resolve().description if entry.resolved else None
    return entry.description


def _loading(description, /):
    return "Loading..." if description is None else description


def _listing(entries, styles, /):
    """
    Two-column "name  description" lines, names padded to the widest one.
    """
    lines = []
    width = max(map(len, entries), default=0) + 2
    for name, description in entries.items():
        line = Text("  ")
        line.append(name.ljust(width), styles["name-column"])
        if description is None:
            line.append("Loading...", styles["loading"])
        else:
            line.append(description, styles["description"])
        lines.append(line)
    return lines


def render_general(name, commands, /):
    styles = _styles()
    lines = [
        Text(name, styles["program-name"]),
        Text(),
        Text("Available Commands:", styles["section-label"]),
        *_listing({key: _describe(commands[key]) for key in sorted(commands)}, styles),
        Text(),
        Text(f"Run '{name} help [command]' for detailed information about a command.", styles["footer"]),
    ]
    return Text("\n").join(lines)


def render_command(command, /, path=(), *, show_examples=True):
    """
    Render the help page of one command.

    Sections (each only when non-empty)
    - header: command name and description
    - Usage: the usage line followed by <required> and [optional] positionals
    - Arguments, Subcommands, Options, Examples (unless show_examples is False), Aliases
    """
    styles = _styles()
    path = " ".join(path) or command.name
    lines = [Text(command.name, styles["command-name"])]
    if command.description:
        lines.append(Text(command.description, styles["description"]))
    lines.append(Text())

    usage = Text("  " + command.usage)
    for name, spec in command.arguments.items():
        usage.append(" ").append(f"<{name}>" if spec.required else f"[{name}]", styles["metavar"])
    lines += [Text("Usage:", styles["section-label"]), usage, Text()]

    if arguments := command.arguments:
        lines.append(Text("Arguments:", styles["section-label"]))
        for name, spec in arguments.items():
            line = Text("  ").append(name, styles["argument-name"]).append("  " + spec.description)
            if spec.required:
                line.append(" (required)", styles["marker"])
            line.append(f" [{spec.type}]", styles["marker"])
            lines.append(line)
        lines.append(Text())

    if subcommands := command.subcommands:
        lines.append(Text("Subcommands:", styles["section-label"]))
        lines += _listing({name: _describe(entry) for name, entry in subcommands.items()}, styles)
        lines += [
            Text(),
            Text(f"Run 'help {path} <subcommand>' for detailed information about a subcommand.", styles["footer"]),
            Text(),
        ]

    if options := command.options:
        lines.append(Text("Options:", styles["section-label"]))
        for name, spec in options.items():
            line = Text("  ")
            if spec.alias is not None:
                line.append(f"-{spec.alias}", styles["option-name"]).append(", ")
            line.append(f"--{name}", styles["option-name"]).append("  " + spec.description)
            if spec.required:
                line.append(" (required)", styles["marker"])
            if spec.defaulted:
                line.append(f" [default: {spec.default}]", styles["marker"])
            lines.append(line)
        lines.append(Text())

    if show_examples and (examples := command.examples):
        lines.append(Text("Examples:", styles["section-label"]))
        lines += [Text("  " + example, styles["example"]) for example in examples]
        lines.append(Text())

    if aliases := command.aliases:
        lines += [
            Text("Aliases:", styles["section-label"]),
            Text("  " + ", ".join(aliases), styles["alias"]),
            Text(),
        ]

    text = Text("\n").join(lines)
    text.rstrip()
    return text


def render_examples(commands, /):
    """
    Every command's examples under its name. Lazy commands are resolved.
    """
    styles = _styles()
    lines = [Text("Command Examples:", styles["section-label"]), Text()]
    for name in list(commands):
        if examples := resolve(commands, name).examples:
            lines.append(Text(name, styles["command-name"]))
            lines += [Text("  " + example, styles["example"]) for example in examples]
            lines.append(Text())
    text = Text("\n").join(lines)
    text.rstrip()
    return text


def _option(spec, /):
    return {
        "type": spec.type,
        "description": spec.description,
        "required": spec.required,
        "alias": spec.alias,
    } | ({"default": spec.default} if spec.defaulted else {})


def render_json(command, /):
    return json.dumps({
        "name": command.name,
        "description": command.description,
        "usage": command.usage,
        "examples": command.examples,
        "arguments": {
            name: {"type": spec.type, "description": spec.description, "required": spec.required}
            for name, spec in command.arguments.items()
        },
        "options": {name: _option(spec) for name, spec in command.options.items()},
        "aliases": command.aliases,
        "subcommands": list(command.subcommands),
    }, indent=2, default=str)


def render_markdown(command, /, path=(), *, show_examples=True):
    lines = [f"# {' '.join(path) or command.name}", ""]
    if command.description:
        lines += [command.description, ""]

    usage = " ".join((command.usage, *(
        f"<{name}>" if spec.required else f"[{name}]" for name, spec in command.arguments.items()
    )))
    lines += ["## Usage", "", "```", usage, "```", ""]

    if command.arguments:
        lines += ["## Arguments", ""]
        for name, spec in command.arguments.items():
            lines.append(f"- `{name}` ({spec.type}{', required' if spec.required else ''}): {spec.description}")
        lines.append("")

    if command.subcommands:
        lines += ["## Subcommands", ""]
        for name, entry in command.subcommands.items():
            lines.append(f"- `{name}`: {_loading(_describe(entry))}")
        lines.append("")

    if command.options:
        lines += ["## Options", ""]
        for name, spec in command.options.items():
            flags = f"`-{spec.alias}`, `--{name}`" if spec.alias is not None else f"`--{name}`"
            default = f" (default: `{spec.default}`)" if spec.defaulted else ""
            lines.append(f"- {flags}: {spec.description}{default}")
        lines.append("")

    if show_examples and command.examples:
        lines += ["## Examples", "", "```", *command.examples, "```", ""]

    if command.aliases:
        lines += ["## Aliases", "", ", ".join(f"`{alias}`" for alias in command.aliases), ""]

    return "\n".join(lines).rstrip() + "\n"


def _console(registry, /):
    return registry.get(ConsoleToken) if registry.has(ConsoleToken) else Console()


def help_command(name, commands, /, options=HelpOptions()):
    """
    Build the "help" command for the program called name over a (shared)
    command table. The table is read at execution time, so commands
    registered later are listed too.
    """
    if options.format not in HELP_FORMATS:
        raise ValueError(f"help format must be one of {', '.join(map(repr, HELP_FORMATS))}")

    def execute(context):
        console = _console(context.registry)
        markup = Unset

        if context.args:
            head, *rest = context.args
            if (target := resolve(commands, head)) is None:
                raise CommandNotFoundError(head, sorted(commands))
            path = [head]
            for argument in rest:
                if (subcommand := target.subcommand(argument)) is None:
                    raise UnknownSubcommandError(argument, path, target.subcommands)
                target = subcommand
                path.append(argument)

            match "json" if context.options.get("json") else options.format:
                case "json":
                    output = render_json(target)
                case "markdown":
                    output = render_markdown(target, path, show_examples=options.show_examples)
                case _:
                    markup = render_command(target, path, show_examples=options.show_examples)
                    output = markup.plain
        elif context.options.get("examples"):
            markup = render_examples(commands)
            output = markup.plain
        else:
            markup = render_general(name, commands)
            output = markup.plain

        if markup is Unset:
            console.print(output, markup=False, highlight=False, soft_wrap=True)
        else:
            console.print(markup, soft_wrap=True)
        return output

    return command(
        "help",
        "Show help information",
        usage="help [command]",
        examples=(
            "help              # Show general help",
            "help add          # Show help for specific command",
            "help --examples   # Show all command examples",
            "help add --json   # Output help as JSON",
        ),
        options={
            "examples": Option("boolean", "Show practical examples for all commands"),
            "json": Option("boolean", "Output help in JSON format"),
        },
        handler=execute,
    )


def version_command(name, version, /):
    def execute(context):
        if context.options.get("verbose"):
            lines = (
                f"{name} v{version}",
                f"Python: {platform.python_version()}",
                f"Platform: {sys.platform} {platform.machine()}",
                f"PID: {os.getpid()}",
            )
        else:
            lines = (f"v{version}",)
        output = "\n".join(lines)
        _console(context.registry).print(output, markup=False, highlight=False, soft_wrap=True)
        return output

    return command(
        "version",
        "Show version information",
        usage="version",
        examples=(
            "version            # Show version",
            "version --verbose  # Show detailed version info",
        ),
        options={
            "verbose": Option("boolean", "Show detailed version information"),
        },
        handler=execute,
    )


__all__ = (
    "HelpOptions",
    "help_command",
    "version_command",
    "render_general",
    "render_command",
    "render_examples",
    "render_json",
    "render_markdown",
)
