"""
Usage/help summary rendering.

Layout (each block only when it has content)
    Usage: PROG [COMMAND] [OPTIONS] TAG...
    header

    Sub-commands:
      name

    Default Options:
    -h, --help
      Show help message.

    Options: / Common options:
    -x, --long=TAG
      help text, word-wrapped at WRAP_WIDTH columns.

    footer

Styles are only applied under ClipFlag.ANSI. The palette can be overridden by
a __styles__ mapping in __main__, the same way fault rendering is.
"""
import re
from collections import defaultdict

from rich.cells import cell_len
from rich.text import Text

from .context import ClipFlag, Context
from .faults import Status
from .registry import Mode, Scope

WRAP_WIDTH = 78
INDENT = "  "

HELP_TEXT = "Show help message."
HELP_COMMANDS_TEXT = (
    "Show help message. If this option is used along with a sub-command, then a "
    "help message specific to that sub-command is shown."
)
VERSION_TEXT = "Show version and if available, copyright information."


def _palette(colorful):
    main = __import__("__main__")
    styles = defaultdict(str, {
        "program": "bold bright_white",
        "subtitle": "dim",
        "command": "green",
        "option": "blue",
        "catch-all": "yellow",
        "help": "",
    } | getattr(main, "__styles__", {}))

    def styler(style):
        return styles[style] if colorful else ""

    styler.colorful = colorful
    return styler


def wrap(text, width=WRAP_WIDTH, /):
    """
    Greedy word wrap of a rich Text.

    - breaks only at whitespace; a word wider than `width` keeps a line to itself.
    - embedded newlines start new paragraphs; tabs are plain break characters, measured as one space.
    - returns a list of Text lines with trailing whitespace removed.
    """
    lines = []
    for paragraph in text.split("\n", allow_blank=True):
        # same length, so the spans survive the substitution
        paragraph.plain = plain = paragraph.plain.replace("\t", " ")
        offsets = []
        start = None
        for match in re.finditer(r"\S+", plain):
            if start is None:
                start = match.start()
            elif cell_len(plain[start:match.end()]) > width:
                offsets.append(match.start())
                start = match.start()
        for line in paragraph.divide(offsets):
            line.rstrip()
            lines.append(line)
    return lines


def spelling(option, /):
    """
    the documented spelling of an option: `-x, --long=TAG`, `-x TAG`, or `TAG...` for the catch-all.
    """
    if option.mode is Mode.CATCHALL:
        return f"{option.tag}..."
    tag = option.tag if option.mode is Mode.VALUE else None
    parts = []
    if option.short is not None:
        parts.append(f"-{option.short}" + (f" {tag}" if tag and option.name is None else ""))
    if option.name is not None:
        parts.append(f"--{option.name}" + (f"={tag}" if tag else ""))
    return ", ".join(parts)


def _entry(render, label, help, styler, label_style, /):
    render.append("\n").append(label, styler(label_style))
    if isinstance(help, Text):
        help = help.copy() if styler.colorful else Text(help.plain)
    else:
        help = Text(help, styler("help"))
    for line in wrap(help, WRAP_WIDTH - len(INDENT)):
        render.append("\n" + INDENT).append_text(line)


def _defaults(context, scope, /):
    """
    synthesized help/version entries, minus the spellings the scope chain already declares.
    """
    entries = []
    commands = scope is context.registry.base and context.registry.commands
    automatic = (
        ("h", "help", ClipFlag.HELP, HELP_COMMANDS_TEXT if commands else HELP_TEXT),
        ("v", "version", ClipFlag.VERSION, VERSION_TEXT),
    )
    for short, name, flag, help in automatic:
        if flag not in context.flags or (flag is ClipFlag.VERSION and context.version is None):
            continue
        spellings = [
            marker + key for marker, key in (("-", short), ("--", name))
            if context.registry.lookup(key, scope) is None
        ]
        if spellings:
            entries.append((", ".join(spellings), help))
    return entries


def _options(render, title, scope, styler, /):
    documented = [option for option in scope.options if option.help is not None]
    if not documented:
        return
    render.append("\n\n").append(title, styler("subtitle"))
    for option in documented:
        _entry(render, spelling(option), option.help, styler, "catch-all" if option.mode is Mode.CATCHALL else "option")


def render_summary(context, scope=None, /):
    """
    Render the usage/help summary of `scope` (the base scope when None) to the context console.

    Returns
    - Status.OK, or Status.INVALID_CONTEXT when `context` is not a Context.
    """
    if not isinstance(context, Context) or not isinstance(scope, Scope | None):
        return Status.INVALID_CONTEXT

    registry = context.registry
    styler = _palette(context.colorful)
    base = scope is None or scope is registry.base
    scope = registry.base if scope is None else scope

    render = Text("Usage: ").append(context.progname, styler("program"))
    if base and registry.commands:
        render.append(" [COMMAND]", styler("command"))
    if not base:
        render.append(f" {scope.name}", styler("command")).append(" [OPTIONS]", styler("option"))
    elif scope is not None and any(option.mode is not Mode.CATCHALL for option in scope.options):
        render.append(" [OPTIONS]", styler("option"))
    if scope is not None and (option := scope.catchall) is not None and option.tag is not None:
        render.append(f" {option.tag}...", styler("catch-all"))

    if context.header is not None:
        render.append("\n").append(context.header)

    if base and registry.commands:
        render.append("\n\n").append("Sub-commands:", styler("subtitle"))
        for command in registry.commands:
            if command.name is not None:
                render.append("\n" + INDENT).append(command.name, styler("command"))

    if entries := _defaults(context, scope):
        render.append("\n\n").append("Default Options:", styler("subtitle"))
        for label, help in entries:
            _entry(render, label, help, styler, "option")

    if scope is not None:
        _options(render, "Common options:" if base else "Options:", scope, styler)
    if not base and registry.base is not None:
        _options(render, "Common options:", registry.base, styler)

    if context.footer is not None:
        render.append("\n\n").append(context.footer)

    context.console.print(render, soft_wrap=True)
    return Status.OK


__all__ = (
    "WRAP_WIDTH",
    "render_summary",
)
