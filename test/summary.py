"""
Summary rendering tests (layout, default entries, wrapping, styles).

Scope
- Exact layout for the base scope and for a sub-command.
- Synthesized help/version entries and their shadowing by declared options.
- Greedy wrapping at the fixed width.
- Every documented spelling parses back without error.
- Styles only under ClipFlag.ANSI, overridable through __main__.__styles__.

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import io
import sys
import textwrap
import unittest
from unittest import TestCase, mock

from rich.console import Console
from rich.text import Text

from clipline import (
    WRAP_WIDTH,
    ClipFlag,
    Context,
    Mode,
    Registry,
    Scope,
    Status,
    catchall,
    parse,
    render_summary,
    switch,
    value,
)
from clipline.summary import spelling, wrap


def record(context, scope, option, value):
    return 0


def build():
    return Registry(
        Scope(None, [
            switch("v", "verbose", "Give more output."),
            value("l", "log", "path", "Path to a verbose appending log."),
            switch("q", None),
        ]),
        [
            Scope("install", [
                switch("U", "upgrade", "Upgrade all packages."),
                value("e", "editable", "path/url", "Install in editable mode."),
                value("i", None, "URL", "Base URL of the package index."),
                catchall("PACKAGE", "Packages to install."),
            ]),
            Scope("download", [value(None, "dest", "dir", "Download into dir.")]),
        ],
    )


def make(registry=None, **options):
    out = io.StringIO()
    options.setdefault("header", "A tool for installing Python packages.")
    options.setdefault("footer", "Copyright (c) clipline contributors")
    context = Context(build() if registry is None else registry, record, "pip", out=out, **options)
    return context, out


class TestLayout(TestCase):
    """Exact output of the formatter."""

    def testBaseScope(self):
        context, out = make(version="1.0")
        self.assertEqual(render_summary(context), Status.OK)
        self.assertEqual(out.getvalue(), textwrap.dedent("""\
            Usage: pip [COMMAND] [OPTIONS]
            A tool for installing Python packages.

            Sub-commands:
              install
              download

            Default Options:
            -h, --help
              Show help message. If this option is used along with a sub-command, then a
              help message specific to that sub-command is shown.
            --version
              Show version and if available, copyright information.

            Common options:
            -v, --verbose
              Give more output.
            -l, --log=path
              Path to a verbose appending log.

            Copyright (c) clipline contributors
        """))

    def testSubCommandScope(self):
        context, out = make(version="1.0")
        self.assertEqual(render_summary(context, context.registry.command("install")), Status.OK)
        self.assertEqual(out.getvalue(), textwrap.dedent("""\
            Usage: pip install [OPTIONS] PACKAGE...
            A tool for installing Python packages.

            Default Options:
            -h, --help
              Show help message.
            --version
              Show version and if available, copyright information.

            Options:
            -U, --upgrade
              Upgrade all packages.
            -e, --editable=path/url
              Install in editable mode.
            -i URL
              Base URL of the package index.
            PACKAGE...
              Packages to install.

            Common options:
            -v, --verbose
              Give more output.
            -l, --log=path
              Path to a verbose appending log.

            Copyright (c) clipline contributors
        """))

    def testMinimalContext(self):
        registry = Registry(Scope(None, [catchall("FILE", "Files to read.")]))
        context, out = make(registry, header=None, footer=None, flags=ClipFlag(0))
        render_summary(context)
        self.assertEqual(out.getvalue(), "Usage: pip FILE...\n\nCommon options:\nFILE...\n  Files to read.\n")

    def testVersionEntryNeedsVersionString(self):
        context, out = make(flags=ClipFlag.HELP | ClipFlag.VERSION)
        render_summary(context)
        self.assertNotIn("--version", out.getvalue())

    def testDeclaredSpellingsDropDefaultEntries(self):
        registry = Registry(Scope(None, [switch("h", "help", "Custom help.")]))
        context, out = make(registry, header=None, footer=None)
        render_summary(context)
        self.assertNotIn("Default Options:", out.getvalue())
        self.assertIn("-h, --help\n  Custom help.", out.getvalue())

    def testHiddenOptionsAreOmitted(self):
        context, out = make()
        render_summary(context)
        self.assertNotIn("-q", out.getvalue())

    def testInvalidArguments(self):
        self.assertEqual(render_summary(object()), Status.INVALID_CONTEXT)
        context, out = make()
        self.assertEqual(render_summary(context, "install"), Status.INVALID_CONTEXT)


class TestWrapping(TestCase):
    """Greedy word wrap."""

    def testLinesStayWithinWidth(self):
        text = Text(" ".join(["lorem", "ipsum", "dolor", "sit", "amet"] * 30))
        lines = wrap(text, 40)
        self.assertGreater(len(lines), 1)
        for line in lines:
            self.assertLessEqual(len(line.plain), 40)
            self.assertEqual(line.plain, line.plain.strip())
        self.assertEqual(" ".join(line.plain for line in lines), text.plain)

    def testOverlongWordIsNotSplit(self):
        word = "x" * 100
        lines = wrap(Text(f"short {word} tail"), 40)
        self.assertEqual([line.plain for line in lines], ["short", word, "tail"])

    def testNewlinesStartParagraphs(self):
        self.assertEqual([line.plain for line in wrap(Text("one\ntwo"), 40)], ["one", "two"])

    def testTabsAreBreakCharacters(self):
        lines = wrap(Text("\t".join(["word"] * 40)), 40)
        self.assertGreater(len(lines), 1)
        for line in lines:
            self.assertNotIn("\t", line.plain)
            self.assertLessEqual(len(line.plain), 40)
        self.assertEqual(" ".join(line.plain for line in lines), " ".join(["word"] * 40))

    def testTabsKeepStyles(self):
        text = Text("alpha\tbeta")
        text.stylize("blue", 6, 10)
        (line,) = wrap(text, 40)
        self.assertEqual(line.plain, "alpha beta")
        self.assertEqual([(span.start, span.end, span.style) for span in line.spans], [(6, 10, "blue")])

    def testRenderedTabbedHelpRespectsWidth(self):
        registry = Registry(Scope(None, [switch("v", "verbose", "\t".join(["word"] * 40))]))
        context, out = make(registry)
        render_summary(context)
        for line in out.getvalue().splitlines():
            self.assertLessEqual(len(line.expandtabs()), WRAP_WIDTH)

    def testRenderedHelpRespectsWidth(self):
        registry = Registry(Scope(None, [switch("v", "verbose", " ".join(["word"] * 80))]))
        context, out = make(registry)
        render_summary(context)
        for line in out.getvalue().splitlines():
            self.assertLessEqual(len(line), WRAP_WIDTH)


class TestSpellings(TestCase):
    """Documented spellings parse back."""

    def testSpellingForms(self):
        self.assertEqual(spelling(switch("v", "verbose")), "-v, --verbose")
        self.assertEqual(spelling(value("l", "log", "path")), "-l, --log=path")
        self.assertEqual(spelling(value("i", None, "URL")), "-i URL")
        self.assertEqual(spelling(value(None, "dest", "dir")), "--dest=dir")
        self.assertEqual(spelling(catchall("FILE")), "FILE...")

    def testEveryDocumentedSpellingParses(self):
        context, out = make()
        registry = context.registry
        for scope in (registry.base, *registry.commands):
            prefix = [] if scope is registry.base else [scope.name]
            for option in scope.options:
                if option.help is None:
                    continue
                arguments = ["token"] if option.mode is Mode.CATCHALL else [
                    argument for candidate in option.spellings
                    for argument in ([candidate, "value"] if option.mode is Mode.VALUE else [candidate])
                ]
                with self.subTest(scope=scope.name, option=option.label):
                    self.assertEqual(parse(context, prefix + arguments), Status.OK)


class TestStyles(TestCase):
    """ANSI decoration and palette overrides."""

    def testPlainWithoutAnsi(self):
        context, out = make()
        render_summary(context)
        self.assertNotIn("\x1b[", out.getvalue())

    def testAnsiDecoratesAndResets(self):
        context, out = make(flags=ClipFlag.HELP | ClipFlag.ANSI)
        render_summary(context)
        output = out.getvalue()
        self.assertIn("\x1b[34m-v, --verbose\x1b[0m", output)
        self.assertIn("\x1b[32minstall\x1b[0m", output)

    def testPaletteOverride(self):
        context, out = make(flags=ClipFlag.HELP | ClipFlag.ANSI)
        with mock.patch.object(sys.modules["__main__"], "__styles__", {"option": "red"}, create=True):
            render_summary(context)
        self.assertIn("\x1b[31m-v, --verbose\x1b[0m", out.getvalue())

    def testConsoleSink(self):
        out = io.StringIO()
        console = Console(file=out, color_system=None, highlight=False)
        context = Context(build(), record, "pip", out=console)
        self.assertIs(context.console, console)
        render_summary(context)
        self.assertTrue(out.getvalue().startswith("Usage: pip [COMMAND] [OPTIONS]"))


if __name__ == "__main__":
    unittest.main()
