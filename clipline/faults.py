"""
Clipline faults (parse-time errors, configuration violations) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
  Codes are grouped by domain to keep copy consistent and make logs/searches
  predictable.
- Status: the numeric result of parse() and render_summary().
- ParseFault: base type for errors detected while walking the argument vector;
  each carries a message + options and knows how to render itself.
- Violation / RegistryError / InvalidRegistryError: structural problems found by
  the verification pass over a registry and its context.
- trigger(): central entry point to surface any fault on a console.

UX goals
- Every message names the offending token ("Invalid option: -x") and where it
  came from ("at second position", "in line 3 of 'args.txt'").
- A single hint line, shown only when the program offers automatic help.

Integration
- The parser raises ParseFault subclasses internally, catches them once at the
  parse() boundary, surfaces them through trigger(fault, console=..., ...) and
  returns fault.status.
"""
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType
from typing import NamedTuple

from rich.console import Console
from rich.text import Text

from .utils import Unset, UnsetType


class FaultCode(IntEnum):
    """
    canonical fault codes used across the parser (stable identifiers).

    grouping (by high-level domain)
    - tokens (1111x/1112x)
      • INVALID_OPTION, SWITCH_ASSIGNMENT, MISSING_VALUE, UNRECOGNISED_OPTION
    - argument files (1113x)
      • ARGUMENT_FILE, OVERLONG_LINE
    - delegated (1114x)
      • CALLBACK_FAILED
    - context (1115x)
      • INVALID_CONTEXT
    - registry verification (131xx/132xx)
      • option rules, scope rules, context rules

    rationale
    - spacing leaves room for future additions without reshuffling existing codes.
    - normalize() lets the host remap codes to custom labels.
    """
    # --- token errors (111xx) ---
    INVALID_OPTION              = 11112
    SWITCH_ASSIGNMENT           = 11113
    MISSING_VALUE               = 11117
    UNRECOGNISED_OPTION         = 11121

    # --- argument file errors (1113x) ---
    ARGUMENT_FILE               = 11131
    OVERLONG_LINE               = 11132

    # --- delegated errors (1114x) ---
    CALLBACK_FAILED             = 11141

    # --- context errors (1115x) ---
    INVALID_CONTEXT             = 11151

    # --- option violations (131xx) ---
    UNTAGGED_VALUE              = 13101
    NAMED_CATCHALL              = 13102
    UNTAGGED_CATCHALL           = 13103
    NAMELESS_OPTION             = 13104
    MULTIPLE_CATCHALLS          = 13105
    UNREACHABLE_NAME            = 13106
    DUPLICATED_SPELLING         = 13107
    TAGGED_SWITCH               = 13108

    # --- scope violations (1311x) ---
    UNNAMED_COMMAND             = 13111
    NAMED_BASE                  = 13112
    DUPLICATED_COMMAND          = 13113
    EMPTY_REGISTRY              = 13114
    UNREACHABLE_COMMAND         = 13115

    # --- context violations (1312x) ---
    MISSING_CALLBACK            = 13121
    MISSING_VERSION             = 13122

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class Status(IntEnum):
    """
    result of parse() and render_summary().

    values are stable and mirror the classic C return codes, so a host can
    hand them straight to sys.exit() after flipping the sign.
    """
    OK                  = 0
    HELP                = 1
    INVALID_CONTEXT     = -1
    CALLBACK_FAILED     = -2
    BAD_SUBCOMMAND      = -3
    BAD_ARGUMENT        = -4


class ParseFault(Exception):
    """
    base type for every error detected while walking an argument vector.

    anatomy
    - message: the leading phrase ("Invalid option:").
    - options: read-only mapping of rendering/context details:
      • token: the offending spelling, rendered with the error style.
      • where: optional location suffix ("at second position").
      • hint: optional follow-up line.
      • colorful: style the output (set by the parser from ClipFlag.ANSI).
      • console: rich console used by __trigger__.
      • quiet: when true, __trigger__ renders nothing.

    subclasses only pin __code__ and __status__.
    """
    __code__ = FaultCode.INVALID_OPTION
    __status__ = Status.BAD_ARGUMENT

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | UnsetType)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    @property
    def code(self):
        return type(self).__code__

    @property
    def status(self):
        return type(self).__status__

    def __str__(self):
        return " ".join(
            str(part) for part in (self.message or "", self.options.get("token"), self.options.get("where")) if part
        )

    def __rich__(self):
        main = __import__("__main__")
        colorful = self.options.get("colorful", False)

        styles = defaultdict(str, {
            "fault-message": "",
            "fault-token": "red",  # offending spelling
            "fault-where": "dim",
            "hint-arrow": "green dim",
            "hint": "italic green",
        } | getattr(main, "__styles__", {}))

        def styler(style):
            return styles[style] if colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if isinstance(fragment, Text):
                return fragment if colorful else Text(fragment.plain)
            return Text(str(fragment), style)

        render = Text.assemble(text(self.message, styler("fault-message")))
        if (token := self.options.get("token")) is not None:
            render.append(" ").append_text(text(token, styler("fault-token")))
        if where := self.options.get("where"):
            render.append(" ").append_text(text(where, styler("fault-where")))
        if hint := self.options.get("hint"):
            render.append("\n").append_text(
                Text.assemble(text(" → ", styler("hint-arrow")), text(hint, styler("hint")))
            )
        return render

    def __trigger__(self):
        if self.options.get("quiet"):
            return
        console = self.options.get("console") or Console(stderr=True, highlight=False, markup=False, emoji=False)
        console.print(self, soft_wrap=True)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class InvalidOptionError(ParseFault):
    __code__ = FaultCode.INVALID_OPTION


class SwitchAssignmentError(ParseFault):
    __code__ = FaultCode.SWITCH_ASSIGNMENT


class MissingValueError(ParseFault):
    __code__ = FaultCode.MISSING_VALUE


class UnrecognisedOptionError(ParseFault):
    __code__ = FaultCode.UNRECOGNISED_OPTION


class ArgumentFileError(ParseFault):
    __code__ = FaultCode.ARGUMENT_FILE


class OverlongLineError(ParseFault):
    __code__ = FaultCode.OVERLONG_LINE


class CallbackFailedError(ParseFault):
    """
    the callback rejected an occurrence (non-zero status) or raised.

    options
    - result: the value the callback returned, when it returned one.
    - exception: the exception it raised, when it raised one.
    """
    __code__ = FaultCode.CALLBACK_FAILED
    __status__ = Status.CALLBACK_FAILED


class InvalidContextError(ParseFault):
    __code__ = FaultCode.INVALID_CONTEXT
    __status__ = Status.INVALID_CONTEXT


class Violation(NamedTuple):
    """
    one structural problem found by verify().

    fields
    - code: FaultCode in the 13xxx range.
    - scope: name of the offending scope (None for the base scope or the context).
    - option: the offending Option, when the violation is about one.
    - message: lowercased, one-sentence description.
    """
    code: FaultCode
    scope: str | None
    option: object
    message: str


class RegistryError(Exception):
    def __init__(self, violation, /):
        if not isinstance(violation, Violation):
            raise TypeError("RegistryError() argument must be a violation")
        super().__init__(violation.message)
        self.violation = violation

    @property
    def code(self):
        return self.violation.code

    def __rich__(self):
        where = "base scope" if self.violation.scope is None else "scope %r" % self.violation.scope
        return Text.assemble(
            ("[%s] " % self.violation.code.normalize(), "bold"),
            "%s (%s)" % (self.violation.message, where),
        )


class InvalidRegistryError(ExceptionGroup[RegistryError]):
    """
    all violations of one verification pass, raised together by ensure().
    """

    def __new__(cls, violations, /):
        return super().__new__(cls, "invalid registry", [RegistryError(violation) for violation in violations])

    def __init__(self, violations, /):
        super().__init__("invalid registry", list(self.exceptions))

    @property
    def violations(self):
        return tuple(exception.violation for exception in self.exceptions)

    def derive(self, exceptions):
        return InvalidRegistryError([exception.violation for exception in exceptions])

    def __rich__(self):
        render = Text("invalid registry:", style="bold")
        for exception in self.exceptions:
            render.append("\n  ").append_text(exception.__rich__())
        return render


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see ParseFault).
    - options are merged into the fault via __replace__(**options) before triggering.

    typical options
    - console, colorful, hint, quiet.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    fault.__replace__(**options).__trigger__()


__all__ = (
    "FaultCode",
    "Status",
    "ParseFault",
    "InvalidOptionError",
    "SwitchAssignmentError",
    "MissingValueError",
    "UnrecognisedOptionError",
    "ArgumentFileError",
    "OverlongLineError",
    "CallbackFailedError",
    "InvalidContextError",
    "Violation",
    "RegistryError",
    "InvalidRegistryError",
    "trigger",
)
