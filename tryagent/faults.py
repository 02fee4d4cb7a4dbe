"""
tryagent faults (usage and handler errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing failure.
  Codes are grouped by domain so logs and searches stay predictable.
- CommandException: base type that carries a message + options and knows how to
  render itself (rich) in a short, lowercased, actionable way.
- trigger(): central entry point to surface a fault (render in shell mode, raise otherwise).
- getdoc(): optional description lookup for a code from the host application.

Exit codes
- usage faults (parsing/binding) exit with 2.
- delegated (handler) faults exit with 1.

Host configuration (read from __main__ when present)
- __prog__:   program name shown in headers.
- __styles__: palette overrides (see the defaults in CommandException.__rich__).
- __codes__:  mapping FaultCode -> label, to replace numeric codes in output.
- __docs__:   mapping FaultCode -> documentation string.
"""
import copy
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the cli (stable identifiers).

    grouping (by high-level domain)
    - routing (2110x)
      • UNKNOWN_COMMAND, UNEXPECTED_ARGUMENT
    - options and values (2111x)
      • UNKNOWN_OPTION, MISSING_VALUE, TYPE_MISMATCH, PATH_NOT_FOUND, DUPLICATED_OPTION
    - binding and dispatch (2210x)
      • UNBOUND_PARAMETER, NO_HANDLER
    - delegated (2310x)
      • DELEGATED_ERROR
    """
    # --- routing errors (21xxx) ---
    UNKNOWN_COMMAND             = 21101
    UNEXPECTED_ARGUMENT         = 21102

    # --- option/value errors (21xxx) ---
    UNKNOWN_OPTION              = 21111
    MISSING_VALUE               = 21112
    TYPE_MISMATCH               = 21113
    PATH_NOT_FOUND              = 21114
    DUPLICATED_OPTION           = 21115

    # --- binding/dispatch errors (22xxx) ---
    UNBOUND_PARAMETER           = 22101
    NO_HANDLER                  = 22102

    # --- delegated errors (23xxx) ---
    DELEGATED_ERROR             = 23101

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class CommandException(Exception):
    """
    base class of every fault the parsing/dispatch layer surfaces.

    options (all optional, merged in by trigger()/__replace__)
    - title, code, hint, docs: header and guidance.
    - shell: render instead of raising.
    - fancy, colorful: rendering chrome.
    - console: where to render (defaults to the module stderr console).
    - any payload the raiser wants to attach (input, index, argument, command, ...).
    """
    __exitcode__ = 2

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    @property
    def code(self):
        return self.options.get("code")

    @property
    def exitcode(self):
        return type(self).__exitcode__

    def __str__(self):
        return self.message if isinstance(self.message, str) else ""

    def __rich__(self):
        main = __import__("__main__")
        colorful = self.options.get("colorful", False)

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

        def styler(style):
            return styles[style] if colorful else ""

        def text(fragment, style=""):
            if not fragment:
                return Text("")
            if not colorful:
                return Text(str(fragment))
            if isinstance(fragment, Text):
                return fragment
            return Text(str(fragment), style)

        prog = text(getattr(main, "__prog__", self.options.get("prog", "tryagent")), styler("prog-name"))
        code = self.code.normalize() if isinstance(self.code, FaultCode) else "?"

        header = Text.assemble(
            "[ ",
            prog,
            " — ",
            text(code, styler("code")),
            " | ",
            text(self.options.get("title", "error").title(), styler("error-title")),
            " ]"
        )
        message = text(self.message, styler("error-message"))
        renders = [message]
        if hint := self.options.get("hint"):
            renders.append(Text.assemble(text(" → ", styler("hint-arrow")), text(hint, styler("hint"))))

        if self.options.get("fancy", False):
            return Panel(Group(*renders), title=header, title_align="left")

        return Group(header, *renders)

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self from self.options.get("exception", self.__cause__)
        self.options.get("console", console).print(self)
        return self.exitcode

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        replaced = type(self)(self.message, **{**self.options, **overrides})
        replaced.__cause__ = self.__cause__
        return replaced


class UnknownCommandError(CommandException): ...
class UnexpectedArgumentError(CommandException): ...
class UnknownOptionError(CommandException): ...
class MissingValueError(CommandException): ...
class TypeMismatchError(CommandException): ...
class PathNotFoundError(CommandException): ...
class DuplicatedOptionError(CommandException): ...
class UnboundParameterError(CommandException): ...
class NoHandlerError(CommandException): ...


class DelegatedCommandError(CommandException):
    """
    a handler delegate failed; the original exception travels in options["exception"].
    """
    __exitcode__ = 1


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see CommandException).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode the fault is rendered and its exit code returned; otherwise it is raised.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    return copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys
    are FaultCode instances and values are short documentation strings.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be an fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "CommandException",
    "UnknownCommandError",
    "UnexpectedArgumentError",
    "UnknownOptionError",
    "MissingValueError",
    "TypeMismatchError",
    "PathNotFoundError",
    "DuplicatedOptionError",
    "UnboundParameterError",
    "NoHandlerError",
    "DelegatedCommandError",
    "FaultCode",
    "trigger",
    "getdoc",
)
