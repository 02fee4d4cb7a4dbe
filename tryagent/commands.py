"""
tryagent command layer: the command tree and its help/version renderers.

What this module provides
- Command: one node of the command tree with:
  • At most one positional Argument and any number of Options.
  • A handler and the literal Signature it is bound through.
  • Parent/child hierarchies to model subcommands ("tryagent install <name>").
  • Built-in -h/--help on every node and --version on the root.
- render_help(command, console): rich help (usage, description, visible children,
  argument and option groups).
- render_version(command, console): rich version block for the tree's root.

Core ideas
- Built once: every invariant (unique aliases, unique binding names, unique child
  names, schema parameters declared on the node's path) is checked on construction
  and violations raise TypeError/ValueError immediately.
- Read-only: fields are mirrored as properties returning copies.
- Hidden nodes parse and dispatch normally; only help output omits them.

Quick start
    from tryagent.arguments import Argument, Option
    from tryagent.binding import Parameter, Signature
    from tryagent.commands import Command

    root = Command("tool", descr="Demo tool", version="1.0.0")
    root.command(
        "greet",
        descr="Say hello",
        argument=Argument("who"),
        options=(Option("--shout", type=boolean),),
        handler=greet,
        signature=Signature(Parameter("who"), Parameter("shout")),
    )
"""
import functools
import operator
import re
from collections import defaultdict, deque

from rich.box import ROUNDED
from rich.console import Console, Group
from rich.containers import Lines
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .arguments import Argument, Option
from .binding import Signature
from .converters import boolean
from .utils import *


class CommandType(type):
    """
    Metaclass that gives Command nodes a readable, introspectable surface.

    Responsibilities
    - Provide stable, readable __repr__/__rich_repr__ for diagnostics and rich UI.
    - Expose selected fields as read-only properties using mirror() for all names
      listed in __introspectable__.

    Conventions
    - __typename__ is derived from the class name (camel-case split with hyphens).
    - __displayable__ (if set) narrows which properties are shown by __rich_repr__;
      otherwise __introspectable__ is used.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
            )

        @rename("__repr__")
        def __repr__(self):
            """
            Return a concise, stable representation with key metadata.

            Example
            - command(name='install', ...)
            """
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _process_strings(cls, metadata):
    """
    Validate the node's name and normalize its scalar labels.

    - name: a command word ("install", "list-packages").
    - descr, version: str | Text | Unset; strings trimmed and non-empty, Unset becomes None.
    """
    if not isinstance(name := metadata["name"], str):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif not re.fullmatch(r"[^\W\d_](-?[^\W_]+)*", name := name.strip()):
        raise ValueError(f"{cls.__typename__} 'name' must be a valid command word, got {name!r}")
    metadata["name"] = name

    for name in ("descr", "version"):
        if not isinstance(object := metadata[name], str | Text | Unset):
            raise TypeError(f"{cls.__typename__} {name!r} must be a string")
        elif isinstance(object, str) and not (object := object.strip()):
            raise ValueError(f"{cls.__typename__} {name!r} cannot be empty")
        metadata[name] = coalesce(object)


def _process_arguments(cls, metadata):
    """
    Validate the positional argument and the options; fan aliases out into 'switches'.

    Errors
    - TypeError on a wrong descriptor type.
    - ValueError on a duplicated alias or a duplicated binding name.
    """
    if not isinstance(argument := metadata["argument"], Argument | Unset):
        raise TypeError(f"{cls.__typename__} 'argument' must be an argument")
    metadata["argument"] = coalesce(argument)

    names = {argument.name} if argument else set()
    switches = metadata["switches"] = {}
    options = []
    for option in metadata["options"]:
        if not isinstance(option, Option):
            raise TypeError(f"{cls.__typename__} 'options' must contain options only")
        for name in option.names:
            if name in switches:
                raise ValueError(f"{cls.__typename__} option name {name!r} is already in use")
            switches[name] = option
        if option.name in names:
            raise ValueError(f"{cls.__typename__} binding name {option.name!r} is already in use")
        names.add(option.name)
        options.append(option)
    metadata["options"] = tuple(options)


def _process_handler(cls, metadata):
    """
    Validate the handler and its schema.

    Every schema parameter without a default must be declared by a descriptor on
    the node's path (an ancestor's or the node's own argument/option).
    """
    if not callable(handler := metadata["handler"]) and handler is not Unset:
        raise TypeError(f"{cls.__typename__} 'handler' must be callable")
    if not isinstance(signature := metadata["signature"], Signature | Unset):
        raise TypeError(f"{cls.__typename__} 'signature' must be a signature")
    if signature is not Unset and handler is Unset:
        raise TypeError(f"{cls.__typename__} 'signature' requires a handler")

    if signature is not Unset:
        declared = {option.name for option in metadata["options"]}
        if metadata["argument"]:
            declared.add(metadata["argument"].name)
        for step in getattr(metadata["parent"], "path", ()):
            declared.update(step.bindings)
        for parameter in signature:
            if parameter.default is Unset and parameter.name not in declared:
                raise ValueError(
                    f"{cls.__typename__} {metadata["name"]!r} handler parameter {parameter.name!r} is not declared"
                )

    metadata["handler"] = coalesce(handler)
    metadata["signature"] = coalesce(signature)


def _attach_to_parent(self, parent):
    """
    Register this command under its parent, enforcing unique names.
    """
    if getattr(parent, "_children", {}).setdefault(name := self.name, self) is self:
        return

    typeof = "subcommand" if parent.parent else "command"
    raise ValueError(f"{type(self).__typename__} {typeof} name {name!r} is already in use")


class Command(metaclass=CommandType):
    """
    One node of the command tree.

    Responsibilities
    - Introspection: exposes metadata as read-only properties (copies).
    - Composition: parent/child hierarchies model subcommands; command() creates a child.
    - Parsing surface: the positional argument, the options and their alias table
      (switches) consumed by tryagent.parser.

    Notes
    - helper and versioner are the built-in -h/--help and --version options; the
      parser compares them by identity and they never reach the bound values.
    """

    __introspectable__ = (
        "name",
        "descr",
        "hidden",
        "version",
        "argument",
        "options",
        "switches",
        "handler",
        "signature",
        "parent",
        "children",
        "helper",
        "versioner",
    )

    __displayable__ = (
        "name",
        "descr",
        "hidden",
        "argument",
        "options",
        "handler",
        "signature",
        "children",
    )

    @property
    def root(self):
        """
        Return the topmost command in the current command hierarchy.
        """
        child, parent = self, self.parent
        while parent:
            child, parent = parent, parent.parent
        return child

    @property
    def path(self):
        """
        Return the full ancestry from root to this command as a tuple.
        """
        path = [command := self]
        while command.parent:
            path.append(command := command.parent)
        return tuple(reversed(path))

    @property
    def bindings(self):
        """
        Binding names declared on this node (positional first, then options).
        """
        names = [self._argument.name] if self._argument else []
        names.extend(option.name for option in self._options if not option.helper)
        return tuple(names)

    def __new__(
            cls,
            name,
            /,
            parent=Unset,
            descr=Unset,
            argument=Unset,
            options=(),
            handler=Unset,
            signature=Unset,
            *,
            hidden=False,
            version=Unset
    ):
        """
        Construct a command node and attach it to its parent.

        Parameters
        - name: str
          Command word; for the root it is the program name.
        - parent: Command | Unset
          Parent under which to attach this command.
        - descr: str | Text
          One-line description used by help output.
        - argument: Argument | Unset
          The single positional argument, if any.
        - options: Iterable[Option]
          Options in declaration order.
        - handler: Callable[[arguments, context], Any] | Unset
          Called with the bound arguments and the invocation context.
        - signature: Signature | Unset
          Literal schema the handler's arguments are bound through.
        - hidden: bool
          Omit from help output; parsing and dispatch are unaffected.
        - version: str
          Version string shown by --version (root only).

        Raises
        - TypeError/ValueError on invalid metadata, duplicated aliases or binding names,
          schema parameters undeclared on the path, or child name conflicts.
        """
        if not isinstance(parent, Command | Unset):
            raise TypeError(f"{cls.__typename__} 'parent' must be a command")
        if parent and version is not Unset:
            raise TypeError(f"{cls.__typename__} 'version' is only allowed on the root command")

        metadata = {
            "name": name,
            "descr": descr,
            "version": version,
            "hidden": bool(hidden),
            "argument": argument,
            "options": options,
            "handler": handler,
            "signature": signature,
            "parent": parent,
            "children": {},
        }
        _process_strings(cls, metadata)
        _process_arguments(cls, metadata)
        _process_handler(cls, metadata)

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, coalesce(object))

        # Built-in helper/version options unless the caller provided the names.
        self._helper = self._versioner = None
        if all(name not in self._switches for name in ("-h", "--help")):
            self._helper = Option("-h", "--help", type=boolean, descr="Show help and usage information", helper=True)
            self._switches.update(dict.fromkeys(self._helper.names, self._helper))
            self._options += (self._helper,)

        if not self._parent and "--version" not in self._switches:
            self._versioner = Option("--version", type=boolean, descr="Show version information", helper=True)
            self._switches.update(dict.fromkeys(self._versioner.names, self._versioner))
            self._options += (self._versioner,)

        _attach_to_parent(self, self.parent)
        return self

    def command(self, name, /, *args, **kwargs):
        """
        Create a subcommand under this command (parent=self is injected).
        """
        return Command(name, self, *args, **kwargs)


def _palette(colorful, defaults):
    styles = defaultdict(str, defaults | getattr(__import__("__main__"), "__styles__", {}))

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        # Normalize to Text; in non-colorful mode styles are stripped.
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), style)

    return styler, text


def render_help(command, console=Unset, /, *, colorful=False, fancy=False):
    """
    Render help for a command node to the console.

    Sections
    - usage line (route, built-in and visible options, positional, command placeholder)
    - description
    - visible children table ("commands" at the root, "subcommands" below)
    - arguments and options groups with hanging-indent descriptions

    Palette keys
    - usage-label, program-name, usage-section, description-section
    - group-label, argument-description, option-name, metavar
    - children-title, children-table, children, children-description
    - panel-title

    Define a mapping named __styles__ in __main__ to override any palette entry.
    """
    if not isinstance(command, Command):
        raise TypeError("render_help() first argument must be a command")
    console = coalesce(console, Console())
    styler, text = _palette(colorful, {
        # === Head sections ===
        "usage-label": "bold #00E6FF",  # CYAN → signature info color
        "program-name": "bold #FF4D94",  # MAGENTA-PINK → brand pop
        "usage-section": "bold #36C5F0",
        "description-section": "italic #A3A3A3",

        # === Groups / arguments ===
        "group-label": "bold #FFFFFF",
        "argument-description": "#9CA3AF",
        "option-name": "bold #00E6FF",
        "metavar": "bold #FFD600",  # AMBER for parameters

        # === Children table ===
        "children-title": "bold #FFFFFF",
        "children-table": "#4B5563",  # Slate border
        "children": "bold #36C5F0",
        "children-description": "#9CA3AF",

        # === Fancy panel ===
        "panel-title": "bold #FF4D94",
    })

    renders = []
    width = console.width - 4 * fancy

    def names(option):
        shorts = sorted((name for name in option.names if not name.startswith("--")), key=len)
        longs = sorted((name for name in option.names if name.startswith("--")), key=len)
        return Text(" | ").join(text(name, styler("option-name")) for name in shorts + longs)

    def metavar(argument):
        if argument.metavar is not None:
            return text(argument.metavar, styler("metavar"))
        return Text.assemble("<", text(argument.name.replace("_", "-"), styler("metavar")), ">")

    options = [option for option in command.options if not option.hidden]
    children = {name: child for name, child in command.children.items() if not child.hidden}
    argument = command.argument if command.argument and not command.argument.hidden else None

    # Usage: route + [options] + positional + command placeholder
    usage = Text()
    usage.append("usage", styler("usage-label")).append(":")
    usage.append(" ")
    route = [step.name for step in command.path]
    route[0] = getattr(__import__("__main__"), "__prog__", route[0])
    usage.append(text(" ".join(route), styler("program-name")))
    usage.append(" ")

    offset = len(usage)
    inputs = deque()
    for option in options:
        if option.flag:
            inputs.append(Text.assemble("[", names(option), "]"))
        else:
            inputs.append(Text.assemble("[", names(option), " ", metavar(option.argument), "]"))
    if argument:
        inputs.append(metavar(argument) if argument.required else Text.assemble("[", metavar(argument), "]"))
    if children:
        inputs.append(Text.assemble("[", text("command", styler("metavar")), "]"))

    # Wrap usage items across terminal width
    try:
        lines = Lines([inputs.popleft()])
    except IndexError:
        lines = Lines()

    while inputs:
        if len(lines[-1]) + 1 + len(input := inputs.popleft()) > width - offset:
            lines.append(input)
        else:
            lines[-1].append(Text(" ") + input)

    try:
        usage.append(lines.pop(0))
    except IndexError:
        pass
    for line in lines:
        usage.append("\n").append(" " * offset).append(line)

    renders.append(usage.append("\n"))

    if command.descr:
        renders.append(text(command.descr, styler("description-section")).append("\n"))

    if children:
        table = Table(
            "name", "help",
            title=text("subcommands" if command.parent else "commands", styler("children-title")),
            width=int(width * (2 / 3)),
            box=ROUNDED,
            style=styler("children-table"),
            header_style=styler("children-title"),
        )
        for name, child in children.items():
            if child.descr:
                help = text(child.descr, styler("children-description"))
            else:
                help = text("run '%s --help' for details" % " ".join(route + [name]), styler("children-description"))
            table.add_row(text(name, styler("children")), help)
        renders.append(table)

    # Argument groups with hanging indents
    groups = Text("\n" if children else "")
    sections = []
    if argument:
        sections.append(("arguments", [(metavar(argument), argument.descr)]))
    if options:
        sections.append(("options", [
            (names(option) if option.flag else Text.assemble(names(option), " ", metavar(option.argument)), option.descr)
            for option in options
        ]))

    padding = 2  # Leading spaces before the first column
    indent = max((len(label) for _, rows in sections for label, _ in rows), default=0) + padding * 2
    indent = min(indent, max(width // 3, padding * 2))

    for index, (group, rows) in enumerate(sections):
        groups.append(text(group, styler("group-label"))).append(":")
        groups.append("\n")
        for label, descr in rows:
            section = Text(" " * padding).append(label)
            if descr := text(descr, styler("argument-description")):
                if len(section) >= indent:
                    section.append("\n").append(" " * indent)
                else:
                    section.append(" " * (indent - len(section)))
                wrapped = descr.wrap(console, max(width - indent, 1))
                try:
                    section.append(wrapped.pop(0))
                except IndexError:
                    pass
                for line in wrapped:
                    section.append("\n").append(" " * indent).append(line)
            groups.append(section).append("\n")
        groups.append("\n" * (index < len(sections) - 1))

    if groups:
        renders.append(groups)

    if isinstance(renders[-1], Text):
        renders[-1].rstrip()  # Trim trailing newline on the last chunk

    renderable = Group(*renders)
    if fancy:
        renderable = Panel(
            renderable,
            title=Text.assemble("[", " ", f"{command.name} HELP".upper(), " ", "]", style=styler("panel-title")),
            title_align="left",
        )

    console.print(renderable)


def render_version(command, console=Unset, /, *, colorful=False, fancy=False):
    """
    Render "<name> — <version>" for the command's root to the console.
    """
    if not isinstance(command, Command):
        raise TypeError("render_version() first argument must be a command")
    console = coalesce(console, Console())
    styler, text = _palette(colorful, {
        "program-name": "bold #FF4D94",  # Magenta-pink brand pop
        "program-version": "bold #00E6FF",  # Cyan version
        "panel-title": "bold #FF4D94",
    })

    root = command.root
    renderable = Text(" — ").join((
        text(getattr(__import__("__main__"), "__prog__", root.name), styler("program-name")),
        text(root.version or "unknown", styler("program-version")),
    ))

    if fancy:
        renderable = Panel(
            renderable,
            title=Text.assemble("[", " ", f"{root.name} VERSION".upper(), " ", "]", style=styler("panel-title")),
            title_align="left",
        )

    console.print(renderable)


__all__ = (
    "Command",
    "render_help",
    "render_version",
)

# Remove the internal metaclass from the module namespace to avoid accidental
# exposure in docs, autocompletion, or star-imports. Not part of the public API.
del CommandType
