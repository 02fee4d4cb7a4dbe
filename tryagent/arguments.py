r"""
tryagent argument and option descriptors.

Overview
- Argument: a single positional or named input (binding name, converter, default or
  default-factory, existing-only validation).
- Option: one or more aliases (e.g. "-k", "--key") plus an underlying Argument.
  The option binds under a name derived from its longest alias
  ("--ai-key/--application-insights-key" binds as "application_insights_key").
  An Option whose converter is `boolean` is a flag: its value token is optional.

- Introspection & representation
  • ArgumentType metaclass provides stable __repr__/__rich_repr__ and exposes selected
    fields via read-only properties declared in __introspectable__/__displayable__.

Metadata (sanitized on construction)
- Argument
  • name: binding name, a Python identifier (matched exactly by the binder).
  • type: Callable converter applied to the raw token.
  • default / factory: at most one of them. With neither, the argument is required.
    The factory is called at parse time, never at declaration time.
  • existing: the bound value must name an existing filesystem entry.
  • metavar / descr: help labels, non-empty strings when provided.
  • hidden: suppress from help.
- Option
  • names: validated as shell-style identifiers; duplicates rejected; declaration order kept.
  • helper: reserved for the built-in -h/--help and --version options.
  • the remaining keywords are forwarded to the underlying Argument; options without a
    default bind None (or False for flags).

Validation highlights
- Names must match r"--?[^\W\d_](-?[^\W_]+)*".
- Argument names must be identifiers.
- default and factory are mutually exclusive.

Quick example:
    >>> from tryagent.arguments import Argument, Option
    >>> from tryagent.converters import boolean, directory
    >>> Argument("root_directory", directory, existing=True)
    ...
    >>> Option("--production", type=boolean).name
    'production'
"""
import functools
import operator
import re

from rich.text import Text

from .converters import boolean
from .utils import *


class ArgumentType(type):
    """
    Metaclass that turns descriptors into introspectable, read-only objects.

    Responsibilities
    - Provide stable, readable __repr__/__rich_repr__ implementations for
      diagnostics and help output.
    - Expose selected fields as read-only properties using mirror() for all
      names listed in __introspectable__.

    Conventions
    - __typename__ is derived from the class name (camel-case split with hyphens)
      and used in messages.
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
            - option(names=('-k', '--key'), name='key', ...)
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


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: normalize and validate the help labels ('metavar' and 'descr').

    - Unset becomes None.
    - Strings are trimmed and must not be empty; Text is accepted for descr.

    Raises
    - TypeError: when a label is neither a string nor Unset.
    - ValueError: when a string label is empty after trimming.
    """
    for name in ("metavar", "descr"):
        if not isinstance(object := metadata[name], str | Text | Unset) or (name == "metavar" and isinstance(object, Text)):
            raise TypeError(f"{cls.__typename__} {name!r} must be a string")
        elif isinstance(object, str) and not (object := object.strip()):
            raise ValueError(f"{cls.__typename__} {name!r} cannot be empty")
        metadata[name] = coalesce(object)


def _sanitize_named_metadata(cls, metadata, /):
    r"""
    Internal: validate the aliases of an Option.

    - At least one name; each one a non-empty string matching
      r"--?[^\W\d_](-?[^\W_]+)*" ("-k", "--key", "--region-id").
    - Duplicates are rejected. Declaration order is preserved as a tuple, which is
      the order help output uses.
    """
    names = []
    if not metadata["names"]:
        raise TypeError(f"{cls.__typename__} must specify at least one name")

    for name in metadata["names"]:
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} names must be strings")
        elif not (name := name.strip()):
            raise ValueError(f"{cls.__typename__} names cannot be empty-strings")
        elif not re.fullmatch(r"--?[^\W\d_](-?[^\W_]+)*", name):
            raise ValueError(f"{cls.__typename__} names must be valid shell-style option names (unicodes are allowed)")
        elif name in names:
            raise ValueError(f"{cls.__typename__} names cannot contain duplicates")
        names.append(name)

    metadata["names"] = tuple(names)


def _sanitize_parametric_metadata(cls, metadata, /):
    """
    Internal: validate the value-bearing fields of an Argument.

    - name: a Python identifier (this is the binding key).
    - type: callable converter.
    - default/factory: not both; factory must be callable.
    """
    if not isinstance(name := metadata["name"], str):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif not name.isidentifier():
        raise ValueError(f"{cls.__typename__} 'name' must be an identifier, got {name!r}")

    if not callable(metadata["type"]):
        raise TypeError(f"{cls.__typename__} 'type' must be callable")

    if metadata["factory"] is not Unset:
        if not callable(metadata["factory"]):
            raise TypeError(f"{cls.__typename__} 'factory' must be callable")
        if metadata["default"] is not Unset:
            raise TypeError(f"{cls.__typename__} cannot have both 'default' and 'factory'")


class Argument(metaclass=ArgumentType):
    """
    Positional or named input descriptor (always single-valued).

    Properties
    - The names listed in __introspectable__ are exposed as read-only attributes
      on instances, mirroring the sanitized metadata values.
    - required is derived: True when neither a default nor a factory was given.
    """

    __introspectable__ = (
        "name",
        "type",
        "default",
        "factory",
        "required",
        "existing",
        "metavar",
        "descr",
        "hidden",
    )

    __displayable__ = (
        "name",
        "type",
        "default",
        "factory",
        "existing",
    )

    def __new__(
            cls,
            name,
            /,
            type=str,
            default=Unset,
            factory=Unset,
            *,
            existing=False,
            metavar=Unset,
            descr=Unset,
            hidden=False
    ):
        """
        Construct an Argument with the provided metadata.

        Parameters
        - name: str
          Binding name; the binder matches handler schemas against it exactly.
        - type: Callable
          Converter applied to the raw token.
        - default: Any
          Value used when no token was given. Not converted nor validated against type.
        - factory: Callable[[], Any]
          Zero-argument callable producing the default at parse time.
        - existing: bool
          The bound value (explicit or default) must exist on the filesystem.
        - metavar, descr: str
          Help labels.
        - hidden: bool
          Suppress from help output.
        """
        metadata = {
            "name": name,
            "type": type,
            "default": default,
            "factory": factory,
            "existing": bool(existing),
            "metavar": metavar,
            "descr": descr,
            "hidden": bool(hidden),
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_parametric_metadata(cls, metadata)

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        self._required = default is Unset and factory is Unset
        return self

    def fallback(self):
        """
        Return the value bound when no token was given.

        The factory, when present, is called on every use so time-dependent defaults
        (the working directory, the machine name) reflect the moment of parsing.
        """
        if self._factory is not Unset:
            return self._factory()
        return coalesce(self._default)


class Option(metaclass=ArgumentType):
    """
    Named option descriptor: aliases plus an underlying Argument.

    Highlights
    - Supports aliases via 'names' (e.g., "-k", "--key").
    - Binds under the identifier of its longest alias (see utils.identifier).
    - Flags (boolean converter) take an optional value: "--production",
      "--production false", "--production=true".
    """

    __introspectable__ = (
        "names",
        "name",
        "argument",
        "descr",
        "hidden",
        "helper",
    )

    __displayable__ = (
        "names",
        "argument",
        "descr",
    )

    def __new__(
            cls,
            *names,
            type=str,
            default=Unset,
            factory=Unset,
            existing=False,
            metavar=Unset,
            descr=Unset,
            hidden=False,
            helper=False
    ):
        """
        Construct an Option.

        Parameters
        - names: one or more str aliases.
        - type, default, factory, existing, metavar: forwarded to the underlying Argument.
          Without a default or factory the option binds None (False for flags).
        - descr: short help text.
        - hidden: suppress from help output.
        - helper: marks the built-in help/version options (handled by the parser,
          never bound).
        """
        metadata = {
            "names": names,
            "metavar": Unset,
            "descr": descr,
        }
        _sanitize_named_metadata(cls, metadata)
        _sanitize_metadata(cls, metadata)

        if default is Unset and factory is Unset:
            default = False if type is boolean else None

        self = super().__new__(cls)
        self._names = metadata["names"]
        self._name = identifier(max(self._names, key=len))
        self._descr = metadata["descr"]
        self._hidden = bool(hidden)
        self._helper = bool(helper)
        self._argument = Argument(
            self._name,
            type,
            default,
            factory,
            existing=existing,
            metavar=metavar,
            hidden=hidden,
        )

        if self.helper and self.hidden:
            raise TypeError(f"helper {cls.__typename__} cannot be hidden")
        return self

    @property
    def flag(self):
        """
        True when the option is boolean and its value token is optional.
        """
        return self._argument.type is boolean


__all__ = (
    "Argument",
    "Option",
)

# Remove the internal metaclass from the module namespace to avoid accidental
# exposure in docs, autocompletion, or star-imports. Not part of the public API.
del ArgumentType
