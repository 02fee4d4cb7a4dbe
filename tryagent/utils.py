"""
tryagent utilities (internal helpers, carefully exposed)

Scope
- Small building blocks shared by the descriptor, command, binding and parser layers.

Overview
- UnsetType / Unset
  • Singleton sentinel to represent “value not provided” without conflating with None.
  • Falsey (bool(Unset) is False), printable as "Unset", and non-subclassable.

- coalesce(value, default=None)
  • Replace Unset with a concrete default, but preserve legitimate falsey values like None/0/""/[].

- rename(callable, name) / @rename("name")
  • Assign stable __name__/__qualname__ to generated wrappers for clean tracebacks and help.

- mirror("attr")
  • Read-only property factory exposing a private backing field (self._attr) with copies
    for containers so callers cannot mutate a built command tree.

- ordinal(number)
  • 1-based position label used by fault messages (“first”, “second”, “11th”).

- identifier(name)
  • Turn an option alias ("--log-to-file") into its binding name ("log_to_file").

Quick examples
    >>> coalesce(Unset, "fallback")
    'fallback'
    >>> coalesce(None, "fallback") is None
    True
    >>> identifier("--application-insights-key")
    'application_insights_key'
"""
import builtins
import functools
from collections.abc import Sequence, Mapping, Set
from typing import final


@final
class UnsetType:
    """
    Internal sentinel type representing a value that was not provided.

    Used where None is a legitimate value (an option without a default binds None)
    but the API still needs to tell “not provided” apart from “provided as None”.

    Characteristics
    - Boolean-false: bool(Unset) is False, but it is distinct from None and 0.
    - Printable: repr(Unset) -> "Unset".
    - Non-subclassable and a process-wide singleton.
    """

    def __or__(self, other, /):
        """
        Support PEP 604 unions in annotations (e.g., str | UnsetType).
        """
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        """
        Support reversed PEP 604 unions when UnsetType appears on the right.
        """
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


def coalesce(object, default=None, /):
    """
    Resolve the Unset sentinel to a concrete default.

    Returns object unless it is Unset, in which case default is returned. Falsey values
    like None, 0, "" or [] are preserved as-is.
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Set a stable __name__/__qualname__ on a callable, or return a decorator that will do so.

    Forms
    - rename(callable, name) -> callable
    - rename(name) -> decorator

    Raises
    - TypeError on a non-callable target, a non-string name, or wrong arity.
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be a updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                if not builtins.callable(callable):
                    raise TypeError("@rename() must be applied to a callable")
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def _immortalize(object):
    """
    Copy container values one level at a time, recursing into their items.

    - Sequence (non-string, non-tuple): new list.
    - tuple: new tuple (keeps declaration order and hashability of option tuples).
    - Mapping: new dict with the same keys.
    - Set: new set.
    - Anything else is returned as-is.
    """
    if isinstance(object, tuple):
        return tuple(map(_immortalize, object)) if type(object) is tuple else object
    elif isinstance(object, Sequence) and not isinstance(object, str):
        return list(map(_immortalize, object))
    elif isinstance(object, Mapping):
        return dict(zip(object.keys(), map(_immortalize, object.values())))
    elif isinstance(object, Set):
        return set(map(_immortalize, object))
    else:
        return object


def mirror(name, /):
    """
    Define a read-only property that mirrors the private backing attribute "_{name}".

    Containers are copied on every read so the public API cannot be used to mutate
    the underlying state.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _immortalize(getattr(self, "_" + name))

    return property(getter)


@functools.cache
def ordinal(number, /):
    """
    Return a human-friendly ordinal label for a 1-based position.

    - 1..10 are rendered as words ("first"…"tenth").
    - Other numbers use numeric ordinals with correct English suffixes.
    """
    try:
        return {
            1: "first",
            2: "second",
            3: "third",
            4: "fourth",
            5: "fifth",
            6: "sixth",
            7: "seventh",
            8: "eighth",
            9: "ninth",
            10: "tenth",
        }[number]
    except KeyError:
        pass

    # 11th, 12th, 13th (and 111th, 112th, 113th, …)
    if 10 < number % 100 < 20:
        return f"{number}th"

    return f'{number}%s' % {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


def identifier(name, /):
    """
    Derive a binding name from an option alias or a command-style name.

    Leading dashes are stripped and inner hyphens become underscores, so
    "--log-to-file" binds as "log_to_file" and "-k" as "k".
    """
    if not isinstance(name, str):
        raise TypeError("identifier() argument must be a string")
    return name.lstrip("-").replace("-", "_")


Unset = UnsetType()
"""
Internal sentinel for “not provided”.

Typical pattern: value = coalesce(user_value, default) to materialize a fallback
only when user_value is Unset (None and other falsey values are preserved).
"""


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",
    "ordinal",
    "identifier",

    # Types
    "UnsetType",

    # Constants
    "Unset",
)
