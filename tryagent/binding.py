"""
tryagent binder: explicit handler schemas and value binding.

A Signature is the literal, ordered list of parameters a handler expects,
declared next to the command definition. bind() maps the parser's resolved
values onto it by exact, case-sensitive name; no runtime introspection of the
handler is involved.

    >>> signature = Signature(Parameter("package_name"), Parameter("add_source", None))
    >>> bind(signature, {"package_name": "humanizer", "add_source": None})
    ('humanizer', None)
"""
import logging
from collections import namedtuple

from .faults import *
from .utils import *

logger = logging.getLogger(__name__)


Parameter = namedtuple("Parameter", ("name", "default"), defaults=(Unset,))
Parameter.__doc__ = """
One handler parameter: its binding name and an optional default used when the
parsed values do not carry that name.
"""


class Signature:
    """
    Ordered handler schema plus an optional aggregate factory.

    - parameters: tuple of Parameter, unique identifier names.
    - factory: callable receiving every bound value as a keyword argument
      (e.g. StartupOptions); without it bind() returns a positional tuple.
    """

    __slots__ = ("_parameters", "_factory")

    parameters = mirror("parameters")
    factory = mirror("factory")

    def __init__(self, *parameters, factory=Unset):
        names = set()
        for parameter in parameters:
            if not isinstance(parameter, Parameter):
                raise TypeError("signature parameters must be parameter instances")
            elif not isinstance(parameter.name, str) or not parameter.name.isidentifier():
                raise ValueError(f"signature parameter name must be an identifier, got {parameter.name!r}")
            elif parameter.name in names:
                raise ValueError(f"signature parameter name {parameter.name!r} is already in use")
            names.add(parameter.name)

        if factory is not Unset and not callable(factory):
            raise TypeError("signature 'factory' must be callable")

        self._parameters = parameters
        self._factory = factory

    @property
    def names(self):
        return tuple(parameter.name for parameter in self._parameters)

    def __iter__(self):
        return iter(self._parameters)

    def __len__(self):
        return len(self._parameters)

    def __repr__(self):
        return "signature(%s)" % ", ".join(
            parameter.name if parameter.default is Unset else "%s=%r" % parameter
            for parameter in self._parameters
        )


def bind(signature, values, /, *, command=Unset):
    """
    Produce handler arguments from resolved values.

    For each parameter, in schema order: the value parsed under the same name,
    else the parameter's own default, else UnboundParameterError. Extra values are
    ignored (a leaf only reads what its schema names).

    Returns factory(**arguments) when the signature has a factory, otherwise the
    tuple of arguments in schema order.
    """
    if not isinstance(signature, Signature):
        raise TypeError("bind() first argument must be a signature")

    arguments = {}
    for parameter in signature:
        try:
            arguments[parameter.name] = values[parameter.name]
        except KeyError:
            if parameter.default is Unset:
                route = " ".join(step.name for step in getattr(command, "path", ()))
                raise UnboundParameterError(
                    "no value for handler parameter %r" % parameter.name,
                    title="unbound parameter",
                    code=FaultCode.UNBOUND_PARAMETER,
                    parameter=parameter,
                    command=command,
                    hint="declare %r on the command path%s" % (
                        parameter.name, " of '%s'" % route if route else ""
                    ),
                    docs=getdoc(FaultCode.UNBOUND_PARAMETER),
                ) from None
            arguments[parameter.name] = parameter.default

    logger.debug("bound %s", ", ".join("%s=%r" % item for item in arguments.items()) or "nothing")

    if signature.factory is not Unset:
        return signature.factory(**arguments)
    return tuple(arguments.values())


__all__ = (
    "Parameter",
    "Signature",
    "bind",
)
