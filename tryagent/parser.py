"""
tryagent parser and dispatcher.

Phases
- parse(tokens)
  • walk the command tree: while nothing has been parsed on the current node, a
    token equal to a child's name descends into that child.
  • classify every other token as an option ("--name value", "--name=value",
    "-k value", "-k=value"; flags take an optional literal true/false) or as the
    node's positional; "--" ends option parsing.
  • resolve every descriptor on the path: explicit token, default, or factory result
    (factories are called here, once per parse), then validate existing-only values.
  • -h/--help (any node) and --version (root) stop parsing and mark the invocation.
- bind(invocation): map the resolved values onto the leaf's literal Signature.
- dispatch(invocation): call the leaf's handler with (arguments, context), awaiting
  awaitable results.
- run(tokens): the whole state machine with exit codes
  (0 success, 1 handler failure, 2 usage fault).

Faults lead with the ordinal position of the offending token ("at third position")
and carry the node they occurred on, so shell mode can print that node's help.
"""
import asyncio
import difflib
import inspect
import logging
import re
import shlex
import sys
from collections import deque, namedtuple
from collections.abc import Iterable
from types import MappingProxyType

from rich.console import Console

from .binding import bind
from .commands import Command, render_help, render_version
from .converters import boolean, exists
from .faults import *
from .utils import *

logger = logging.getLogger(__name__)


class Invocation(namedtuple("Invocation", ("path", "values", "help", "version"), defaults=(False, False))):
    """
    Result of a successful parse.

    - path: tuple of Command, root to leaf.
    - values: read-only mapping binding name -> resolved value for every descriptor
      on the path (leaf values win on name collisions).
    - help/version: set when -h/--help or --version was requested; values are then empty.
    """
    __slots__ = ()

    @property
    def command(self):
        return self.path[-1]


class Context:
    """
    Per-dispatch context handed to handlers next to their bound arguments.

    A handler may set exit_code; it is used when the handler does not return an int.
    """

    def __init__(self, parser, invocation, console, exit_code=0):
        self.parser = parser
        self.invocation = invocation
        self.console = console
        self.exit_code = exit_code

    def __repr__(self):
        return "context(command=%r, exit_code=%r)" % (self.invocation.command.name, self.exit_code)


def _route(command):
    return " ".join(step.name for step in command.path)


class Parser:
    """
    Parses raw arguments against a command tree and dispatches to exactly one handler.

    Parameters
    - root: Command without parent.
    - console: rich Console handed to handlers and used for help/version (stdout).
    - stderr: rich Console faults are rendered to in shell mode.
    - shell: render faults and return exit codes instead of raising.
    - fancy, colorful: rendering chrome for help, version, and faults.
    """

    root = mirror("root")
    console = mirror("console")
    stderr = mirror("stderr")
    shell = mirror("shell")
    fancy = mirror("fancy")
    colorful = mirror("colorful")

    def __init__(self, root, *, console=Unset, stderr=Unset, shell=False, fancy=False, colorful=False):
        if not isinstance(root, Command):
            raise TypeError("parser 'root' must be a command")
        elif root.parent:
            raise ValueError("parser 'root' must be a top-level command")
        if not isinstance(console, Console | Unset) or not isinstance(stderr, Console | Unset):
            raise TypeError("parser 'console' and 'stderr' must be rich consoles")

        self._root = root
        self._console = coalesce(console, Console())
        self._stderr = coalesce(stderr, Console(stderr=True))
        self._shell = bool(shell)
        self._fancy = bool(fancy)
        self._colorful = bool(colorful)

    def __repr__(self):
        return "parser(root=%r, shell=%r)" % (self._root.name, self._shell)

    def trigger(self, fault, /, **options):
        """
        Surface a fault with this parser's rendering options (see faults.trigger).
        """
        return trigger(
            fault,
            **options,
            shell=self._shell,
            fancy=self._fancy,
            colorful=self._colorful,
            console=self._stderr,
        )

    def _resolve_token(self, command, index, token):
        r"""
        split an option-like token into (alias, option, inline value or None).

        the token must match (?P<input>--?[^\W\d_](-?[^\W_]+)*)(=(?P<value>[^\r\n]*))?
        and name one of the node's aliases; anything else is an unknown option, with
        close matches from the node's visible aliases as suggestions.
        """
        match = re.fullmatch(r"(?P<input>--?[^\W\d_](-?[^\W_]+)*)(=(?P<value>[^\r\n]*))?", token)
        input = match["input"] if match else token.partition("=")[0]

        try:
            if not match:
                raise KeyError(input)
            return input, command.switches[input], match["value"]
        except KeyError:
            names = [name for name, option in command.switches.items() if not option.hidden]
            suggestions = difflib.get_close_matches(input, names, 5)
            try:
                hint = "did you mean %r? you can also run '%s --help' to see all options" % (
                    suggestions[0], _route(command)
                )
            except IndexError:
                hint = "try '%s --help' to see all available options" % _route(command)
            raise UnknownOptionError(
                "unknown option %r at %s position" % (input, ordinal(index)),
                title="unknown option",
                code=FaultCode.UNKNOWN_OPTION,
                input=input,
                index=index,
                options=tuple(names),
                suggestions=suggestions,
                command=command,
                hint=hint,
                docs=getdoc(FaultCode.UNKNOWN_OPTION),
            ) from None

    def _convert(self, command, argument, index, input, token):
        """
        convert a raw token with the descriptor's converter.
        """
        try:
            return argument.type(token)
        except (TypeError, ValueError) as exception:
            typename = getattr(argument.type, "__typename__", getattr(argument.type, "__name__", "value"))
            raise TypeMismatchError(
                "cannot convert %r for %s at %s position: %s" % (
                    token,
                    "option %r" % input if input != argument.name else "positional %r" % argument.name,
                    ordinal(index),
                    exception,
                ),
                title="type mismatch",
                code=FaultCode.TYPE_MISMATCH,
                input=input,
                index=index,
                token=token,
                argument=argument,
                command=command,
                hint="use a valid %s" % typename,
                docs=getdoc(FaultCode.TYPE_MISMATCH),
            ) from exception

    def _getvalue(self, command, option, index, input, value, tokens):
        """
        consume the value of an option (inline, spaced, or implicit for flags).
        """
        if value is not None:
            if not value:
                raise MissingValueError(
                    "empty inline value for option %r at %s position" % (input, ordinal(index)),
                    title="missing value",
                    code=FaultCode.MISSING_VALUE,
                    input=input,
                    index=index,
                    argument=option.argument,
                    command=command,
                    hint="add a value after '=' (for example: %s=<value>)" % input,
                    docs=getdoc(FaultCode.MISSING_VALUE),
                )
            return self._convert(command, option.argument, index, input, value)

        if option.flag:
            # The next token is only taken when it is a boolean literal.
            if tokens and tokens[0][1].strip().lower() in ("true", "false"):
                _, token = tokens.popleft()
                return boolean(token)
            return True

        if not tokens or (tokens[0][1].startswith("-") and tokens[0][1] != "-"):
            raise MissingValueError(
                "option %r at %s position requires a value" % (input, ordinal(index)),
                title="missing value",
                code=FaultCode.MISSING_VALUE,
                input=input,
                index=index,
                argument=option.argument,
                command=command,
                hint="pass it after a space or with '=' (for example: %s <value>)" % input,
                docs=getdoc(FaultCode.MISSING_VALUE),
            )
        index, token = tokens.popleft()
        return self._convert(command, option.argument, index, input, token)

    def _resolve(self, path, explicit):
        """
        resolve every descriptor on the path: explicit value, else default or factory.
        """
        values = {}
        for command in path:
            arguments = [command.argument] if command.argument else []
            arguments.extend(option.argument for option in command.options if not option.helper)
            for argument in arguments:
                if command is path[-1] and argument.name in explicit:
                    value = explicit[argument.name]
                else:
                    try:
                        value = argument.fallback()
                    except OSError as exception:
                        # A removed working directory makes os.getcwd() fail.
                        raise PathNotFoundError(
                            "cannot resolve the default of %r: %s" % (argument.name, exception.strerror or exception),
                            title="path not found",
                            code=FaultCode.PATH_NOT_FOUND,
                            argument=argument,
                            command=command,
                            hint="run from an existing directory",
                            docs=getdoc(FaultCode.PATH_NOT_FOUND),
                        ) from exception
                if argument.existing and value is not None and not exists(value, argument.type):
                    typename = getattr(argument.type, "__typename__", "path")
                    raise PathNotFoundError(
                        "path %r given to %r is not an existing %s" % (str(value), argument.name, typename),
                        title="path not found",
                        code=FaultCode.PATH_NOT_FOUND,
                        path=value,
                        argument=argument,
                        command=command,
                        hint="use an existing %s for %r" % (typename, argument.name),
                        docs=getdoc(FaultCode.PATH_NOT_FOUND),
                    )
                values[argument.name] = value
        return values

    def parse(self, tokens, /):
        """
        Parse tokens into an Invocation, raising CommandException subclasses on faults.
        """
        if isinstance(tokens, str) or not isinstance(tokens, Iterable):
            raise TypeError("parse() argument must be an iterable of strings")
        tokens = deque(enumerate(tokens, 1))
        if any(not isinstance(token, str) for _, token in tokens):
            raise TypeError("parse() argument must be an iterable of strings")

        command = self._root
        path = [command]
        explicit = {}
        seen = {}
        parsed = False
        terminated = False

        while tokens:
            index, token = tokens.popleft()

            if not terminated and token == "--":
                terminated = parsed = True
                continue

            if not terminated and token.startswith("-") and token != "-":
                input, option, value = self._resolve_token(command, index, token)
                if option in seen:
                    raise DuplicatedOptionError(
                        "option %r at %s position was already given as %r" % (input, ordinal(index), seen[option]),
                        title="duplicated option",
                        code=FaultCode.DUPLICATED_OPTION,
                        input=input,
                        index=index,
                        argument=option.argument,
                        command=command,
                        hint="pass %r only once" % option.names[-1],
                        docs=getdoc(FaultCode.DUPLICATED_OPTION),
                    )
                seen[option] = input
                value = self._getvalue(command, option, index, input, value, tokens)
                if option.helper:
                    if value and option is command.helper:
                        logger.debug("help requested for %r", _route(command))
                        return Invocation(tuple(path), MappingProxyType({}), help=True)
                    if value and option is command.versioner:
                        logger.debug("version requested")
                        return Invocation(tuple(path), MappingProxyType({}), version=True)
                    continue
                explicit[option.name] = value
                parsed = True
                continue

            if not parsed and token in command.children:
                command = command.children[token]
                path.append(command)
                logger.debug("descending into %r", _route(command))
                continue

            if command.argument and command.argument.name not in explicit:
                argument = command.argument
                explicit[argument.name] = self._convert(command, argument, index, argument.name, token)
                parsed = True
                continue

            if command.children and not command.argument and not parsed:
                names = [name for name, child in command.children.items() if not child.hidden]
                suggestions = difflib.get_close_matches(token, names, 5)
                try:
                    hint = "did you mean %r? you can also run '%s --help' to see all commands" % (
                        suggestions[0], _route(command)
                    )
                except IndexError:
                    hint = "try '%s --help' to see all available commands" % _route(command)
                raise UnknownCommandError(
                    "unknown command %r at %s position" % (token, ordinal(index)),
                    title="unknown command",
                    code=FaultCode.UNKNOWN_COMMAND,
                    input=token,
                    index=index,
                    suggestions=suggestions,
                    command=command,
                    hint=hint,
                    docs=getdoc(FaultCode.UNKNOWN_COMMAND),
                )

            raise UnexpectedArgumentError(
                "unrecognized command or argument %r at %s position" % (token, ordinal(index)),
                title="unexpected argument",
                code=FaultCode.UNEXPECTED_ARGUMENT,
                input=token,
                index=index,
                leftover=[token] + [token for _, token in tokens],
                command=command,
                hint="remove the extra inputs; run '%s --help' to see valid forms" % _route(command),
                docs=getdoc(FaultCode.UNEXPECTED_ARGUMENT),
            )

        if (argument := command.argument) and argument.required and argument.name not in explicit:
            metavar = coalesce(argument.metavar, "<%s>" % argument.name.replace("_", "-"))
            raise MissingValueError(
                "missing required positional %r" % argument.name,
                title="missing value",
                code=FaultCode.MISSING_VALUE,
                argument=argument,
                command=command,
                hint="pass %s after '%s'" % (metavar, _route(command)),
                docs=getdoc(FaultCode.MISSING_VALUE),
            )

        if command.handler is None:
            raise NoHandlerError(
                "command '%s' has no handler" % _route(command),
                title="no handler",
                code=FaultCode.NO_HANDLER,
                command=command,
                hint="run '%s --help' to see the available commands" % _route(command),
                docs=getdoc(FaultCode.NO_HANDLER),
            )

        values = self._resolve(path, explicit)
        logger.debug("parsed '%s' with %s", _route(command), ", ".join("%s=%r" % item for item in values.items()) or "no values")
        return Invocation(tuple(path), MappingProxyType(values))

    def bind(self, invocation, /):
        """
        Produce the leaf handler's arguments (see binding.bind); () without a signature.
        """
        if not isinstance(invocation, Invocation):
            raise TypeError("bind() argument must be an invocation")
        if (command := invocation.command).signature is None:
            return ()
        return bind(command.signature, invocation.values, command=command)

    async def dispatch(self, invocation, arguments=Unset, /):
        """
        Call the leaf handler once and return its exit code.

        An int result (bool excluded) is the exit code; otherwise the context's
        exit_code is used. Awaitable results are awaited. Handler exceptions propagate.
        """
        if not isinstance(invocation, Invocation):
            raise TypeError("dispatch() first argument must be an invocation")
        if (command := invocation.command).handler is None:
            raise NoHandlerError(
                "command '%s' has no handler" % _route(command),
                title="no handler",
                code=FaultCode.NO_HANDLER,
                command=command,
                hint="run '%s --help' to see the available commands" % _route(command),
                docs=getdoc(FaultCode.NO_HANDLER),
            )
        if arguments is Unset:
            arguments = self.bind(invocation)

        context = Context(self, invocation, self._console)
        logger.debug("dispatching '%s' to %s", _route(command), getattr(command.handler, "__qualname__", command.handler))
        result = command.handler(arguments, context)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, int) and not isinstance(result, bool):
            return result
        return context.exit_code

    async def run(self, tokens, /):
        """
        Parse, bind and dispatch; return the process exit code.

        - help/version requests render to the console and exit with 0.
        - usage faults exit with 2 (shell mode renders the node's help, then the fault).
        - handler failures are logged with their traceback at debug level and
          surfaced as DelegatedCommandError, exit code 1.
        Outside shell mode faults are raised instead of rendered.
        """
        try:
            invocation = self.parse(tokens)
            if invocation.help:
                render_help(invocation.command, self._console, colorful=self._colorful, fancy=self._fancy)
                return 0
            if invocation.version:
                render_version(invocation.command, self._console, colorful=self._colorful, fancy=self._fancy)
                return 0
            arguments = self.bind(invocation)
        except CommandException as fault:
            if self._shell:
                render_help(fault.options.get("command", self._root), self._stderr, colorful=self._colorful, fancy=self._fancy)
            return self.trigger(fault)

        command = invocation.command
        try:
            return await self.dispatch(invocation, arguments)
        except CommandException as fault:
            return self.trigger(fault)
        except Exception as exception:
            logger.debug("handler of '%s' failed", _route(command), exc_info=True)
            return self.trigger(DelegatedCommandError(
                "command '%s' failed: %s" % (_route(command), str(exception) or type(exception).__name__),
                title="delegated error",
                code=FaultCode.DELEGATED_ERROR,
                command=command,
                hint="check additional logs for more details",
                docs=getdoc(FaultCode.DELEGATED_ERROR),
            ), exception=exception)


def invoke(parser, prompt=Unset, /):
    """
    Run a parser on a prompt under asyncio and return the exit code.

    Parameters
    - prompt:
      • Unset: read tokens from sys.argv[1:].
      • str: shell-like string; will be split via shlex.split.
      • Iterable[str]: pre-tokenized sequence.
    """
    if not isinstance(parser, Parser):
        raise TypeError("invoke() first argument must be a parser")

    if prompt is Unset:
        tokens = sys.argv[1:]
    elif isinstance(prompt, str):
        tokens = shlex.split(prompt)
    elif isinstance(prompt, Iterable):
        tokens = list(prompt)
        if any(not isinstance(token, str) for token in tokens):
            raise TypeError("invoke() argument must be a string or an iterable of strings")
    else:
        raise TypeError("invoke() argument must be a string or an iterable of strings")

    return asyncio.run(parser.run(tokens))


__all__ = (
    "Invocation",
    "Context",
    "Parser",
    "invoke",
)
