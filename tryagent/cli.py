"""
tryagent command tree.

create() wires the handler delegates into a fixed tree and returns a Parser:

    tryagent [root-directory] [--add-source <dir>] [--uri <uri>]   start in try mode
    ├── hosted [--id ...] [--production] ...                       start as hosted agent (hidden)
    ├── list-packages                                              print installed package names
    ├── github <repo>
    ├── pack <pack-target>
    ├── install <package-name> [--add-source <dir>]
    └── verify [root-directory]

Every handler is bound through a literal Signature declared next to its command.
"""
import logging

from . import __version__
from .arguments import Argument, Option
from .binding import Parameter, Signature
from .commands import Command
from .converters import *
from .delegates import *
from .options import signature as startup
from .parser import Parser
from .utils import *

logger = logging.getLogger(__name__)


def _delegate(function, /):
    """
    Adapt a delegate taking (*arguments, console) to the (arguments, context) handler shape.
    """
    @rename(getattr(function, "__name__", "delegate"))
    def handler(arguments, context):
        return function(*arguments, context.console)
    return handler


def _try_mode(start, /):
    return Command(
        "tryagent",
        descr="Try out a project with interactive documentation in your browser",
        argument=Argument(
            "root_directory",
            directory,
            factory=current_directory,
            existing=True,
            descr="Specify the path to the root directory",
        ),
        options=(
            Option(
                "--add-source",
                type=directory,
                factory=current_directory,
                existing=True,
                descr="Specify an additional package source",
            ),
            Option("--uri", type=uri, descr="Specify a URL to a markdown file"),
        ),
        handler=start,
        signature=startup,
        version=__version__,
    )


def _hosted_mode(parent, start, /):
    return parent.command(
        "hosted",
        descr="Starts the agent",
        options=(
            Option(
                "--id",
                factory=machine_name,
                descr="A unique id for the agent instance (e.g. its development environment id)",
            ),
            Option(
                "--production",
                type=boolean,
                descr="Specifies whether the agent is being run using production resources",
            ),
            Option(
                "--language-service",
                type=boolean,
                descr="Specifies whether the agent is being run in language service-only mode",
            ),
            Option("-k", "--key", descr="The encryption key"),
            Option("--ai-key", "--application-insights-key", descr="Application Insights key"),
            Option("--region-id", descr="A unique id for the agent region"),
            Option("--log-to-file", type=boolean, descr="Writes a log file"),
        ),
        handler=start,
        signature=startup,
        hidden=True,
    )


def _list_packages(parent, registry, /):
    async def list_packages(arguments, context):
        # Sequential on purpose: each package is awaited before the next one is read.
        for package in registry():
            package = await package
            if not isinstance(package, PackageDescriptor):
                raise TypeError("registry entries must resolve to objects with a 'package_name'")
            context.console.out(package.package_name, highlight=False)

    return parent.command(
        "list-packages",
        descr="Lists the installed packages",
        handler=list_packages,
    )


def _github(parent, try_github, /):
    return parent.command(
        "github",
        descr="Try a GitHub repo",
        argument=Argument("repo", descr="The repository to try"),
        handler=_delegate(try_github),
        signature=Signature(Parameter("repo")),
    )


def _pack(parent, pack, /):
    return parent.command(
        "pack",
        descr="Create a package",
        argument=Argument("pack_target", directory, descr="The directory to pack"),
        handler=_delegate(pack),
        signature=Signature(Parameter("pack_target")),
    )


def _install(parent, install, /):
    return parent.command(
        "install",
        descr="Install a package",
        argument=Argument("package_name", descr="The package to install"),
        options=(
            Option("--add-source", type=directory, existing=True, descr="Specify an additional package source"),
        ),
        handler=_delegate(install),
        signature=Signature(Parameter("package_name"), Parameter("add_source")),
    )


def _verify(parent, verify, /):
    return parent.command(
        "verify",
        descr="Verify a directory",
        argument=Argument(
            "root_directory",
            directory,
            factory=current_directory,
            existing=True,
            descr="Specify the path to the root directory",
        ),
        handler=_delegate(verify),
        signature=Signature(Parameter("root_directory")),
    )


def create(
        start,
        try_github,
        pack,
        install,
        verify,
        *,
        registry,
        console=Unset,
        stderr=Unset,
        shell=False,
        fancy=False,
        colorful=False
):
    """
    Build the tryagent command tree around the given delegates and return its parser.

    Parameters
    - start: StartServer, called as start(StartupOptions, Context) for the root and "hosted".
    - try_github, pack, install, verify: delegates called with their bound arguments
      followed by the console sink.
    - registry: PackageRegistry enumerated by "list-packages".
    - console, stderr, shell, fancy, colorful: forwarded to Parser.

    Raises
    - TypeError when a delegate does not satisfy its protocol. The protocols only
      declare __call__, so this rejects non-callables; arity is not checked.
    """
    for name, object, protocol in (
            ("start", start, StartServer),
            ("try_github", try_github, TryGitHub),
            ("pack", pack, Pack),
            ("install", install, Install),
            ("verify", verify, Verify),
            ("registry", registry, PackageRegistry),
    ):
        if not isinstance(object, protocol):
            raise TypeError(f"create() {name!r} must be a {protocol.__name__} delegate")

    root = _try_mode(start)
    _hosted_mode(root, start)
    _list_packages(root, registry)
    _github(root, try_github)
    _pack(root, pack)
    _install(root, install)
    _verify(root, verify)
    logger.debug("built command tree with %s", ", ".join(root.children))

    return Parser(root, console=console, stderr=stderr, shell=shell, fancy=fancy, colorful=colorful)


__all__ = (
    "create",
)
