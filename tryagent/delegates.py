"""
Handler delegates: the external behaviours the command tree routes to.

Each capability is one runtime-checkable protocol injected into cli.create().
Delegates may be plain functions or coroutine functions; awaitable results are
awaited by the dispatcher.

- StartServer(options, context): run the agent (try mode or hosted mode); may never return.
- TryGitHub(repo, console)
- Pack(pack_target, console)
- Install(package_name, add_source, console)
- Verify(root_directory, console) -> int: the returned int is the exit code.
- PackageRegistry(): iterable of awaitables resolving to PackageDescriptor.

isinstance() against a runtime-checkable protocol only checks that the members
exist: callables pass the delegate protocols whatever their parameters, and any
object with a package_name attribute passes PackageDescriptor.
"""
from typing import Protocol, runtime_checkable


@runtime_checkable
class StartServer(Protocol):
    def __call__(self, options, context): ...


@runtime_checkable
class TryGitHub(Protocol):
    def __call__(self, repo, console): ...


@runtime_checkable
class Pack(Protocol):
    def __call__(self, pack_target, console): ...


@runtime_checkable
class Install(Protocol):
    def __call__(self, package_name, add_source, console): ...


@runtime_checkable
class Verify(Protocol):
    def __call__(self, root_directory, console): ...


@runtime_checkable
class PackageDescriptor(Protocol):
    @property
    def package_name(self): ...


@runtime_checkable
class PackageRegistry(Protocol):
    def __call__(self): ...


__all__ = (
    "StartServer",
    "TryGitHub",
    "Pack",
    "Install",
    "Verify",
    "PackageDescriptor",
    "PackageRegistry",
)
