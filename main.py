import asyncio
import logging
import os
import sys
from types import SimpleNamespace

from rich.console import Console
from rich.logging import RichHandler
from rich.pretty import pprint

from tryagent import create, invoke

__prog__ = "tryagent"

logging.basicConfig(
    level=os.environ.get("TRYAGENT_LOG_LEVEL", "WARNING").upper(),
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
)


def start(options, context):
    mode = "hosted" if options.hosted else "try"
    context.console.print(f"starting in {mode} mode")
    pprint(options._asdict(), console=context.console, expand_all=True)


async def try_github(repo, console):
    console.print(f"trying {repo}")


async def pack(pack_target, console):
    console.print(f"packing {pack_target}")


async def install(package_name, add_source, console):
    console.print(f"installing {package_name}" + (f" from {add_source}" if add_source else ""))


async def verify(root_directory, console):
    console.print(f"verifying {root_directory}")
    return 0 if root_directory.is_dir() else 1


def registry():
    async def package(name):
        await asyncio.sleep(0)
        return SimpleNamespace(package_name=name)
    return (package(name) for name in ("console", "humanizer"))


if __name__ == '__main__':
    sys.exit(invoke(create(start, try_github, pack, install, verify, registry=registry, shell=True, colorful=True)))
