"""
Parser and dispatcher behavioral tests (tree walk, values, faults, dispatch, exit codes).

Scope
- Validate resolved values for every command of the tryagent tree.
- Validate usage faults (unknown/duplicated options, missing values, conversions,
  missing paths, unexpected arguments) and that no handler runs on failure.
- Validate dispatch: bound arguments, awaited results, exit codes, help/version.
- Validate shell mode rendering and exit codes.

Conventions
- Test method names follow CamelCase per project convention.
- Every test runs inside a fresh temporary working directory.
"""
import io
import os
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest import IsolatedAsyncioTestCase

from rich.console import Console

from tryagent import __version__, create
from tryagent.arguments import Argument
from tryagent.commands import Command
from tryagent.converters import machine_name
from tryagent.faults import *
from tryagent.options import StartupOptions
from tryagent.parser import Parser


class Recorder:
    """Delegate double remembering every call; returns a fixed result."""

    def __init__(self, result=None):
        self.calls = []
        self.result = result

    def __call__(self, *arguments):
        self.calls.append(arguments)
        return self.result


class Failing:
    def __init__(self, exception):
        self.exception = exception

    async def __call__(self, *arguments):
        raise self.exception


class ParserTestCase(IsolatedAsyncioTestCase):

    def setUp(self):
        directory = tempfile.TemporaryDirectory()
        self.addCleanup(directory.cleanup)
        self.addCleanup(os.chdir, os.getcwd())
        os.chdir(directory.name)
        self.cwd = Path(os.getcwd())

        self.start = Recorder()
        self.github = Recorder()
        self.pack = Recorder()
        self.install = Recorder()
        self.verify = Recorder(0)
        self.packages = []
        self.stdout = io.StringIO()
        self.stderr = io.StringIO()

    async def describe(self, name):
        if isinstance(name, Exception):
            raise name
        return SimpleNamespace(package_name=name)

    def registry(self):
        return (self.describe(name) for name in self.packages)

    def build(self, **options):
        return create(
            self.start,
            self.github,
            self.pack,
            self.install,
            self.verify,
            registry=self.registry,
            console=Console(file=self.stdout, width=120),
            stderr=Console(file=self.stderr, width=120),
            **options
        )


class TestParsing(ParserTestCase):
    """Resolved values for the declared command paths."""

    def testRootResolvesEveryDescriptor(self):
        invocation = self.build().parse([])
        self.assertEqual(invocation.command.name, "tryagent")
        self.assertEqual(dict(invocation.values), {
            "root_directory": self.cwd,
            "add_source": self.cwd,
            "uri": None,
        })

    def testParseIsIdempotent(self):
        parser = self.build()
        first = parser.parse(["hosted", "--production"])
        second = parser.parse(["hosted", "--production"])
        self.assertEqual(dict(first.values), dict(second.values))

    def testVerifyDefaultsToWorkingDirectory(self):
        invocation = self.build().parse(["verify"])
        self.assertEqual(invocation.values["root_directory"], self.cwd)

    def testFactoryIsEvaluatedAtParseTime(self):
        parser = self.build()
        os.mkdir("nested")
        os.chdir("nested")
        self.assertEqual(parser.parse(["verify"]).values["root_directory"], self.cwd / "nested")

    def testInstallResolvesPackageAndSource(self):
        os.mkdir("src")
        invocation = self.build().parse(["install", "my-package", "--add-source", "./src"])
        self.assertEqual(invocation.values["package_name"], "my-package")
        self.assertEqual(invocation.values["add_source"], Path("src"))

    def testInstallInlineSource(self):
        os.mkdir("src")
        invocation = self.build().parse(["install", "--add-source=src", "my-package"])
        self.assertEqual(invocation.values["add_source"], Path("src"))
        self.assertEqual(invocation.values["package_name"], "my-package")

    def testLeafValueWinsNameCollision(self):
        invocation = self.build().parse(["install", "my-package"])
        self.assertIsNone(invocation.values["add_source"])
        self.assertEqual(invocation.values["root_directory"], self.cwd)

    def testGithubResolvesRepo(self):
        invocation = self.build().parse(["github", "octo/repo"])
        self.assertEqual(invocation.values["repo"], "octo/repo")
        self.assertEqual([step.name for step in invocation.path], ["tryagent", "github"])

    def testHostedDefaults(self):
        invocation = self.build().parse(["hosted", "--production"])
        self.assertIs(invocation.values["production"], True)
        self.assertIs(invocation.values["language_service"], False)
        self.assertIs(invocation.values["log_to_file"], False)
        self.assertEqual(invocation.values["id"], machine_name())
        self.assertIsNone(invocation.values["key"])
        self.assertIsNone(invocation.values["application_insights_key"])
        self.assertIsNone(invocation.values["region_id"])

    def testHostedAliases(self):
        invocation = self.build().parse(["hosted", "-k", "secret", "--ai-key", "ai", "--region-id=eu"])
        self.assertEqual(invocation.values["key"], "secret")
        self.assertEqual(invocation.values["application_insights_key"], "ai")
        self.assertEqual(invocation.values["region_id"], "eu")

    def testFlagForms(self):
        parser = self.build()
        self.assertIs(parser.parse(["hosted", "--production", "false"]).values["production"], False)
        self.assertIs(parser.parse(["hosted", "--production", "TRUE"]).values["production"], True)
        self.assertIs(parser.parse(["hosted", "--production=false"]).values["production"], False)
        self.assertIs(parser.parse(["hosted", "--log-to-file", "--production"]).values["log_to_file"], True)

    def testFlagDoesNotConsumeOtherTokens(self):
        with self.assertRaises(UnexpectedArgumentError):
            self.build().parse(["hosted", "--production", "yes"])

    def testUriOption(self):
        invocation = self.build().parse(["--uri", "https://example.org/readme.md"])
        self.assertEqual(invocation.values["uri"].netloc, "example.org")
        self.assertEqual(invocation.values["uri"].path, "/readme.md")

    def testRootPositional(self):
        os.mkdir("docs")
        invocation = self.build().parse(["docs"])
        self.assertEqual(invocation.command.name, "tryagent")
        self.assertEqual(invocation.values["root_directory"], Path("docs"))

    def testDoubleDashEndsOptions(self):
        invocation = self.build().parse(["github", "--", "--weird"])
        self.assertEqual(invocation.values["repo"], "--weird")

    def testChildNameAfterOptionsIsNotACommand(self):
        os.mkdir("verify")
        invocation = self.build().parse(["--uri", "file:///tmp/readme.md", "verify"])
        self.assertEqual(invocation.command.name, "tryagent")
        self.assertEqual(invocation.values["root_directory"], Path("verify"))


class TestParsingFaults(ParserTestCase):
    """Usage faults and their payloads."""

    def testUnknownOption(self):
        with self.assertRaises(UnknownOptionError) as context:
            self.build().parse(["verify", "--bogus"])
        self.assertEqual(context.exception.code, FaultCode.UNKNOWN_OPTION)
        self.assertEqual(context.exception.options["input"], "--bogus")
        self.assertIn("--help", context.exception.options["options"])
        self.assertIn("--bogus", str(context.exception))

    def testUnknownOptionSuggestions(self):
        with self.assertRaises(UnknownOptionError) as context:
            self.build().parse(["hosted", "--productin"])
        self.assertIn("--production", context.exception.options["suggestions"])

    def testRootOptionsAreNotAcceptedUnderHosted(self):
        with self.assertRaises(UnknownOptionError):
            self.build().parse(["hosted", "--uri", "https://example.org"])

    def testInstallMissingSourceFails(self):
        with self.assertRaises(PathNotFoundError) as context:
            self.build().parse(["install", "my-package", "--add-source", "missing-dir"])
        self.assertEqual(context.exception.code, FaultCode.PATH_NOT_FOUND)
        self.assertEqual(context.exception.options["argument"].name, "add_source")
        self.assertIn("missing-dir", str(context.exception))

    def testRootPositionalMustExist(self):
        with self.assertRaises(PathNotFoundError):
            self.build().parse(["missing-dir"])

    def testVerifyRegularFileFails(self):
        Path("notes.txt").write_text("not a directory")
        with self.assertRaises(PathNotFoundError) as context:
            self.build().parse(["verify", "notes.txt"])
        self.assertEqual(context.exception.options["argument"].name, "root_directory")
        self.assertIn("notes.txt", str(context.exception))

    def testInstallSourceFileFails(self):
        Path("feed.txt").write_text("not a directory")
        with self.assertRaises(PathNotFoundError) as context:
            self.build().parse(["install", "my-package", "--add-source", "feed.txt"])
        self.assertEqual(context.exception.options["argument"].name, "add_source")

    def testRemovedWorkingDirectory(self):
        os.mkdir("gone")
        os.chdir("gone")
        os.rmdir(self.cwd / "gone")
        with self.assertRaises(PathNotFoundError) as context:
            self.build().parse(["github", "octo/repo"])
        self.assertEqual(context.exception.code, FaultCode.PATH_NOT_FOUND)
        self.assertIsInstance(context.exception.__cause__, FileNotFoundError)

    def testOptionWithoutValue(self):
        parser = self.build()
        for tokens in (["--uri"], ["hosted", "--key"], ["hosted", "--key", "--production"], ["hosted", "--key="]):
            with self.subTest(tokens=tokens):
                with self.assertRaises(MissingValueError):
                    parser.parse(tokens)

    def testRequiredPositionalMissing(self):
        with self.assertRaises(MissingValueError) as context:
            self.build().parse(["github"])
        self.assertEqual(context.exception.options["argument"].name, "repo")

    def testTypeMismatch(self):
        with self.assertRaises(TypeMismatchError) as context:
            self.build().parse(["--uri", "not a uri"])
        self.assertIsInstance(context.exception.__cause__, ValueError)

    def testFlagTypeMismatch(self):
        with self.assertRaises(TypeMismatchError):
            self.build().parse(["hosted", "--production=maybe"])

    def testDuplicatedOption(self):
        with self.assertRaises(DuplicatedOptionError):
            self.build().parse(["hosted", "-k", "a", "--key", "b"])

    def testUnexpectedArgument(self):
        with self.assertRaises(UnexpectedArgumentError) as context:
            self.build().parse(["github", "octo/repo", "extra"])
        self.assertEqual(context.exception.options["leftover"], ["extra"])

    def testUnknownCommand(self):
        root = Command("tool")
        root.command("install", handler=Recorder())
        with self.assertRaises(UnknownCommandError) as context:
            Parser(root).parse(["instal"])
        self.assertIn("install", context.exception.options["suggestions"])

    def testNoHandler(self):
        root = Command("tool")
        root.command("install", handler=Recorder())
        with self.assertRaises(NoHandlerError):
            Parser(root).parse([])

    def testParseRejectsNonStrings(self):
        with self.assertRaises(TypeError):
            self.build().parse("verify")
        with self.assertRaises(TypeError):
            self.build().parse([1])


class TestDispatch(ParserTestCase):
    """Handler dispatch and exit codes."""

    async def testInstallDispatch(self):
        os.mkdir("src")
        parser = self.build()
        self.assertEqual(await parser.run(["install", "my-package", "--add-source", "./src"]), 0)
        self.assertEqual(len(self.install.calls), 1)
        package_name, add_source, console = self.install.calls[0]
        self.assertEqual(package_name, "my-package")
        self.assertEqual(add_source, Path("src"))
        self.assertIs(console, parser.console)

    async def testGithubDispatch(self):
        self.assertEqual(await self.build().run(["github", "octo/repo"]), 0)
        self.assertEqual(self.github.calls[0][0], "octo/repo")

    async def testPackDispatch(self):
        self.assertEqual(await self.build().run(["pack", "out"]), 0)
        self.assertEqual(self.pack.calls[0][0], Path("out"))

    async def testHostedStartsOnce(self):
        self.assertEqual(await self.build().run(["hosted", "--production"]), 0)
        self.assertEqual(len(self.start.calls), 1)
        options, context = self.start.calls[0]
        self.assertIsInstance(options, StartupOptions)
        self.assertTrue(options.hosted)
        self.assertIs(options.production, True)
        self.assertIs(options.language_service, False)
        self.assertIs(options.log_to_file, False)
        self.assertEqual(options.id, machine_name())
        self.assertEqual(options.root_directory, self.cwd)
        self.assertEqual(context.invocation.command.name, "hosted")

    async def testTryModeStart(self):
        self.assertEqual(await self.build().run([]), 0)
        options, _ = self.start.calls[0]
        self.assertFalse(options.hosted)
        self.assertIsNone(options.id)
        self.assertIs(options.production, False)
        self.assertEqual(options.add_source, self.cwd)

    async def testVerifyExitCode(self):
        self.verify.result = 3
        self.assertEqual(await self.build().run(["verify"]), 3)
        self.assertEqual(self.verify.calls[0][0], self.cwd)

    async def testAwaitableResult(self):
        async def verify(root_directory, console):
            return 4

        self.verify = verify
        self.assertEqual(await self.build().run(["verify"]), 4)

    async def testContextExitCode(self):
        def start(options, context):
            context.exit_code = 5

        self.start = start
        self.assertEqual(await self.build().run([]), 5)

    async def testListPackagesInRegistryOrder(self):
        self.packages = ["console", "humanizer", "blazor"]
        self.assertEqual(await self.build().run(["list-packages"]), 0)
        self.assertEqual(self.stdout.getvalue().splitlines(), ["console", "humanizer", "blazor"])

    async def testListPackagesEmptyRegistry(self):
        self.assertEqual(await self.build().run(["list-packages"]), 0)
        self.assertEqual(self.stdout.getvalue(), "")

    async def testListPackagesRejectsEntriesWithoutName(self):
        async def nameless():
            return object()

        self.registry = lambda: (nameless() for _ in range(1))
        with self.assertRaises(DelegatedCommandError) as context:
            await self.build().run(["list-packages"])
        self.assertIsInstance(context.exception.__cause__, TypeError)

    async def testHostedCarriesRootDefaults(self):
        self.assertEqual(await self.build().run(["hosted"]), 0)
        options, _ = self.start.calls[0]
        self.assertEqual(options.root_directory, self.cwd)
        self.assertEqual(options.add_source, self.cwd)
        self.assertIsNone(options.uri)

    async def testListPackagesFailurePropagates(self):
        self.packages = ["console", RuntimeError("registry unavailable")]
        with self.assertRaises(DelegatedCommandError) as context:
            await self.build().run(["list-packages"])
        self.assertIsInstance(context.exception.__cause__, RuntimeError)
        self.assertEqual(self.stdout.getvalue().splitlines(), ["console"])

    async def testUnknownOptionDoesNotDispatch(self):
        with self.assertRaises(UnknownOptionError):
            await self.build().run(["verify", "--bogus"])
        self.assertEqual(self.verify.calls, [])

    async def testHelpDoesNotDispatch(self):
        self.assertEqual(await self.build().run(["install", "--help"]), 0)
        self.assertEqual(self.install.calls, [])
        self.assertIn("usage:", self.stdout.getvalue())
        self.assertIn("--add-source", self.stdout.getvalue())

    async def testHelpOmitsHiddenCommands(self):
        self.assertEqual(await self.build().run(["-h"]), 0)
        self.assertIn("list-packages", self.stdout.getvalue())
        self.assertNotIn("hosted", self.stdout.getvalue())
        self.assertEqual(self.start.calls, [])

    async def testVersion(self):
        self.assertEqual(await self.build().run(["--version"]), 0)
        self.assertIn(__version__, self.stdout.getvalue())
        self.assertEqual(self.start.calls, [])

    async def testDispatchWithoutSignature(self):
        handler = Recorder()
        root = Command("tool", argument=Argument("name", default="world"), handler=handler)
        parser = Parser(root, console=Console(file=self.stdout))
        self.assertEqual(await parser.run([]), 0)
        self.assertEqual(handler.calls[0][0], ())


class TestShellMode(ParserTestCase):
    """Faults are rendered to stderr and turned into exit codes."""

    async def testUsageFaultExitCode(self):
        self.assertEqual(await self.build(shell=True).run(["verify", "--bogus"]), 2)
        self.assertEqual(self.verify.calls, [])
        self.assertIn("unknown option '--bogus'", self.stderr.getvalue())
        self.assertIn("usage:", self.stderr.getvalue())

    async def testPathNotFoundExitCode(self):
        self.assertEqual(await self.build(shell=True).run(["install", "pkg", "--add-source", "missing-dir"]), 2)
        self.assertIn("missing-dir", self.stderr.getvalue())

    async def testRemovedWorkingDirectoryExitCode(self):
        os.mkdir("gone")
        os.chdir("gone")
        os.rmdir(self.cwd / "gone")
        self.assertEqual(await self.build(shell=True).run(["github", "octo/repo"]), 2)
        self.assertEqual(self.github.calls, [])
        self.assertIn("root_directory", self.stderr.getvalue())

    async def testHandlerFailureExitCode(self):
        self.github = Failing(ConnectionError("unreachable"))
        with self.assertLogs("tryagent.parser", "DEBUG") as logs:
            self.assertEqual(await self.build(shell=True).run(["github", "octo/repo"]), 1)
        self.assertIn("unreachable", self.stderr.getvalue())
        self.assertTrue(any("failed" in line for line in logs.output))

    async def testFancyColorfulRendering(self):
        self.assertEqual(await self.build(shell=True, fancy=True, colorful=True).run(["--bogus"]), 2)
        self.assertIn("unknown option", self.stderr.getvalue())


if __name__ == '__main__':
    unittest.main()
