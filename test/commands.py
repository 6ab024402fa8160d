# python
"""
Tests for commands: the declarative model, the builder's inner chain and lazies.

Scope
- Command metadata sanitation.
- validate_arguments / validate_options semantics, including aggregated errors.
- Middleware ordering and short-circuiting.
- Lazy resolution and write-back.

Conventions
- Commands are executed through switchyard.testing.run_command with a mock
  registry so that log lines can be inspected.
"""
import os
import unittest
import warnings
from unittest import TestCase, mock

from switchyard.arguments import Argument, Option
from switchyard.commands import *
from switchyard.faults import CLIError, ValidationError
from switchyard.registry import LoggerToken
from switchyard.testing import mock_registry, run_command


def _recorder():
    received = []

    def handler(context):
        received.append(context)
        return "done"

    return received, handler


class TestCommandModel(TestCase):
    def testDefaults(self):
        plain = Command("deploy")
        self.assertEqual(plain.description, "")
        self.assertEqual(plain.usage, "deploy")
        self.assertEqual(plain.examples, [])
        self.assertEqual(plain.arguments, {})
        self.assertEqual(plain.subcommands, {})
        self.assertIsNone(plain.handler)
        self.assertEqual(plain.middleware, [])

    def testNameMustBeAWord(self):
        with self.assertRaises(ValueError):
            Command("two words")
        with self.assertRaises(ValueError):
            Command("")
        with self.assertRaises(TypeError):
            Command(None)

    def testHandlerMustBeCallable(self):
        with self.assertRaises(TypeError):
            Command("deploy", handler="nope")

    def testCommandCannotAliasItself(self):
        with self.assertRaises(ValueError):
            Command("deploy", aliases=("deploy",))

    def testArgumentSpecsAreTypeChecked(self):
        with self.assertRaises(TypeError):
            Command("deploy", arguments={"target": Option()})

    def testBareLoaderSubcommandBecomesLazy(self):
        group = Command("dns", subcommands={"add": lambda: Command("add")})
        self.assertEqual(group.subcommand("add").name, "add")
        self.assertIsNone(group.subcommand("missing"))

    def testPlainCommandCallsHandlerDirectly(self):
        received, handler = _recorder()
        self.assertEqual(run_command(Command("deploy", handler=handler), ["prod"]), "done")
        self.assertEqual(received[0].args, ["prod"])
        self.assertIsNone(received[0].named)

    def testExecuteWithoutHandlerRaises(self):
        with self.assertRaises(CLIError):
            Command("dns").execute(Context())


class TestArgumentValidation(TestCase):
    def testMissingRequiredArgument(self):
        greet = command("greet", arguments={"name": Argument("string", required=True)}, handler=lambda context: None)
        with self.assertRaises(ValidationError) as context:
            run_command(greet, [])
        self.assertEqual(context.exception.message, "Validation errors:\nMissing required argument: name")

    def testEmptyRequiredArgumentIsMissing(self):
        greet = command("greet", arguments={"name": Argument("string", required=True)}, handler=lambda context: None)
        with self.assertRaises(ValidationError) as context:
            run_command(greet, [""])
        self.assertEqual(context.exception.errors, ("Missing required argument: name",))

    def testNamedBinding(self):
        received, handler = _recorder()
        greet = command(
            "greet",
            arguments={"name": Argument("string", required=True), "count": Argument("number")},
            handler=handler,
        )
        run_command(greet, ["Alice", "3"])
        self.assertEqual(received[0].named, {"name": "Alice", "count": 3})
        self.assertEqual(received[0].args, ["Alice", "3"])

    def testAbsentOptionalArgumentIsNotBound(self):
        received, handler = _recorder()
        greet = command("greet", arguments={"name": Argument()}, handler=handler)
        run_command(greet, [])
        self.assertEqual(received[0].named, {})

    def testEveryViolationIsReported(self):
        copy = command(
            "copy",
            arguments={
                "count": Argument("number"),
                "source": Argument("string", required=True),
                "target": Argument("string", required=True),
            },
            handler=lambda context: None,
        )
        with self.assertRaises(ValidationError) as context:
            run_command(copy, ["many"])
        self.assertEqual(context.exception.errors, (
            "Argument count must be a number",
            "Missing required argument: source",
            "Missing required argument: target",
        ))

    def testValidatorOutcomes(self):
        def port(value):
            if value < 1024:
                return "Port must be at least 1024"
            return True

        serve = command("serve", arguments={"port": Argument("number", validate=port)}, handler=lambda context: "ok")
        self.assertEqual(run_command(serve, ["8080"]), "ok")
        with self.assertRaises(ValidationError) as context:
            run_command(serve, ["80"])
        self.assertEqual(context.exception.errors, ("Port must be at least 1024",))

        strict = command("strict", arguments={"word": Argument(validate=lambda value: False)}, handler=lambda context: None)
        with self.assertRaises(ValidationError) as context:
            run_command(strict, ["x"])
        self.assertEqual(context.exception.errors, ("Invalid value for argument word",))


class TestOptionValidation(TestCase):
    def testRequiredOption(self):
        login = command("login", options={"user": Option("string", required=True)}, handler=lambda context: None)
        with self.assertRaises(ValidationError) as context:
            run_command(login)
        self.assertIn("Missing required option: --user", context.exception.message)

    def testDefaultsAreApplied(self):
        received, handler = _recorder()
        serve = command("serve", options={"port": Option("number", default=8080)}, handler=handler)
        run_command(serve)
        self.assertEqual(received[0].options, {"port": 8080})

    def testValuesAreCoerced(self):
        received, handler = _recorder()
        build = command(
            "build",
            options={
                "jobs": Option("number"),
                "watch": Option("boolean"),
                "targets": Option("array"),
            },
            handler=handler,
        )
        run_command(build, options={"jobs": "4", "watch": "false", "targets": "a,b", "extra": "kept"})
        self.assertEqual(received[0].options, {"jobs": 4, "watch": False, "targets": ["a", "b"], "extra": "kept"})

    def testCoercionFailure(self):
        serve = command("serve", options={"port": Option("number")}, handler=lambda context: None)
        with self.assertRaises(ValidationError) as context:
            run_command(serve, options={"port": "http"})
        self.assertEqual(context.exception.errors, ("Option --port must be a number",))

    def testAliasMapsToLongName(self):
        received, handler = _recorder()
        greet = command("greet", options={"times": Option("number", alias="t", default=1)}, handler=handler)
        run_command(greet, options={"t": "3"})
        self.assertEqual(received[0].options, {"times": 3})

    def testValidatorReceivesCoercedValue(self):
        seen = []

        def validate(value):
            seen.append(value)
            return isinstance(value, int)

        serve = command("serve", options={"port": Option("number", validate=validate)}, handler=lambda context: None)
        run_command(serve, options={"port": "80"})
        self.assertEqual(seen, [80])
        with self.assertRaises(ValidationError) as context:
            run_command(serve, options={"port": "1.5"})
        self.assertEqual(context.exception.errors, ("Invalid value for option --port",))


class TestMiddleware(TestCase):
    def testBuilderMiddlewareRunsBeforeValidation(self):
        events = []

        def spy(context, command, next):
            events.append(("spy", context.named, dict(context.options)))
            return next()

        def handler(context):
            events.append(("handler", context.named, dict(context.options)))

        greet = command(
            "greet",
            arguments={"name": Argument()},
            options={"times": Option("number")},
            middleware=(spy,),
            handler=handler,
        )
        run_command(greet, ["Ada"], {"times": "2"})
        self.assertEqual(events, [
            ("spy", None, {"times": "2"}),
            ("handler", {"name": "Ada"}, {"times": 2}),
        ])

    def testShortCircuit(self):
        received, handler = _recorder()
        blocked = command("blocked", middleware=(lambda context, command, next: "blocked",), handler=handler)
        self.assertEqual(run_command(blocked), "blocked")
        self.assertEqual(received, [])

    def testExecutionIsLoggedThroughRegistryLogger(self):
        registry = mock_registry()
        run_command(command("greet", handler=lambda context: None), registry=registry)
        output = registry.get(LoggerToken).output
        self.assertEqual(output[0], "[DEBUG] Executing command: greet")
        self.assertTrue(output[1].startswith("[DEBUG] Command greet completed in "))

    def testFailureIsLogged(self):
        registry = mock_registry()

        def handler(context):
            raise RuntimeError("boom")

        with self.assertRaises(RuntimeError):
            run_command(command("fail", handler=handler), registry=registry)
        self.assertTrue(registry.get(LoggerToken).output[-1].startswith("[DEBUG] Command fail failed after "))

    def testFewExamplesWarnInDebug(self):
        with mock.patch.dict(os.environ, {"DEBUG": "1"}):
            with self.assertWarns(UserWarning):
                command("greet", examples=("greet Ada",))

    def testNoWarningOutsideDebug(self):
        with mock.patch.dict(os.environ):
            os.environ.pop("DEBUG", None)
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always")
                command("greet")
        self.assertEqual(caught, [])


class TestLazy(TestCase):
    def testLoaderRunsOnce(self):
        calls = []

        def loader():
            calls.append(1)
            return Command("deploy", handler=lambda context: None)

        lazy = Lazy(loader)
        self.assertFalse(lazy.resolved)
        self.assertIs(lazy.resolve(), lazy.resolve())
        self.assertTrue(lazy.resolved)
        self.assertEqual(len(calls), 1)

    def testResolveWritesBack(self):
        deploy = Command("deploy")
        commands = {"deploy": Lazy(lambda: deploy)}
        self.assertIs(resolve(commands, "deploy"), deploy)
        self.assertIs(commands["deploy"], deploy)
        self.assertIsNone(resolve(commands, "missing"))

    def testLoaderMustReturnACommand(self):
        with self.assertRaises(TypeError):
            Lazy(lambda: "deploy").resolve()

    def testLoaderMustBeCallable(self):
        with self.assertRaises(TypeError):
            Lazy("deploy")


class TestContext(TestCase):
    def testDefaults(self):
        context = Context()
        self.assertEqual(context.args, [])
        self.assertEqual(context.options, {})
        self.assertIsNone(context.named)
        self.assertIsNotNone(context.registry)


if __name__ == "__main__":
    unittest.main()
