# python
"""
Tests for the internal helpers every module builds on.

Scope
- The Unset sentinel and coalesce().
- SpecType defaults and the read-only mirrored properties it generates.
- Importing the package as a whole.
"""
import importlib
import unittest
from unittest import TestCase

from switchyard.arguments import Option
from switchyard.utils import *


class TestUnset(TestCase):
    def testSingleton(self):
        self.assertIs(UnsetType(), Unset)
        self.assertFalse(Unset)
        self.assertEqual(repr(Unset), "Unset")

    def testSealed(self):
        with self.assertRaises(TypeError):
            type("Sub", (UnsetType,), {})

    def testUnion(self):
        self.assertIsInstance("x", str | Unset)
        self.assertIsInstance(Unset, str | Unset)

    def testCoalesce(self):
        self.assertIsNone(coalesce(Unset))
        self.assertEqual(coalesce(Unset, 3), 3)
        self.assertEqual(coalesce(0, 3), 0)


class TestSpecType(TestCase):
    def testDisplayableDefaultsToUnset(self):
        self.assertIs(SpecType.__displayable__, Unset)
        self.assertEqual(SpecType.__introspectable__, ())

    def testMirroredContainersAreCopies(self):
        option = Option("array", default=["a"])
        option.default.append("b")
        self.assertEqual(option.default, ["a"])

    def testTypename(self):
        self.assertEqual(Option.__typename__, "option")


class TestPackage(TestCase):
    def testImports(self):
        package = importlib.import_module("switchyard")
        for name in package.__all__:
            with self.subTest(name=name):
                self.assertTrue(hasattr(package, name))


if __name__ == "__main__":
    unittest.main()
