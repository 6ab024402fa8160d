"""
Switchyard registry: token-keyed dependency container.

What this module provides
- Token: an opaque key carrying a type parameter for static checkers only.
  Tokens compare and hash by key, so two Token("logger") objects address the
  same slot.
- Registry: two maps keyed by token key, "instances" and "factories".
  • register(token, value): eager value, overwrites whatever the key held.
  • register_factory(token, factory): stored as-is, not invoked.
  • get(token): cached instance, else run + cache the factory (singleton
    memoization), else ServiceNotFoundError.
  • has(token): presence in either map; never forces a factory.
  • clear(): drop both maps (test isolation).
- Built-in tokens: ConfigToken, LoggerToken, PrompterToken, ConsoleToken.

Notes
- There is no collision detection between tokens sharing a key; the later
  registration silently wins.
- Only Token objects are accepted as keys. Raw strings are rejected.
"""
import logging
import types
from collections import namedtuple

from .faults import ServiceNotFoundError

logger = logging.getLogger(__name__)


class Token:
    """
    Opaque registry key.

    Token[Logger]("logger") and Token("logger") are the same key; the subscript
    only informs static type checkers about the resolved value.
    """
    __slots__ = ("_key",)
    __class_getitem__ = classmethod(types.GenericAlias)

    def __init__(self, key, /):
        if not isinstance(key, str):
            raise TypeError("token key must be a string")
        elif not (key := key.strip()):
            raise ValueError("token key cannot be empty")
        self._key = key

    @property
    def key(self):
        return self._key

    def __eq__(self, other):
        if not isinstance(other, Token):
            return NotImplemented
        return self._key == other._key

    def __hash__(self):
        return hash((Token, self._key))

    def __repr__(self):
        return f"Token({self._key!r})"


def _keyof(token, /):
    if not isinstance(token, Token):
        raise TypeError(f"registry keys must be tokens, not {type(token).__name__!r}")
    return token.key


class Registry:
    def __init__(self):
        self._instances = {}
        self._factories = {}

    def register(self, token, value, /):
        key = _keyof(token)
        self._factories.pop(key, None)
        self._instances[key] = value

    def register_factory(self, token, factory, /):
        if not callable(factory):
            raise TypeError("registry factory must be callable")
        self._factories[_keyof(token)] = factory

    def get(self, token, /):
        key = _keyof(token)
        try:
            return self._instances[key]
        except KeyError:
            pass
        try:
            factory = self._factories[key]
        except KeyError:
            raise ServiceNotFoundError(key) from None
        # Cache only after the factory succeeded; a failing factory stays retryable.
        service = self._instances[key] = factory()
        logger.debug("resolved service %r from its factory", key)
        return service

    def has(self, token, /):
        key = _keyof(token)
        return key in self._instances or key in self._factories

    __contains__ = has

    def clear(self):
        self._instances.clear()
        self._factories.clear()


Config = namedtuple("Config", ("name", "version", "description"), defaults=(None,))
"""
Identity of the running program, registered under ConfigToken.
"""

ConfigToken = Token("config")
LoggerToken = Token("logger")
PrompterToken = Token("prompter")
ConsoleToken = Token("console")


__all__ = (
    "Token",
    "Registry",
    "Config",
    "ConfigToken",
    "LoggerToken",
    "PrompterToken",
    "ConsoleToken",
)
