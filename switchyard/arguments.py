"""
Switchyard argument specifications.

Overview
- Argument: a positional argument. Binding is purely positional: the Nth
  declared Argument of a command binds to the Nth positional string.
  • type: "string" | "number"
- Option: a named option, addressed as --name (or -alias).
  • type: "string" | "boolean" | "number" | "array"
  • default: applied when the caller did not pass the option.
  • alias: single-character short name ("p" for -p).
- coerce(value, type): convert a raw command-line value to one of the types above.

Metadata (sanitized on construction)
- description: short help text; trimmed, non-empty when provided.
- required: bool.
- validate: callable returning True (pass), a string (failure message) or a
  falsy value (generic failure message).

Quick example:
    >>> from switchyard.arguments import Argument, Option
    >>> name = Argument("string", "who to greet", required=True)
    >>> times = Option("number", "how many times", default=1, alias="n")
"""
import math

from .faults import ValidationError
from .utils import *

ARGUMENT_TYPES = ("string", "number")
OPTION_TYPES = ("string", "boolean", "number", "array")


def _sanitize_metadata(cls, metadata, /, types):
    """
    Internal: normalize and validate metadata shared by Argument and Option.

    Raises
    - TypeError: on values of the wrong kind (non-string description, non-callable validate).
    - ValueError: on unknown types or empty descriptions.

    Notes
    - This function mutates the provided metadata dict in place.
    """
    if not isinstance(type := metadata["type"], str):
        raise TypeError(f"{cls.__typename__} 'type' must be a string")
    elif type not in types:
        raise ValueError(f"{cls.__typename__} 'type' must be one of {', '.join(map(repr, types))}")

    if not isinstance(description := metadata["description"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'description' must be a string")
    elif isinstance(description, str) and not (description := description.strip()):
        raise ValueError(f"{cls.__typename__} 'description' cannot be empty")
    metadata["description"] = coalesce(description, "")

    metadata["required"] = bool(metadata["required"])

    if not (metadata["validate"] is Unset or callable(metadata["validate"])):
        raise TypeError(f"{cls.__typename__} 'validate' must be callable")
    metadata["validate"] = coalesce(metadata["validate"])


class Argument(metaclass=SpecType):
    """
    Positional argument specification.
    """
    __introspectable__ = (
        "type",
        "description",
        "required",
        "validate",
    )

    def __init__(self, type="string", /, description=Unset, *, required=False, validate=Unset):
        metadata = {
            "type": type,
            "description": description,
            "required": required,
            "validate": validate,
        }
        _sanitize_metadata(Argument, metadata, ARGUMENT_TYPES)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)


class Option(metaclass=SpecType):
    """
    Named option specification.

    `default` is applied by option validation when the caller did not pass the
    option; `alias` is the single-character short form (-x).
    """
    __introspectable__ = (
        "type",
        "description",
        "default",
        "required",
        "alias",
        "validate",
    )

    def __init__(
            self,
            type="string",
            /,
            description=Unset,
            *,
            default=Unset,
            required=False,
            alias=Unset,
            validate=Unset
    ):
        metadata = {
            "type": type,
            "description": description,
            "required": required,
            "validate": validate,
        }
        _sanitize_metadata(Option, metadata, OPTION_TYPES)

        if not isinstance(alias, str | Unset):
            raise TypeError(f"{Option.__typename__} 'alias' must be a string")
        elif isinstance(alias, str) and len(alias := alias.lstrip("-")) != 1:
            raise ValueError(f"{Option.__typename__} 'alias' must be a single character")

        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        self._alias = coalesce(alias)
        self._default = default

    @property
    def defaulted(self):
        """
        Whether a default was declared (None is a valid default).
        """
        return self._default is not Unset


def _number(value, /):
    if isinstance(value, bool):
        raise ValueError(f"cannot coerce {value!r} to number")
    if isinstance(value, int | float):
        number = value
    else:
        try:
            number = int(value)
        except (TypeError, ValueError):
            number = float(value)
    if math.isnan(number):
        raise ValueError(f"cannot coerce {value!r} to number")
    return number


def coerce(value, type, /):
    """
    Convert a raw value to a declared argument/option type.

    Rules
    - "string": str(value).
    - "number": int when the text is integral, float otherwise; NaN is rejected.
    - "boolean": True/False pass through, "true"/"1" → True, "false"/"0" → False.
    - "array": lists pass through, strings split on commas (items trimmed),
      anything else becomes a one-item list.

    Raises
    - ValidationError: when the value cannot be represented as the type.
    """
    match type:
        case "string":
            return str(value)
        case "number":
            try:
                return _number(value)
            except (TypeError, ValueError):
                raise ValidationError(f"Cannot coerce {value!r} to number") from None
        case "boolean":
            if value is True or value is False:
                return value
            if isinstance(value, str) and value.strip().lower() in ("true", "1"):
                return True
            if isinstance(value, str) and value.strip().lower() in ("false", "0"):
                return False
            raise ValidationError(f"Cannot coerce {value!r} to boolean")
        case "array":
            if isinstance(value, list | tuple):
                return list(value)
            if isinstance(value, str):
                return [item.strip() for item in value.split(",")]
            return [value]
        case _:
            raise ValidationError(f"Unknown coercion type: {type!r}")


__all__ = (
    "Argument",
    "Option",
    "coerce",
)
