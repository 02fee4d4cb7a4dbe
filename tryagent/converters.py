"""
Value converters, validators, and default factories for tryagent descriptors.

Converters take the raw token (always a str) and return a typed value or raise
ValueError/TypeError; the parser turns those into TypeMismatchError faults.

- str        → string values (the builtin is used directly)
- boolean    → True/False from the literals "true"/"false" (case-insensitive)
- directory  → pathlib.Path (not resolved, so the value keeps the user's spelling)
- uri        → urllib.parse.SplitResult, absolute URIs only (a scheme is required)

Validation
- exists(value, type): True when the value names an existing filesystem entry;
  values converted with directory() must name a directory.

Default factories (evaluated at parse time, never at declaration time)
- current_directory(): the process working directory as a Path.
- machine_name(): the local machine's network name.
"""
import os
import platform
import socket
from pathlib import Path
from urllib.parse import urlsplit


def boolean(value, /):
    """
    Convert a boolean literal. Only "true" and "false" are accepted (any casing).
    """
    if isinstance(value, bool):
        return value
    if not isinstance(value, str):
        raise TypeError("boolean() argument must be a string")
    match value.strip().lower():
        case "true":
            return True
        case "false":
            return False
    raise ValueError("expected 'true' or 'false', got %r" % value)


def directory(value, /):
    """
    Convert a token into a directory path.
    """
    if isinstance(value, Path):
        return value
    if not isinstance(value, str):
        raise TypeError("directory() argument must be a string")
    if not value.strip():
        raise ValueError("directory path cannot be empty")
    return Path(value)


def uri(value, /):
    """
    Convert a token into an absolute URI.

    The token must carry a scheme and either a network location or a path
    (e.g. "https://example.org/readme.md", "file:///tmp/readme.md").
    """
    if not isinstance(value, str):
        raise TypeError("uri() argument must be a string")
    result = urlsplit(value.strip())  # may raise ValueError on malformed netlocs
    if not result.scheme:
        raise ValueError("uri %r has no scheme" % value)
    if not (result.netloc or result.path):
        raise ValueError("uri %r has neither a host nor a path" % value)
    return result


def exists(value, type=None, /):
    """
    Tell whether value names an existing filesystem entry.

    The check follows the converter the value came from: directory values must
    name a directory, anything else only has to exist.
    """
    path = os.fspath(value)
    if type is directory:
        return os.path.isdir(path)
    return os.path.exists(path)


def current_directory():
    return Path(os.getcwd())


def machine_name():
    return socket.gethostname() or platform.node()


# Friendlier labels in fault hints (“use a valid directory”).
boolean.__typename__ = "boolean"
directory.__typename__ = "directory"
uri.__typename__ = "uri"


__all__ = (
    "boolean",
    "directory",
    "uri",
    "exists",
    "current_directory",
    "machine_name",
)
