"""Reading configuration values from the environment."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping

from kilt.translate import TranslationTable

_TRUE_WORDS = frozenset({"YES", "yes", "ON", "on", "1"})
_C_SPACE = " \t\n\v\f\r"

_INT_RE = re.compile(r"[+-]?[0-9]+")
_HEX_FLOAT_RE = re.compile(
    r"[+-]?0[xX](?:[0-9a-fA-F]+\.?[0-9a-fA-F]*|\.[0-9a-fA-F]+)(?:[pP][+-]?[0-9]+)?"
)
_DEC_FLOAT_RE = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)


class ConfigError(LookupError):
    """A required configuration value is missing."""


def parse_bool(value: str) -> bool:
    """Return True for YES, yes, ON, on or 1."""
    return value in _TRUE_WORDS


def atoi(text: str) -> int:
    """Parse a leading integer the way C ``atoi`` does; 0 if there is none."""
    match = _INT_RE.match(text.lstrip(_C_SPACE))
    return int(match.group()) if match else 0


def atof(text: str) -> float:
    """Parse a leading floating-point number the way C ``atof`` does; 0.0 if none."""
    stripped = text.lstrip(_C_SPACE)
    match = _HEX_FLOAT_RE.match(stripped)
    if match:
        token = match.group()
        sign = -1.0 if token.startswith("-") else 1.0
        body = token.lstrip("+-")
        if "p" not in body.lower():
            body += "p0"
        return sign * float.fromhex(body)
    match = _DEC_FLOAT_RE.match(stripped)
    return float(match.group()) if match else 0.0


def alter_str(value: str | None, default: str) -> str:
    """Return ``value`` if it is set, otherwise ``default``."""
    return value if value is not None else default


def alter_int(value: str | None, default: int | str) -> int:
    """Return ``value`` parsed as an integer, or ``default`` if it is unset."""
    if value is not None:
        return atoi(value)
    return atoi(default) if isinstance(default, str) else default


def alter_float(value: str | None, default: float | str) -> float:
    """Return ``value`` parsed as a float, or ``default`` if it is unset."""
    if value is not None:
        return atof(value)
    return atof(default) if isinstance(default, str) else float(default)


class EnvConfig:
    """Looks up configuration keys in an environment through a translation table."""

    def __init__(
        self,
        table: TranslationTable | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._table = table
        self._environ = os.environ if environ is None else environ

    def get_raw(self, name: str) -> str | None:
        """Return the raw value for ``name``, or None if it is not set."""
        variable = self._table.translate(name) if self._table is not None else name
        if not variable:
            return None
        return self._environ.get(variable)

    def _required(self, name: str) -> str:
        value = self.get_raw(name)
        if value is None:
            raise ConfigError(f"Required environment variable {name} is not set")
        return value

    def get_str(self, name: str) -> str:
        """Return a mandatory string value."""
        return self._required(name)

    def get_opt_str(self, name: str, default: str) -> str:
        """Return a string value, or ``default`` if it is not set."""
        value = self.get_raw(name)
        return default if value is None else value

    def get_opt_bool(self, name: str, default: bool) -> bool:
        """Return a boolean value, or ``default`` if it is not set."""
        value = self.get_raw(name)
        return default if value is None else parse_bool(value)

    def get_int(self, name: str) -> int:
        """Return a mandatory integer value."""
        return atoi(self._required(name))

    def get_float(self, name: str) -> float:
        """Return a mandatory float value."""
        return atof(self._required(name))

    def get_bool(self, name: str) -> bool:
        """Return a boolean value; an unset value counts as false."""
        value = self.get_raw(name)
        return value is not None and parse_bool(value)