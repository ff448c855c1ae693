"""Login lookup for the credentialed connection provider.

tablepull never stores a database login.  The provider is configured with
the *names* of two secrets (``PIFSC_Logbook_user`` and ``PIFSC_Logbook_pwd``
by default) and looks both up on every ``open()``.

Lookup order for ``default_resolver``::

    EnvSecretBackend    NAME as given, NAME upper-cased, TABLEPULL_SECRET_NAME
    FileSecretBackend   <secrets_dir>/NAME  (only when secrets_dir is set)

Examples:
    >>> resolver = SecretsResolver([DictSecretBackend({"lb_user": "scott", "lb_pwd": "tiger"})])
    >>> login = resolver.login("lb_user", "lb_pwd")
    >>> login.username, str(login.password)
    ('scott', '[REDACTED]')
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, NamedTuple

from tablepull.core.errors import ConfigurationError


class MissingSecretError(ConfigurationError):
    """No backend knows the named secret."""

    def __init__(self, name: str, tried_backends: list[str] | None = None):
        self.tried_backends = tried_backends or []
        message = f"Secret not found: {name}"
        if self.tried_backends:
            message += f" (tried: {', '.join(self.tried_backends)})"
        super().__init__(message, key=name)


class SecretValue:
    """A string that renders as ``[REDACTED]`` in logs, reprs and f-strings."""

    __slots__ = ("_value",)

    def __init__(self, value: str):
        self._value = value

    def get_secret(self) -> str:
        return self._value

    def __str__(self) -> str:
        return "[REDACTED]"

    def __repr__(self) -> str:
        return "SecretValue('[REDACTED]')"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SecretValue) and self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __bool__(self) -> bool:
        return bool(self._value)


class Login(NamedTuple):
    username: str
    password: SecretValue


class SecretBackend(ABC):
    """One place a secret might live."""

    @abstractmethod
    def get(self, name: str) -> str | None:
        """The secret called ``name``, or ``None`` when this backend lacks it."""


class EnvSecretBackend(SecretBackend):
    """Environment variables: ``NAME``, then ``NAME`` upper-cased, then ``{prefix}NAME``."""

    def __init__(self, prefix: str = "TABLEPULL_SECRET_"):
        self.prefix = prefix

    def get(self, name: str) -> str | None:
        for variable in dict.fromkeys((name, name.upper(), f"{self.prefix}{name.upper()}")):
            value = os.environ.get(variable)
            if value is not None:
                return value
        return None


class FileSecretBackend(SecretBackend):
    """One file per secret under ``secrets_dir``, surrounding whitespace stripped.

    Files are re-read on every lookup so rotated passwords are picked up
    by the next connection.
    """

    def __init__(self, secrets_dir: str | Path = "/run/secrets"):
        self.secrets_dir = Path(secrets_dir)

    def get(self, name: str) -> str | None:
        path = self.secrets_dir / name
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8").strip()


class DictSecretBackend(SecretBackend):
    """In-memory secrets, for tests and embedding."""

    def __init__(self, secrets: dict[str, str] | None = None):
        self._secrets = dict(secrets or {})

    def get(self, name: str) -> str | None:
        return self._secrets.get(name)


_MISSING = object()


class SecretsResolver:
    """Tries each backend in order; the first hit wins."""

    def __init__(self, backends: list[SecretBackend] | None = None):
        self.backends: list[SecretBackend] = list(backends) if backends is not None else [EnvSecretBackend()]

    def resolve(self, name: str, default: Any = _MISSING) -> str | None:
        """Look ``name`` up.

        Raises:
            MissingSecretError: No backend has it and no ``default`` was given.
        """
        for backend in self.backends:
            value = backend.get(name)
            if value is not None:
                return value
        if default is not _MISSING:
            return default
        raise MissingSecretError(name, [type(b).__name__ for b in self.backends])

    def login(self, uid_secret: str, pwd_secret: str) -> Login:
        """Resolve a username/password pair stored under two secret names."""
        return Login(self.resolve(uid_secret), SecretValue(self.resolve(pwd_secret)))  # type: ignore[arg-type]


def default_resolver(secrets_dir: str | Path | None = None) -> SecretsResolver:
    backends: list[SecretBackend] = [EnvSecretBackend()]
    if secrets_dir is not None:
        backends.append(FileSecretBackend(secrets_dir))
    return SecretsResolver(backends)


__all__ = [
    "MissingSecretError",
    "SecretValue",
    "Login",
    "SecretBackend",
    "EnvSecretBackend",
    "FileSecretBackend",
    "DictSecretBackend",
    "SecretsResolver",
    "default_resolver",
]
