"""Branded value constructors.

Each constructor validates a raw primitive and returns it tagged with a
``NewType`` brand. Downstream code accepts only branded values and never
re-validates hosts, paths, ports or references.
"""

from __future__ import annotations

from typing import Literal, NewType

from topoforge.errors import InvalidValueError

FQDN = NewType("FQDN", str)
Host = NewType("Host", str)
UrlPath = NewType("UrlPath", str)
Port = NewType("Port", int)
SecretRefString = NewType("SecretRefString", str)
ConfigMapRefString = NewType("ConfigMapRefString", str)

SECRET_SCHEME = "secret://"
CONFIG_MAP_SCHEME = "configmap://"

RefScheme = Literal["secret", "configmap"]


def fqdn(value: str) -> FQDN:
    """Validate a fully-qualified domain name.

    Raises:
        InvalidValueError: If the value is empty or has no dot
    """
    if not isinstance(value, str) or "." not in value or value.strip() != value:
        raise InvalidValueError(f"Invalid FQDN: {value!r} (must contain a dot)")
    return FQDN(value)


def host(value: str) -> Host:
    """Validate an external hostname (same rule as an FQDN)."""
    if not isinstance(value, str) or "." not in value or value.strip() != value:
        raise InvalidValueError(f"Invalid host: {value!r} (must contain a dot)")
    return Host(value)


def url_path(value: str) -> UrlPath:
    """Validate a URL path.

    Raises:
        InvalidValueError: If the path does not start with '/'
    """
    if not isinstance(value, str) or not value.startswith("/"):
        raise InvalidValueError(f"Invalid path: {value!r} (must start with '/')")
    return UrlPath(value)


def port(value: int) -> Port:
    """Validate a TCP/UDP port number.

    Raises:
        InvalidValueError: If the value is not an integer in [1, 65535]
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidValueError(f"Invalid port: {value!r} (must be an integer)")
    if not 1 <= value <= 65535:
        raise InvalidValueError(f"Invalid port: {value} (must be 1-65535)")
    return Port(value)


def _check_ref_part(kind: str, part: str, value: str) -> None:
    if not part or "/" in part:
        raise InvalidValueError(f"Invalid {kind} {part!r} in reference {value!r}")


def secret_ref(name: str, key: str) -> SecretRefString:
    """Build the canonical ``secret://<name>/<key>`` reference string."""
    value = f"{SECRET_SCHEME}{name}/{key}"
    _check_ref_part("secret name", name, value)
    _check_ref_part("key", key, value)
    return SecretRefString(value)


def config_map_ref(name: str, key: str) -> ConfigMapRefString:
    """Build the canonical ``configmap://<name>/<key>`` reference string."""
    value = f"{CONFIG_MAP_SCHEME}{name}/{key}"
    _check_ref_part("config map name", name, value)
    _check_ref_part("key", key, value)
    return ConfigMapRefString(value)


def is_ref_string(value: object) -> bool:
    """Return True if the value looks like a secret or config map reference."""
    return isinstance(value, str) and (
        value.startswith(SECRET_SCHEME) or value.startswith(CONFIG_MAP_SCHEME)
    )


def parse_ref(value: str) -> tuple[RefScheme, str, str]:
    """Split a reference string into ``(scheme, name, key)``.

    Example:
        >>> parse_ref("secret://db/password")
        ('secret', 'db', 'password')
    """
    if value.startswith(SECRET_SCHEME):
        scheme: RefScheme = "secret"
        rest = value[len(SECRET_SCHEME) :]
    elif value.startswith(CONFIG_MAP_SCHEME):
        scheme = "configmap"
        rest = value[len(CONFIG_MAP_SCHEME) :]
    else:
        raise InvalidValueError(f"Not a reference: {value!r}")

    name, sep, key = rest.partition("/")
    if not sep:
        raise InvalidValueError(f"Reference {value!r} must have the form <name>/<key>")
    _check_ref_part("name", name, value)
    _check_ref_part("key", key, value)
    return scheme, name, key


def url(protocol: str, hostname: str, path: str = "/") -> str:
    """Build an external URL from a scheme, host and base path."""
    return f"{protocol}://{hostname}{url_path(path)}"
