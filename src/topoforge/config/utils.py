"""Environment variable substitution for configuration files."""

import os
import re

# $${...} is an escape; ${NAME}, ${NAME:-default} and ${NAME:?message} are placeholders
_PLACEHOLDER = re.compile(r"\$(\$)?\{([A-Za-z_][A-Za-z0-9_]*)(?:(:-|:\?)([^}]*))?\}")


def substitute_env_vars(text: str) -> str:
    """Expand ``${VAR}`` placeholders in raw configuration text.

    ``${VAR:-default}`` falls back to ``default``; ``${VAR:?message}`` and
    plain ``${VAR}`` fail when the variable is unset. ``$${VAR}`` is left
    in the output as the literal ``${VAR}``, which is how secret values
    reference variables resolved later at deploy time.

    Raises:
        ValueError: If a required variable is unset
    """

    def expand(match: re.Match[str]) -> str:
        escaped, name, operator, argument = match.groups()
        if escaped:
            return match.group(0)[1:]

        value = os.environ.get(name)
        if value is not None:
            return value
        if operator == ":-":
            return argument
        if operator == ":?":
            raise ValueError(f"Required environment variable {name}: {argument}")
        raise ValueError(f"Required environment variable {name} not set")

    return _PLACEHOLDER.sub(expand, text)
