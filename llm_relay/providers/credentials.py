"""Credential lookup: config value, then caller env overrides, then os.environ."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence

EnvOverrides = Mapping[str, str]


def resolve_credential(
    config_value: str | None,
    env: EnvOverrides | None,
    override_names: Sequence[str],
    environ_names: Sequence[str],
) -> str | None:
    """Return the first non-empty credential, or None.

    Args:
        config_value: Explicit value from the provider config
        env: Environment overrides passed by the caller
        override_names: Keys to check in ``env``, in order
        environ_names: Process environment variables to check, in order
    """
    if config_value:
        return config_value

    for name in override_names:
        value = (env or {}).get(name)
        if value:
            return value

    for name in environ_names:
        value = os.getenv(name)
        if value:
            return value

    return None
