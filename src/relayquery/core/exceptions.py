"""relayquery exception hierarchy.

Exception hierarchy:

```text
RelayQueryError (base -- never raised directly)
├── ConfigurationError      -- config validation, bad YAML
├── InvalidInputError       -- rejected query input (also a ValueError)
└── ConnectivityError       -- relay unreachable, transport failures
    └── RelayTimeoutError   -- connection timed out
```

Validation errors are raised synchronously before any network activity.
Connectivity errors never escape a query: they are contained in the relay
session and surface only as ``failed`` progress events.

See Also:
    [relayquery.services.query.filters][relayquery.services.query.filters]:
        Raises [InvalidInputError][relayquery.core.exceptions.InvalidInputError].
    [RelaySession][relayquery.services.query.session.RelaySession]: Classifies
        transport failures with
        [ConnectivityError][relayquery.core.exceptions.ConnectivityError].
"""

from __future__ import annotations


class RelayQueryError(Exception):
    """Base exception for all relayquery errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(RelayQueryError):
    """Invalid or missing configuration (YAML, CLI flags).

    See Also:
        [load_yaml()][relayquery.core.yaml.load_yaml]: YAML loading function
            that may trigger configuration errors.
    """


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class InvalidInputError(RelayQueryError, ValueError):
    """A query input was rejected.

    The message is a human-readable reason suitable for showing to the
    person who typed the input. The underlying codec or model error, if any,
    is chained as ``__cause__``.
    """


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(RelayQueryError):
    """Base for all relay/network connectivity errors.

    See Also:
        [RelayTimeoutError][relayquery.core.exceptions.RelayTimeoutError]:
            Connection timed out.
    """


class RelayTimeoutError(ConnectivityError):
    """Connection to a relay timed out."""
