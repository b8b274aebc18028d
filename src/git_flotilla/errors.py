"""Exception hierarchy for git-flotilla."""

from __future__ import annotations


class FlotillaError(Exception):
    """Base class for every error the fleet operations raise."""


class ConfigError(FlotillaError):
    """Malformed spec file or spec line."""


class IdentityError(FlotillaError):
    """A repository locator could not be turned into an identity."""


class InvalidLocatorError(IdentityError):
    """Locator is neither a URL nor an SCP-style remote string."""


class EmptyLocalDirError(IdentityError):
    """Locator does not yield a usable local directory name."""


class StoreError(FlotillaError):
    """Filesystem failure on the mirror store or cache."""


class VcsError(FlotillaError):
    """A git operation failed."""


class NotFoundError(VcsError):
    """The requested repository, remote, ref or config key does not exist.

    Callers treat this as an absence signal ("create it"), never as a failure.
    """


class AuthError(FlotillaError):
    """No usable credential (SSH agent key or API token)."""


class NetworkError(FlotillaError):
    """Transport failure talking to a remote."""


class FetchFailedError(NetworkError):
    """``git fetch`` failed for a reason other than authentication."""


class SearchError(FlotillaError):
    """Pattern compile failure or a fault while searching a blob."""


def with_context(error: FlotillaError, context: str) -> FlotillaError:
    """Same error class, message prefixed with what was being done."""
    return type(error)(f"{context}: {error}")
