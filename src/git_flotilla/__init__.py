"""git-flotilla: keep a fleet of repository mirrors in sync, and search them all."""

# rich fails on import when the working directory has been deleted underneath us.
import os

try:
    os.getcwd()
except OSError:
    os.chdir(os.path.expanduser("~"))

from ._version import __version__
from .cache import Cache, fs_safe_component
from .cli import app
from .config import RepositorySpec, load_specs, parse_spec_line
from .core import (
    FleetManager,
    FleetSummary,
    GitOperations,
    MirrorRepository,
    RepositoryStatus,
    SidebandMessage,
    StatusKind,
    SyncResult,
    TransferProgress,
    Variance,
    VarianceKind,
    clone_or_fetch,
    ensure_mirror,
    get_status,
    infect,
)
from .errors import (
    AuthError,
    ConfigError,
    EmptyLocalDirError,
    FetchFailedError,
    FlotillaError,
    IdentityError,
    InvalidLocatorError,
    NetworkError,
    NotFoundError,
    SearchError,
    StoreError,
    VcsError,
)
from .formatters import OutputFormatter
from .identity import GithubOrgRepo, LocatorKind, RepoIdentity

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    # Models
    "FleetSummary",
    "GithubOrgRepo",
    "LocatorKind",
    "RepoIdentity",
    "RepositorySpec",
    "RepositoryStatus",
    "SidebandMessage",
    "StatusKind",
    "SyncResult",
    "TransferProgress",
    "Variance",
    "VarianceKind",
    # Operations
    "Cache",
    "FleetManager",
    "GitOperations",
    "MirrorRepository",
    "clone_or_fetch",
    "ensure_mirror",
    "get_status",
    "infect",
    # Functions
    "fs_safe_component",
    "load_specs",
    "parse_spec_line",
    # Errors
    "AuthError",
    "ConfigError",
    "EmptyLocalDirError",
    "FetchFailedError",
    "FlotillaError",
    "IdentityError",
    "InvalidLocatorError",
    "NetworkError",
    "NotFoundError",
    "SearchError",
    "StoreError",
    "VcsError",
    # Formatters
    "OutputFormatter",
]
