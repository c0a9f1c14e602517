class SearchClusterError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(SearchClusterError):
    """Stack configuration is missing or invalid."""


class PlanError(SearchClusterError):
    """The deployment plan references unknown steps or contains a cycle."""


class DiscoveryError(SearchClusterError):
    """The user pool has no app client to federate the identity pool with."""


class DirectiveError(SearchClusterError):
    """A security API call failed; earlier directives remain applied."""

    def __init__(self, index: int, path: str, cause: Exception):
        self.index = index
        self.path = path
        self.cause = cause
        super().__init__(f"directive #{index + 1} ({path}) failed: {cause}")
