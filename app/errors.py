class DeployerError(Exception):
    """Base class for failures that abort a build pipeline."""


class GenerationError(DeployerError):
    """The text-generation call failed or returned nothing usable."""


class PublishError(DeployerError):
    """GitHub rejected a repository, Pages or content operation."""
