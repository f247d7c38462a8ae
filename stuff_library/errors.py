"""Error kinds shared by the lending services.

NotFoundError and InvalidOperationError also derive from ValueError: the
services signal user-facing problems with ValueError and the controllers
turn those into 4xx responses.
"""


class LendingError(Exception):
    pass


class NotFoundError(LendingError, ValueError):
    pass


class InvalidOperationError(LendingError, ValueError):
    pass


class ConfigurationMissingError(LendingError):
    """A required provider credential is not configured."""


class TransientDependencyError(LendingError):
    """An external provider (mail, SMS) call failed."""


class NotificationError(LendingError):
    pass
