"""Exceptions raised while preparing, staging and running applications."""


class SwitchbladeError(Exception):
    """Base class for every error the package raises."""


class NotFoundError(SwitchbladeError):
    """A container, network or other resource does not exist."""


class ForbiddenError(SwitchbladeError):
    """The requested operation is not allowed in the resource's current state."""