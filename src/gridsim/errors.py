from __future__ import annotations


class GridsimError(Exception):
    """Base class for engine errors."""


class InvalidPlayRequest(GridsimError):
    """The requested play type is not legal in the supplied situation.

    Recoverable: the caller should pick another play. The engine never
    substitutes a legal play on its own.
    """


class IllegalTransition(GridsimError):
    """An outcome does not match the state it is being applied to."""


class ConfigurationError(GridsimError):
    """Invalid game configuration or initial state; raised before any play."""
