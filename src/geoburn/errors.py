"""Exception types raised by the geoburn IO adapters.

Every error carries the ``stage`` that failed (``'read vector'``,
``'read raster'``, ``'create output'``, ``'set metadata'``, ``'write band'``)
so the command line can name it before exiting.
"""


class GeoburnError(RuntimeError):
    """Base class for failures that terminate a geoburn run."""

    def __init__(self, message: str, stage: str = 'run'):
        super().__init__(message)
        self.stage = stage

    def __str__(self):
        return f'{self.stage}: {self.args[0]}'


class InputAccessError(GeoburnError):
    """A grid or vector source is missing or unreadable."""


class DecodeError(GeoburnError):
    """A source was opened but its content could not be decoded."""


class OutputError(GeoburnError):
    """The output grid could not be created or its metadata set."""


class WriteError(GeoburnError):
    """Writing the burned buffer to the output band failed."""
