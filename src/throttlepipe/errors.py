"""Exception classes for the throttled pipe."""


class PipeError(Exception):
    """
    Base exception class for all pipe errors.

    Carries the process exit status the CLI should use.
    """
    exit_code = 9


class ParameterError(PipeError):
    """
    Raised when a command-line parameter cannot be used
    (unparseable rate, more than one input file).
    """
    pass


class SetupError(PipeError):
    """
    Raised when the input cannot be opened or stat'ed before the transfer starts.
    """
    pass


class InteractiveInputError(PipeError):
    """
    Raised when no file is given and standard input is a terminal.
    """
    exit_code = 1


class ReadError(PipeError):
    """
    Raised when reading the input fails mid-transfer. Never retried.
    """
    pass


class WriteError(PipeError):
    """
    Raised when the output rejects a write or flush (disk full, broken pipe).
    """
    pass


class PipeCancelled(PipeError):
    """
    Raised when a request reaches a component that has already shut down.
    """
    pass
