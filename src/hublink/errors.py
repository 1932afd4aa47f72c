"""
Errors raised by a session to its caller.

All are raised synchronously from the call that triggered them.
"""


class SessionError(Exception):
    """ Indicates an error condition with a session. """


class InvalidArgumentError(SessionError, ValueError):
    """ An argument was missing, malformed or of the wrong type. Retrying with the same argument will fail again. """


class InvalidStateError(SessionError):
    """ The operation is not allowed in the current lifecycle state of the session or its channel. """


class UnsupportedOperationError(SessionError):
    """ The operation is not meaningful for this identity or authentication mode,
        or the feature was already activated. """


class SecurityExpiredError(SessionError):
    """ The credential expired before the session was opened. Refresh the credential and try again. """


class FatalTransportError(SessionError):
    """
    The transport failed while the session was restarting or draining it.
    The session is left in an indeterminate state and is not retried internally.
    """


class EnvironmentConfigError(SessionError):
    """ The edge runtime environment does not describe a usable identity. """
