"""
The closed set of options a session can be configured with, and the typed values they take.
"""
import datetime
import numbers
from enum import Enum

from hublink.errors import InvalidArgumentError

_millisecond = datetime.timedelta(milliseconds=1)
_second = datetime.timedelta(seconds=1)


def duration_millis(value, name='value'):
    """
    Converts a duration to a positive number of milliseconds.
    >>> duration_millis(250)
    250
    >>> duration_millis(datetime.timedelta(seconds=2))
    2000
    """
    if isinstance(value, datetime.timedelta):
        if value % _millisecond:
            raise InvalidArgumentError("%s is finer than a millisecond = %r" % (name, value))
        millis = value // _millisecond
    elif isinstance(value, numbers.Integral) and not isinstance(value, bool):
        millis = int(value)
    else:
        raise InvalidArgumentError("%s is not a duration = %r" % (name, value))
    if millis <= 0:
        raise InvalidArgumentError("%s must be positive = %r" % (name, value))
    return millis


def duration_secs(value, name='value'):
    """
    Converts a duration to a positive whole number of seconds.
    >>> duration_secs(datetime.timedelta(minutes=1))
    60
    """
    if isinstance(value, datetime.timedelta):
        if value % _second:
            raise InvalidArgumentError("%s is not a whole number of seconds = %r" % (name, value))
        value = value // _second
    elif not isinstance(value, numbers.Integral) or isinstance(value, bool):
        raise InvalidArgumentError("%s is not a number of seconds = %r" % (name, value))
    if value <= 0:
        raise InvalidArgumentError("%s must be positive = %r" % (name, value))
    return int(value)


def path(value, name='value'):
    if not isinstance(value, str) or not value:
        raise InvalidArgumentError("%s is not a path = %r" % (name, value))
    return value


class Option(Enum):
    """
    Options accepted by Session.configure().
    The value of each member is the option name callers may pass instead of the member.
    """
    MINIMUM_POLLING_INTERVAL = 'MinimumPollingInterval'
    SEND_INTERVAL = 'SendInterval'
    CERTIFICATE_PATH = 'CertificatePath'
    TOKEN_VALIDITY_SECONDS = 'TokenValiditySeconds'

    @classmethod
    def parse(cls, option):
        if isinstance(option, Option):
            return option
        try:
            return cls(option)
        except ValueError:
            raise InvalidArgumentError("optionName is unknown = %s" % (option,)) from None

    def coerce(self, value):
        """ Converts a value to the type this option takes, raising InvalidArgumentError if it cannot. """
        if value is None:
            raise InvalidArgumentError("value for %s is None" % self.value)
        return _coercions[self](value, self.value)


_coercions = {
    Option.MINIMUM_POLLING_INTERVAL: duration_millis,
    Option.SEND_INTERVAL: duration_millis,
    Option.CERTIFICATE_PATH: path,
    Option.TOKEN_VALIDITY_SECONDS: duration_secs,
}
