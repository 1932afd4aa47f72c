from hublink.support.mixins import CommonEqualityMixin, StringerMixin


class RetryStrategy:
    """
    Decides how long to wait before the next attempt of an operation.

    A strategy is called with the number of attempts already made (starting at 0) and returns
    the delay in seconds before trying again, or None when no further attempt should be made.
    Strategies hold no per-operation state so one instance can be shared between threads.
    """
    def __call__(self, attempt=0):
        return 0


class NoRetryStrategy(RetryStrategy, CommonEqualityMixin):
    """ Never retries. """

    def __call__(self, attempt=0):
        return None


class ExponentialBackoffRetryStrategy(RetryStrategy, CommonEqualityMixin, StringerMixin):

    def __init__(self, initial_delay, maximum_delay, factor=2, max_attempts=None):
        """
        :param initial_delay: The delay in seconds after the first attempt.
        :param maximum_delay: The upper bound on the delay between attempts.
        :param factor: How much the delay grows after each attempt.
        :param max_attempts: The number of attempts after which no retry is given, or None to retry forever.
        """
        if initial_delay < 0 or maximum_delay < initial_delay:
            raise ValueError("delays must satisfy 0 <= initial_delay <= maximum_delay")
        if factor < 1:
            raise ValueError("factor must be at least 1")
        self.initial_delay = initial_delay
        self.maximum_delay = maximum_delay
        self.factor = factor
        self.max_attempts = max_attempts

    def __call__(self, attempt=0):
        if self.max_attempts is not None and attempt >= self.max_attempts:
            return None
        return min(self.initial_delay * (self.factor ** attempt), self.maximum_delay)
