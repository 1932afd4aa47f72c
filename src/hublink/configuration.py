import logging
import platform
import threading

from hublink import defaults
from hublink.auth.credentials import Credential
from hublink.errors import InvalidArgumentError
from hublink.message import MessageType
from hublink.options import duration_millis
from hublink.support.mixins import CommonEqualityMixin, StringerMixin
from hublink.support.retry_strategy import ExponentialBackoffRetryStrategy, RetryStrategy
from hublink.transport.base import Protocol

logger = logging.getLogger(__name__)

library_version = '0.1.0'


def _require_text(value, name):
    if not isinstance(value, str) or not value:
        raise InvalidArgumentError("%s cannot be null or empty" % name)


class Identity(CommonEqualityMixin, StringerMixin):
    """
    Who the session connects as, and where to.
    :param hostname: the hub endpoint.
    :param device_id: the device the session acts for.
    :param module_id: the module within the device, for module-scoped sessions.
    :param gateway_hostname: an edge gateway to connect through instead of the hub.
    """

    def __init__(self, hostname, device_id, module_id=None, gateway_hostname=None):
        _require_text(hostname, 'hostname')
        _require_text(device_id, 'device_id')
        if module_id is not None:
            _require_text(module_id, 'module_id')
        self.hostname = hostname
        self.device_id = device_id
        self.module_id = module_id
        self.gateway_hostname = gateway_hostname

    @property
    def is_module(self):
        return self.module_id is not None

    @property
    def user_id(self):
        """ the user id stamped on messages sent by this identity """
        return self.device_id if not self.is_module else self.device_id + '/' + self.module_id


class ProductInfo:
    """ Describes the client software to the hub. Callers can append their own product identifier. """
    product = 'hublink-device-py'

    def __init__(self, extra=''):
        self.extra = extra

    @property
    def user_agent(self):
        agent = '%s/%s (python %s; %s)' % (self.product, library_version, platform.python_version(),
                                           platform.system())
        return agent + ' ' + self.extra if self.extra else agent


def default_retry_policy():
    return ExponentialBackoffRetryStrategy(defaults.retry_initial_secs, defaults.retry_maximum_secs)


class Configuration:
    """
    Settings for a session. The identity, credential and protocol are fixed at construction;
    the retry policy, operation timeout and callbacks may change at any time from any thread.

    Features and the transport hold a reference to the session's configuration, so changes made
    here are seen by all of them.

    The configuration also routes inbound messages: telemetry to the message callback,
    feature traffic to the handler the feature registered for its message type.
    """

    def __init__(self, identity: Identity, credential: Credential, protocol: Protocol, product_info=None):
        if identity is None:
            raise InvalidArgumentError("identity cannot be null")
        if not isinstance(credential, Credential):
            raise InvalidArgumentError("credential cannot be null")
        if not isinstance(protocol, Protocol):
            raise InvalidArgumentError("protocol cannot be null")
        self._identity = identity
        self._credential = credential
        self._protocol = protocol
        self._product_info = product_info or ProductInfo()
        self._lock = threading.RLock()
        self._retry_policy = default_retry_policy()
        self._operation_timeout = defaults.operation_timeout_millis
        self._message_callback = None
        self._message_callback_context = None
        self._handlers = {}

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def credential(self) -> Credential:
        return self._credential

    @property
    def auth_mode(self):
        return self._credential.auth_mode

    @property
    def protocol(self) -> Protocol:
        return self._protocol

    @property
    def product_info(self) -> ProductInfo:
        return self._product_info

    @property
    def retry_policy(self) -> RetryStrategy:
        with self._lock:
            return self._retry_policy

    @retry_policy.setter
    def retry_policy(self, policy: RetryStrategy):
        if policy is None:
            raise InvalidArgumentError("retry policy cannot be null")
        with self._lock:
            self._retry_policy = policy

    @property
    def operation_timeout(self):
        """ how long, in milliseconds, the transport may take to complete an operation """
        with self._lock:
            return self._operation_timeout

    @operation_timeout.setter
    def operation_timeout(self, millis):
        millis = duration_millis(millis, 'operation timeout')
        with self._lock:
            self._operation_timeout = millis

    def set_message_callback(self, callback, context=None):
        if callback is None and context is not None:
            raise InvalidArgumentError("Cannot give non-null context for a null callback.")
        with self._lock:
            self._message_callback = callback
            self._message_callback_context = context

    @property
    def message_callback(self):
        with self._lock:
            return self._message_callback, self._message_callback_context

    def register_handler(self, message_type: MessageType, handler):
        """ Routes inbound messages of the given type to handler(message). """
        with self._lock:
            self._handlers[message_type] = handler

    def unregister_handler(self, message_type: MessageType, handler):
        """ Removes the handler for the message type, if it is still the one registered. """
        with self._lock:
            if self._handlers.get(message_type) == handler:
                del self._handlers[message_type]

    def dispatch(self, message):
        """
        Routes an inbound message.
        :return: what the callback or handler returned, or None if nothing is registered for the message.
        """
        with self._lock:
            if message.message_type is MessageType.TELEMETRY:
                callback, context = self._message_callback, self._message_callback_context
                handler = (lambda m: callback(m, context)) if callback else None
            else:
                handler = self._handlers.get(message.message_type)
        if handler is None:
            logger.debug("no handler for inbound %s message %s", message.message_type.value, message.message_id)
            return None
        return handler(message)
