"""
A session is the lifecycle of one logical connection to the hub.

The session owns its configuration, drives the transport channel through open and close,
gates configuration changes by connection state and starts the twin, method and file upload
features, each at most once.
"""
import logging
import threading
import time
from enum import Enum, Flag

from hublink import defaults
from hublink.auth.credentials import AuthMode
from hublink.errors import FatalTransportError, InvalidArgumentError, InvalidStateError, \
    UnsupportedOperationError
from hublink.features import FeatureCoordinator
from hublink.options import Option, duration_secs
from hublink.renewal import TokenRenewalPolicy
from hublink.support.retry_strategy import ExponentialBackoffRetryStrategy
from hublink.transport.base import Protocol
from hublink.transport.memory import InMemoryTransport

logger = logging.getLogger(__name__)


class SessionState(Enum):
    CREATED = 'created'
    OPEN = 'open'
    CLOSED = 'closed'


class Capability(Flag):
    """ What a session allows its caller to do. Chosen when the session is constructed. """
    TWIN = 1
    METHOD = 2
    FILE_UPLOAD = 4
    MESSAGE_CALLBACK = 8
    OUTPUT_ROUTING = 16

    DEVICE = TWIN | METHOD | FILE_UPLOAD | MESSAGE_CALLBACK
    MODULE = TWIN | METHOD | OUTPUT_ROUTING


module_protocols = (Protocol.MQTT, Protocol.MQTT_WS, Protocol.AMQPS, Protocol.AMQPS_WS)


class Session:
    """
    Manages the connection cycle of one identity to the hub.

    A session starts CREATED, becomes OPEN with open() and CLOSED with close() or force_close().
    A closed session may be opened again; features started before the close stay started.

    Send completions, inbound messages and connection status changes are delivered on the
    transport's background thread. Those callbacks may send events, but must not open, close or
    configure the session, since a channel restart waits for that thread. A restart runs outside the
    session lock, so a callback that sends during a restart is not blocked by it.

    :param configuration: the session settings. The session owns it from here on.
    :param transport_factory: called with the configuration to create the transport channel.
    :param capabilities: the operations this session allows.
    """

    def __init__(self, configuration, transport_factory=InMemoryTransport, capabilities=Capability.DEVICE,
                 clock=time.monotonic):
        if configuration is None:
            raise InvalidArgumentError("configuration cannot be null")
        self._configuration = configuration
        self._transport = transport_factory(configuration)
        self._features = FeatureCoordinator(configuration, self._transport)
        self._renewal = TokenRenewalPolicy(configuration, self._transport)
        self._capabilities = capabilities
        self._clock = clock
        self._lock = threading.RLock()
        # serializes channel transitions; never taken on the transport thread
        self._restart_lock = threading.Lock()
        self._state = SessionState.CREATED
        self._option_handlers = {
            Option.MINIMUM_POLLING_INTERVAL: self._set_minimum_polling_interval,
            Option.SEND_INTERVAL: self._set_send_interval,
            Option.CERTIFICATE_PATH: self._set_certificate_path,
            Option.TOKEN_VALIDITY_SECONDS: self._set_token_validity,
        }

    @classmethod
    def for_module(cls, configuration, transport_factory=InMemoryTransport, **kwargs):
        """
        Creates a session for a module within a device. Module sessions send events to named outputs,
        and cannot upload files or receive messages on the default input.
        """
        if configuration is None:
            raise InvalidArgumentError("configuration cannot be null")
        if not configuration.identity.is_module:
            raise InvalidArgumentError("module sessions require a module id")
        if configuration.protocol not in module_protocols:
            raise UnsupportedOperationError("Only MQTT, MQTT_WS, AMQPS and AMQPS_WS are supported for modules.")
        return cls(configuration, transport_factory, Capability.MODULE, **kwargs)

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def capabilities(self) -> Capability:
        return self._capabilities

    @property
    def configuration(self):
        return self._configuration

    @property
    def transport(self):
        return self._transport

    @property
    def features(self) -> FeatureCoordinator:
        return self._features

    @property
    def product_info(self):
        return self._configuration.product_info

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # lifecycle

    def open(self):
        """
        Opens the session. If the session is already open, this method returns silently.
        :raises SecurityExpiredError: if the token credential has expired. The channel is not touched.
        :raises TransportError: if the channel cannot be opened.
        """
        with self._restart_lock, self._lock:
            if self._state is SessionState.OPEN and self._transport.is_open:
                logger.debug("session %s already open", self._user_id)
                return
            self._renewal.check_before_open()
            self._transport.open()
            self._state = SessionState.OPEN
        logger.info("session %s opened over %s", self._user_id, self._configuration.protocol.value)

    def close(self, timeout=None):
        """
        Waits for pending sends to complete, then closes the channel.
        :param timeout: how long to wait for pending sends, in seconds. Defaults to defaults.close_timeout_secs.
        :raises FatalTransportError: if sends are still pending after the timeout. The channel stays open.
        """
        self._drain(defaults.close_timeout_secs if timeout is None else timeout)
        with self._restart_lock:
            self._transport.close()
            with self._lock:
                self._state = SessionState.CLOSED
        logger.info("session %s closed", self._user_id)

    def force_close(self):
        """ Closes the channel without waiting for pending sends, and cancels pending uploads. """
        self._features.close_file_upload()
        with self._restart_lock:
            self._transport.close()
            with self._lock:
                self._state = SessionState.CLOSED
        logger.info("session %s closed immediately", self._user_id)

    def _drain(self, timeout):
        poll = ExponentialBackoffRetryStrategy(defaults.close_poll_initial_secs, defaults.close_poll_maximum_secs)
        deadline = self._clock() + timeout
        attempt = 0
        while not self._transport.is_empty:
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise FatalTransportError("pending sends did not complete within %s seconds" % timeout)
            time.sleep(min(poll(attempt), remaining))
            attempt += 1

    # messaging

    def send_event_async(self, message, callback=None, context=None, output_name=None):
        """
        Queues a message for sending. callback(status, context) is called when the send completes.
        :param output_name: for module sessions, the output the message is routed to.
        """
        if message is None:
            raise InvalidArgumentError("message cannot be null")
        if output_name is not None:
            if not self._capabilities & Capability.OUTPUT_ROUTING:
                raise UnsupportedOperationError("only module sessions can send to an output")
            if not output_name:
                raise InvalidArgumentError("outputName cannot be empty")
        identity = self._configuration.identity
        with self._lock:
            self._check_open()
            if identity.is_module:
                message.user_id = identity.user_id
                message.connection_device_id = identity.device_id
                message.connection_module_id = identity.module_id
                if output_name is not None:
                    message.output_name = output_name
            self._transport.send(message, callback, context, identity)

    def set_message_callback(self, callback, context=None):
        if not self._capabilities & Capability.MESSAGE_CALLBACK:
            raise UnsupportedOperationError("this session does not receive messages on the default input")
        self._configuration.set_message_callback(callback, context)

    def register_connection_status_callback(self, callback, context=None):
        if callback is None:
            raise InvalidArgumentError("Callback cannot be null")
        self._transport.register_connection_status_callback(callback, context)

    def set_retry_policy(self, policy):
        self._configuration.retry_policy = policy

    def set_operation_timeout(self, millis):
        self._configuration.operation_timeout = millis

    # options

    def configure(self, option, value):
        """
        Sets an option. option is an Option member or its name.
        :raises InvalidArgumentError: for an unknown option or a value of the wrong type.
        :raises InvalidStateError: when the option cannot change in the current state.
        :raises UnsupportedOperationError: when the option does not apply to the protocol.
        """
        option = Option.parse(option)
        if value is None:
            raise InvalidArgumentError("value is null")
        handler = self._option_handlers[option]
        if option is Option.TOKEN_VALIDITY_SECONDS:
            handler(option, value)      # takes the restart lock itself
        else:
            with self._lock:
                handler(option, value)
        logger.debug("option %s set to %r", option.value, value)

    def _set_minimum_polling_interval(self, option, value):
        self._check_channel_closed(option)
        if not self._configuration.protocol.polling:
            raise UnsupportedOperationError("%s is only supported for HTTPS, not %s"
                                            % (option.value, self._configuration.protocol.value))
        self._transport.set_receive_period(option.coerce(value))

    def _set_send_interval(self, option, value):
        self._transport.set_send_period(option.coerce(value))

    def _set_certificate_path(self, option, value):
        self._check_channel_closed(option)
        path = option.coerce(value)
        if self._configuration.auth_mode not in (AuthMode.TOKEN, AuthMode.CERTIFICATE):
            logger.debug("ignoring %s for %s authentication", option.value, self._configuration.auth_mode.value)
            return
        self._configuration.credential.trusted_cert_path = path

    def _set_token_validity(self, option, value):
        if self._configuration.auth_mode is not AuthMode.TOKEN:
            raise InvalidStateError("Cannot set sas token validity time when auth type is not SAS token")
        self._restart(option.coerce(value))

    def renew_credential_and_restart(self, validity_secs=None):
        """
        Renews the token credential, restarting the channel if it is open and the credential is key-derived.
        :param validity_secs: the new validity window. Defaults to the current one.
        :return: True if the channel was restarted.
        :raises FatalTransportError: if the channel could not be restarted.
        """
        if validity_secs is None:
            if self._configuration.auth_mode is not AuthMode.TOKEN:
                raise InvalidStateError("credential renewal requires a SAS token credential")
            validity_secs = self._configuration.credential.validity
        return self._restart(duration_secs(validity_secs, 'validity'))

    def _restart(self, validity_secs):
        """
        Runs the renewal holding only the restart lock. The session lock stays free, so callbacks on
        the transport thread can still send while the channel waits for that thread to stop.
        """
        with self._restart_lock:
            return self._renewal.renew_and_restart(validity_secs)

    # features

    def start_twin(self, status_callback, status_context, property_callback, property_context=None):
        self._check_capability(Capability.TWIN)
        with self._lock:
            self._check_open()
            return self._features.start_twin(status_callback, status_context, property_callback, property_context)

    def start_method(self, invocation_callback, invocation_context, status_callback, status_context=None):
        self._check_capability(Capability.METHOD)
        with self._lock:
            self._check_open()
            return self._features.start_method(invocation_callback, invocation_context, status_callback,
                                               status_context)

    def start_file_upload(self, status_callback, status_context=None):
        self._check_capability(Capability.FILE_UPLOAD)
        with self._lock:
            self._check_open()
            if self._configuration.auth_mode is AuthMode.CERTIFICATE:
                raise UnsupportedOperationError("File upload is not supported for X509 authentication")
            return self._features.start_file_upload(status_callback, status_context)

    def get_twin(self):
        self._twin().get_twin()

    def subscribe_to_desired_properties(self, subscriptions):
        self._twin().subscribe_desired_properties(subscriptions)

    def send_reported_properties(self, properties, version=None):
        self._twin().update_reported_properties(properties, version)

    def upload_to_blob_async(self, blob_name, stream, length, callback=None, context=None):
        with self._lock:
            self._check_open()
            upload = self._features.file_upload
            if upload is None:
                raise InvalidStateError("Start file upload before using it")
        return upload.upload_to_blob_async(blob_name, stream, length, callback, context)

    def _twin(self):
        with self._lock:
            self._check_open()
            twin = self._features.twin
        if twin is None:
            raise InvalidStateError("Start twin before using it")
        return twin

    # gating

    @property
    def _user_id(self):
        return self._configuration.identity.user_id

    def _check_open(self):
        if self._state is not SessionState.OPEN:
            raise InvalidStateError("the session is %s, open it first" % self._state.value)

    def _check_channel_closed(self, option):
        if self._transport.is_open:
            raise InvalidStateError("%s can only be set while the session is closed" % option.value)

    def _check_capability(self, capability):
        if not self._capabilities & capability:
            raise UnsupportedOperationError("%s is not supported by this session" % capability.name.lower())
