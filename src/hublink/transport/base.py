from abc import abstractmethod
from enum import Enum

from hublink import defaults


class TransportError(IOError):
    """ Indicates the transport could not open, close or send over the channel. """


class Protocol(Enum):
    HTTPS = 'https'
    AMQPS = 'amqps'
    AMQPS_WS = 'amqps_ws'
    MQTT = 'mqtt'
    MQTT_WS = 'mqtt_ws'

    @property
    def polling(self) -> bool:
        """ True if the protocol polls for inbound messages rather than holding a connection open. """
        return self is Protocol.HTTPS


class ConnectionStatus(Enum):
    CONNECTED = 'connected'
    DISCONNECTED = 'disconnected'
    DISCONNECTED_RETRYING = 'disconnected_retrying'


class ConnectionStatusReason(Enum):
    CONNECTION_OK = 'connection_ok'
    CLIENT_CLOSE = 'client_close'
    EXPIRED_SAS_TOKEN = 'expired_sas_token'
    COMMUNICATION_ERROR = 'communication_error'
    RETRY_EXPIRED = 'retry_expired'


def receive_period_millis(protocol: Protocol):
    """ The default period between receive checks for a protocol. """
    if protocol is Protocol.HTTPS:
        return defaults.receive_period_millis_https
    if protocol in (Protocol.AMQPS, Protocol.AMQPS_WS):
        return defaults.receive_period_millis_amqps
    if protocol in (Protocol.MQTT, Protocol.MQTT_WS):
        return defaults.receive_period_millis_mqtt
    raise ValueError("invalid protocol %s" % protocol)


class TransportChannel:
    """
    The single channel a session exchanges messages over.

    The channel runs its own background activity to send queued messages and receive inbound ones.
    Inbound messages are routed using the handlers registered on the session configuration.
    Connection status changes are reported to callbacks registered with
    register_connection_status_callback() as callback(status, reason, context).
    """

    @property
    @abstractmethod
    def protocol(self) -> Protocol:
        raise NotImplementedError

    @property
    @abstractmethod
    def is_open(self) -> bool:
        raise NotImplementedError

    @property
    @abstractmethod
    def is_empty(self) -> bool:
        """ True when no sends are pending. """
        raise NotImplementedError

    @abstractmethod
    def open(self):
        """
        Opens the channel. If the channel is already open, this method returns silently.
        Raises TransportError if the channel cannot be opened.
        """
        raise NotImplementedError

    @abstractmethod
    def close(self):
        """
        Closes the channel. Sends still pending are completed with MESSAGE_CANCELLED_ONCLOSE.
        Closing a closed channel does nothing.
        """
        raise NotImplementedError

    @abstractmethod
    def send(self, message, callback, context, identity):
        """
        Queues a message for sending.
        :param callback: called as callback(status, context) when the send completes, may be None.
        :param identity: the identity the message is sent on behalf of.
        """
        raise NotImplementedError

    @abstractmethod
    def set_send_period(self, millis):
        raise NotImplementedError

    @abstractmethod
    def set_receive_period(self, millis):
        raise NotImplementedError

    @abstractmethod
    def register_connection_status_callback(self, callback, context=None):
        raise NotImplementedError
