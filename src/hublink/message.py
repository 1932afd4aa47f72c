"""
Messages exchanged with the hub over a transport channel.
"""
import uuid
from enum import Enum

from hublink.support.mixins import StringerMixin


class MessageType(Enum):
    TELEMETRY = 'telemetry'
    TWIN = 'twin'
    METHOD = 'method'
    FILE_UPLOAD = 'file_upload'


class Operation(Enum):
    """ What a feature message asks of the hub, or what an inbound feature message carries. """
    TWIN_GET_REQUEST = 'twin_get_request'
    TWIN_GET_RESPONSE = 'twin_get_response'
    TWIN_UPDATE_REPORTED = 'twin_update_reported'
    TWIN_SUBSCRIBE_DESIRED = 'twin_subscribe_desired'
    TWIN_DESIRED_NOTIFICATION = 'twin_desired_notification'
    METHOD_SUBSCRIBE = 'method_subscribe'
    METHOD_REQUEST = 'method_request'
    METHOD_RESPONSE = 'method_response'
    BLOB_UPLOAD = 'blob_upload'


class StatusCode(Enum):
    """ The outcome reported to completion callbacks. """
    OK = 200
    OK_EMPTY = 204
    BAD_FORMAT = 400
    UNAUTHORIZED = 401
    NOT_FOUND = 404
    THROTTLED = 429
    ERROR = 500
    SERVER_BUSY = 503
    MESSAGE_EXPIRED = 'message_expired'
    MESSAGE_CANCELLED_ONCLOSE = 'message_cancelled_onclose'

    @property
    def success(self):
        return self in (StatusCode.OK, StatusCode.OK_EMPTY)


def _to_bytes(body):
    if body is None:
        return b''
    if isinstance(body, str):
        return body.encode('utf-8')
    return bytes(body)


class Message(StringerMixin):
    """
    A message sent to or received from the hub.

    :param body: the payload. Strings are encoded as utf-8.
    :param message_type: the kind of traffic this message carries.
    :param operation: for feature traffic, the feature operation.
    :param properties: application properties as a mapping of strings.
    """

    def __init__(self, body=None, message_type=MessageType.TELEMETRY, operation=None, properties=None):
        self.body = _to_bytes(body)
        self.message_type = message_type
        self.operation = operation
        self.properties = dict(properties or {})
        self.message_id = str(uuid.uuid4())
        self.correlation_id = None
        self.output_name = None
        self.input_name = None
        self.user_id = None
        self.connection_device_id = None
        self.connection_module_id = None

    @property
    def body_text(self):
        return self.body.decode('utf-8')
