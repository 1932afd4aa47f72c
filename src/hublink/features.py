"""
Feature subsystems that share the session's transport channel.

- TwinFeature keeps a view of the device twin and notifies desired property changes.
- MethodFeature dispatches remote method invocations and sends their responses.
- FileUploadFeature uploads streams as blobs on a worker pool.

Each feature is bound to the session Configuration and TransportChannel. It sends through the
channel on behalf of the configured identity, and receives by registering a handler for its message
type on the configuration. The FeatureCoordinator creates each feature at most once per session.
"""
import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from hublink import defaults
from hublink.errors import InvalidArgumentError, UnsupportedOperationError, InvalidStateError
from hublink.message import Message, MessageType, Operation, StatusCode

logger = logging.getLogger(__name__)

max_blob_name_length = 1024
max_blob_path_segments = 254


class Feature:
    """ base class for features, bound to the session's configuration and channel. """

    def __init__(self, configuration, transport):
        self.configuration = configuration
        self.transport = transport

    def _send(self, message, callback=None, context=None):
        self.transport.send(message, callback, context, self.configuration.identity)


def _notify(callback, context):
    """ adapts a (status, context) callback to a transport completion callback """
    if callback is None:
        return None
    return lambda status, ignored: callback(status, context)


class TwinFeature(Feature):
    """
    Synchronizes the device twin.

    The status callback is called as status_callback(status, context) each time a twin operation completes.
    Changed desired properties are passed to the subscription for that property, if any, otherwise
    to property_callback(name, value, context).
    """

    def __init__(self, configuration, transport, status_callback, status_context, property_callback,
                 property_context):
        super().__init__(configuration, transport)
        self._status_callback = status_callback
        self._status_context = status_context
        self._property_callback = property_callback
        self._property_context = property_context
        self._lock = threading.Lock()
        self._desired = {}
        self._reported = {}
        self._subscriptions = {}
        configuration.register_handler(MessageType.TWIN, self.on_message)

    @property
    def desired_properties(self):
        with self._lock:
            return dict(self._desired)

    @property
    def reported_properties(self):
        with self._lock:
            return dict(self._reported)

    def get_twin(self):
        """ requests the full twin. The response updates the local view and notifies the desired properties. """
        self._send(Message(message_type=MessageType.TWIN, operation=Operation.TWIN_GET_REQUEST),
                   _notify(self._status_callback, self._status_context))

    def subscribe_desired_properties(self, subscriptions):
        """
        :param subscriptions: maps a property name to a (callback, context) pair.
        """
        if not subscriptions:
            raise InvalidArgumentError("Desired property subscriptions cannot be null or empty.")
        with self._lock:
            self._subscriptions.update(subscriptions)
        self._send(Message(message_type=MessageType.TWIN, operation=Operation.TWIN_SUBSCRIBE_DESIRED),
                   _notify(self._status_callback, self._status_context))

    def update_reported_properties(self, properties, version=None):
        """
        :param properties: maps property names to their new values.
        :param version: the twin version the update is based on, or None to overwrite unconditionally.
        """
        if not properties:
            raise InvalidArgumentError("Reported properties set cannot be null or empty.")
        if version is not None and version < 0:
            raise InvalidArgumentError("Version cannot be negative.")
        message = Message(json.dumps(properties), MessageType.TWIN, Operation.TWIN_UPDATE_REPORTED)
        if version is not None:
            message.properties['version'] = str(version)
        with self._lock:
            self._reported.update(properties)
        self._send(message, _notify(self._status_callback, self._status_context))

    def on_message(self, message):
        try:
            document = json.loads(message.body_text) if message.body else {}
        except ValueError as e:
            logger.warning("discarding malformed twin message %s: %s", message.message_id, e)
            self._status_callback(StatusCode.BAD_FORMAT, self._status_context)
            return
        if message.operation is Operation.TWIN_GET_RESPONSE:
            changed = document.get('desired', {})
            with self._lock:
                self._desired = dict(changed)
                self._reported = dict(document.get('reported', {}))
        elif message.operation is Operation.TWIN_DESIRED_NOTIFICATION:
            changed = document
            with self._lock:
                self._desired.update(changed)
        else:
            logger.debug("ignoring twin message with operation %s", message.operation)
            return
        self._notify_desired(changed)

    def _notify_desired(self, changed):
        with self._lock:
            subscriptions = dict(self._subscriptions)
        for name, value in changed.items():
            if name.startswith('$'):
                continue    # metadata such as $version
            callback, context = subscriptions.get(name, (self._property_callback, self._property_context))
            callback(name, value, context)


class MethodFeature(Feature):
    """
    Handles remote method invocations.

    invocation_callback(method_name, payload, context) is called for each invocation and returns
    a (status, payload) pair that is sent back as the method response. The status callback is called
    as status_callback(status, context) when the subscription and each response complete.
    """

    def __init__(self, configuration, transport, invocation_callback, invocation_context, status_callback,
                 status_context):
        super().__init__(configuration, transport)
        self._invocation_callback = invocation_callback
        self._invocation_context = invocation_context
        self._status_callback = status_callback
        self._status_context = status_context
        configuration.register_handler(MessageType.METHOD, self.on_message)

    def subscribe(self):
        self._send(Message(message_type=MessageType.METHOD, operation=Operation.METHOD_SUBSCRIBE),
                   _notify(self._status_callback, self._status_context))

    def on_message(self, message):
        if message.operation is not Operation.METHOD_REQUEST:
            logger.debug("ignoring method message with operation %s", message.operation)
            return
        name = message.properties.get('method_name')
        try:
            payload = json.loads(message.body_text) if message.body else None
            status, result = self._invocation_callback(name, payload, self._invocation_context)
        except Exception as e:
            logger.exception("method %s failed: %s", name, e)
            status, result = StatusCode.ERROR.value, {'error': str(e)}
        response = Message(json.dumps(result), MessageType.METHOD, Operation.METHOD_RESPONSE,
                           {'status': str(status)})
        response.correlation_id = message.correlation_id
        self._send(response, _notify(self._status_callback, self._status_context))


def validate_blob_name(name):
    if not name:
        raise InvalidArgumentError("blob name cannot be null or empty")
    if len(name) > max_blob_name_length:
        raise InvalidArgumentError("blob name cannot be longer than %d characters" % max_blob_name_length)
    if len(name.split('/')) > max_blob_path_segments:
        raise InvalidArgumentError("blob name cannot have more than %d path segments" % max_blob_path_segments)


class FileUploadFeature(Feature):
    """
    Uploads streams as blobs. Each upload is read and sent on a worker thread; its outcome is reported
    to the callback given with the upload, or else to the status callback the feature was started with.
    """

    def __init__(self, configuration, transport, status_callback, status_context, workers=None):
        super().__init__(configuration, transport)
        self._status_callback = status_callback
        self._status_context = status_context
        self._executor = ThreadPoolExecutor(max_workers=workers or defaults.upload_workers,
                                            thread_name_prefix='hublink-upload')
        self._lock = threading.Lock()
        self._uploads = {}
        self._closed = False

    def upload_to_blob_async(self, blob_name, stream, length, callback=None, context=None):
        """
        Schedules an upload.
        :param stream: a binary file-like object to read length bytes from.
        :return: a Future that completes when the upload has been handed to the channel.
        """
        validate_blob_name(blob_name)
        if stream is None:
            raise InvalidArgumentError("The input stream cannot be null.")
        if length is None or length < 0:
            raise InvalidArgumentError("Invalid stream size.")
        if callback is None:
            callback, context = self._status_callback, self._status_context
        with self._lock:
            if self._closed:
                raise InvalidStateError("file upload has been closed")
            future = self._executor.submit(self._upload, blob_name, stream, length, callback, context)
            self._uploads[future] = (callback, context)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future):
        with self._lock:
            self._uploads.pop(future, None)

    def _upload(self, blob_name, stream, length, callback, context):
        data = stream.read(length)
        if len(data) != length:
            logger.warning("blob %s: expected %d bytes but the stream had %d", blob_name, length, len(data))
            callback(StatusCode.BAD_FORMAT, context)
            return
        message = Message(data, MessageType.FILE_UPLOAD, Operation.BLOB_UPLOAD, {'blob_name': blob_name})
        self._send(message, _notify(callback, context))
        logger.debug("blob %s queued, %d bytes", blob_name, length)

    def close_now(self):
        """ stops the worker pool. Uploads not yet started are cancelled and reported as such. """
        with self._lock:
            self._closed = True
            uploads = dict(self._uploads)
        for future, (callback, context) in uploads.items():
            if future.cancel():
                callback(StatusCode.MESSAGE_CANCELLED_ONCLOSE, context)
        self._executor.shutdown(wait=False)


class FeatureCoordinator:
    """
    Creates each feature at most once, bound to the session configuration and channel.
    A feature, once started, stays for the life of the session.
    """

    def __init__(self, configuration, transport):
        self.configuration = configuration
        self.transport = transport
        self._lock = threading.Lock()
        self._twin = None
        self._method = None
        self._file_upload = None

    @property
    def twin(self) -> TwinFeature:
        return self._twin

    @property
    def method(self) -> MethodFeature:
        return self._method

    @property
    def file_upload(self) -> FileUploadFeature:
        return self._file_upload

    def start_twin(self, status_callback, status_context, property_callback, property_context):
        if status_callback is None or property_callback is None:
            raise InvalidArgumentError("Callback cannot be null")
        with self._lock:
            if self._twin is not None:
                raise UnsupportedOperationError("You have already initialised twin")
            twin = TwinFeature(self.configuration, self.transport, status_callback, status_context,
                               property_callback, property_context)
            try:
                twin.get_twin()
            except Exception:
                self.configuration.unregister_handler(MessageType.TWIN, twin.on_message)
                raise
            self._twin = twin
        logger.info("twin started")
        return twin

    def start_method(self, invocation_callback, invocation_context, status_callback, status_context):
        if invocation_callback is None or status_callback is None:
            raise InvalidArgumentError("Callback cannot be null")
        with self._lock:
            if self._method is not None:
                raise UnsupportedOperationError("You have already initialised methods")
            method = MethodFeature(self.configuration, self.transport, invocation_callback, invocation_context,
                                   status_callback, status_context)
            try:
                method.subscribe()
            except Exception:
                self.configuration.unregister_handler(MessageType.METHOD, method.on_message)
                raise
            self._method = method
        logger.info("methods started")
        return method

    def start_file_upload(self, status_callback, status_context):
        if status_callback is None:
            raise InvalidArgumentError("Callback cannot be null")
        with self._lock:
            if self._file_upload is not None:
                raise UnsupportedOperationError("You have already initialised file upload")
            self._file_upload = FileUploadFeature(self.configuration, self.transport, status_callback,
                                                  status_context)
        logger.info("file upload started")
        return self._file_upload

    def close_file_upload(self):
        with self._lock:
            file_upload = self._file_upload
        if file_upload is not None:
            file_upload.close_now()
