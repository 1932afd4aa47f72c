"""
A transport channel that exchanges messages with code in the same process.

Useful for developing against a session without a hub, and for exercising the session's
lifecycle against a transport that really runs in the background.
"""
import logging
import threading
import time
from collections import deque

from hublink import defaults
from hublink.message import StatusCode
from hublink.support.async_loop import AsyncLoop
from hublink.support.events import EventSource
from hublink.transport.base import ConnectionStatus, ConnectionStatusReason, TransportChannel, TransportError, \
    receive_period_millis as default_receive_period

logger = logging.getLogger(__name__)


class PendingSend:
    """ A message waiting to be delivered, with the bookkeeping needed to retry and expire it. """

    def __init__(self, message, callback, context, identity, queued_at):
        self.message = message
        self.callback = callback
        self.context = context
        self.identity = identity
        self.queued_at = queued_at
        self.next_attempt = queued_at
        self.attempts = 0


class InMemoryTransport(TransportChannel):
    """
    Delivers sent messages to a function, and dispatches injected inbound messages
    through the session configuration.

    Sends are queued and delivered by a background loop every send period. A delivery that raises
    TransportError is retried as the configuration's retry policy directs, until the
    configuration's operation timeout has passed since the message was queued.

    :param configuration: the configuration of the session that owns this channel.
    :param deliver: called with (message, identity) for each send. When None, sent messages are
        appended to the delivered list.
    :param clock: monotonic time source in seconds.
    """

    def __init__(self, configuration, deliver=None, send_period_millis=None, receive_period_millis=None,
                 clock=time.monotonic, log=logger):
        self.configuration = configuration
        self.delivered = []
        self._deliver = deliver or (lambda message, identity: self.delivered.append(message))
        self._send_period = send_period_millis or defaults.send_period_millis
        self._receive_period = receive_period_millis or default_receive_period(configuration.protocol)
        self._clock = clock
        self.logger = log
        self._lock = threading.RLock()
        self._open = False
        self._pending = deque()
        self._inbound = deque()
        self._last_receive = None
        self._status_callbacks = EventSource()
        self._loop = AsyncLoop(self._pump, name='hublink-transport', log=log)

    @property
    def protocol(self):
        return self.configuration.protocol

    @property
    def is_open(self):
        with self._lock:
            return self._open

    @property
    def is_empty(self):
        with self._lock:
            return not self._pending

    @property
    def send_period(self):
        return self._send_period

    @property
    def receive_period(self):
        return self._receive_period

    def set_send_period(self, millis):
        self._send_period = millis

    def set_receive_period(self, millis):
        self._receive_period = millis

    def register_connection_status_callback(self, callback, context=None):
        self._status_callbacks.add(callback, context)

    def open(self):
        with self._lock:
            if self._open:
                return
            self._open = True
            self._last_receive = None
        self._loop.start()
        self.logger.info("transport opened for %s", self.configuration.identity.user_id)
        self._status_callbacks.fire(ConnectionStatus.CONNECTED, ConnectionStatusReason.CONNECTION_OK)

    def close(self):
        with self._lock:
            if not self._open:
                return
            self._open = False
            cancelled = list(self._pending)
            self._pending.clear()
        self._loop.stop()
        for pending in cancelled:
            self._notify(pending, StatusCode.MESSAGE_CANCELLED_ONCLOSE)
        self.logger.info("transport closed for %s, %d sends cancelled", self.configuration.identity.user_id,
                         len(cancelled))
        self._status_callbacks.fire(ConnectionStatus.DISCONNECTED, ConnectionStatusReason.CLIENT_CLOSE)

    def send(self, message, callback, context, identity):
        if message is None:
            raise ValueError("message cannot be null")
        with self._lock:
            if not self._open:
                raise TransportError("Cannot send from a closed channel")
            self._pending.append(PendingSend(message, callback, context, identity, self._clock()))

    def inject(self, message):
        """ Queues an inbound message, as if it arrived from the hub. """
        with self._lock:
            self._inbound.append(message)

    def _pump(self):
        """ one pass of the background loop """
        self._send_due()
        self._receive_due()
        self._loop.stop_event.wait(self._send_period / 1000.0)

    def _send_due(self):
        now = self._clock()
        with self._lock:
            due = [p for p in self._pending if p.next_attempt <= now]
        for pending in due:
            self._attempt(pending, now)

    def _attempt(self, pending, now):
        if (now - pending.queued_at) * 1000 > self.configuration.operation_timeout:
            self._complete(pending, StatusCode.MESSAGE_EXPIRED)
            return
        try:
            self._deliver(pending.message, pending.identity)
        except TransportError as e:
            delay = self.configuration.retry_policy(pending.attempts)
            pending.attempts += 1
            if delay is None:
                self.logger.warning("giving up on message %s after %d attempts: %s",
                                    pending.message.message_id, pending.attempts, e)
                self._complete(pending, StatusCode.ERROR)
            else:
                self.logger.debug("retrying message %s in %s seconds", pending.message.message_id, delay)
                pending.next_attempt = now + delay
            return
        self._complete(pending, StatusCode.OK_EMPTY)

    def _complete(self, pending, status):
        with self._lock:
            try:
                self._pending.remove(pending)
            except ValueError:
                return      # cancelled by close()
        self._notify(pending, status)

    def _notify(self, pending, status):
        if pending.callback is not None:
            try:
                pending.callback(status, pending.context)
            except Exception as e:
                self.logger.exception("send callback for message %s failed: %s", pending.message.message_id, e)

    def _receive_due(self):
        now = self._clock()
        with self._lock:
            if self._last_receive is not None and (now - self._last_receive) * 1000 < self._receive_period:
                return
            self._last_receive = now
            inbound = list(self._inbound)
            self._inbound.clear()
        for message in inbound:
            try:
                self.configuration.dispatch(message)
            except Exception as e:
                self.logger.exception("handler for inbound message %s failed: %s", message.message_id, e)
