import threading


class EventSource(object):
    """
    A set of handlers that are notified when an event is fired.

    Each handler is registered with an optional context object. When an event fires,
    the handler is called with the event arguments followed by its context.
    Handlers may be added and removed from any thread.
    """

    def __init__(self):
        self._handlers = []
        self._lock = threading.Lock()

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def add(self, handler, context=None):
        with self._lock:
            self._handlers.append((handler, context))
        return self

    def remove(self, handler):
        with self._lock:
            self._handlers = [(h, c) for h, c in self._handlers if h != handler]
        return self

    def handlers(self):
        with self._lock:
            return tuple(h for h, c in self._handlers)

    def fire(self, *args):
        # handlers are called outside the lock so they may re-register
        with self._lock:
            registered = tuple(self._handlers)
        for handler, context in registered:
            handler(*args, context)
