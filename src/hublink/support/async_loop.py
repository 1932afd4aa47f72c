"""
Runs a function repeatedly on a background thread.
"""
import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class AsyncLoop:
    """ Continually runs a given function on a background thread.
        Exceptions are logged and posted to exception_handler.
        The background thread is registered as a daemon.
    """

    def __init__(self, fn: Callable=None, args=(), name=None, log=logger):
        """
        :param fn the function to run
        :param args arguments to pass to fn
        :param name the name given to the background thread
        """
        self.fn = fn
        self.args = args
        self.name = name
        self.stop_event = threading.Event()
        self.background_thread = None
        self.logger = log
        self._lock = threading.Lock()

    def start(self):
        """
        Starts the background thread if it is not already running.
        A loop that was stopped can be started again.
        """
        with self._lock:
            if self.background_thread is None:
                self.stop_event.clear()
                t = threading.Thread(target=self._run, name=self.name)
                t.daemon = True
                self.background_thread = t
                t.start()

    def exception_handler(self, e):
        self.logger.exception(e)

    def _run(self):
        """ The processing loop for the background thread.
             Invokes the callable for as long as the stop signal is not received.
        """
        self._do(self.startup)
        while self.running():
            self._do(self.loop)
        self._do(self.shutdown)
        self.logger.debug("background thread %s exiting", self.name)

    def _do(self, callme):
        """ runs a function and captures any exceptions """
        try:
            callme()
        except Exception as e:
            self.exception_handler(e)

    def startup(self):
        """ template method called when the thread starts"""
        pass

    def loop(self):
        self.fn(*self.args)

    def shutdown(self):
        """ template method called when the thread exits """
        pass

    def running(self):
        return not self.stop_event.is_set()

    def stop(self):
        self.stop_event.set()
        with self._lock:
            thread = self.background_thread
            self.background_thread = None
        if thread and thread is not threading.current_thread():
            thread.join()
