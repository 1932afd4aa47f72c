import threading
import unittest
from unittest.mock import Mock

import timeout_decorator
from hamcrest import assert_that, is_, none, not_none

from hublink.support.async_loop import AsyncLoop


class AsyncLoopTest(unittest.TestCase):

    def test_loop_calls_function_with_args(self):
        fn = Mock()
        sut = AsyncLoop(fn, (1, 2))
        sut.loop()
        fn.assert_called_once_with(1, 2)

    def test_exceptions_are_handled(self):
        sut = AsyncLoop(Mock(side_effect=ValueError("boom")))
        sut.exception_handler = Mock()
        sut._do(sut.loop)
        assert_that(sut.exception_handler.call_count, is_(1))

    @timeout_decorator.timeout(5)
    def test_runs_on_background_thread_until_stopped(self):
        called = threading.Event()
        threads = []

        def work():
            threads.append(threading.current_thread())
            called.set()
            sut.stop_event.wait(0.01)

        sut = AsyncLoop(work, name="pump")
        sut.start()
        assert_that(sut.background_thread, is_(not_none()))
        called.wait()
        sut.stop()
        assert_that(sut.background_thread, is_(none()))
        assert_that(threads[0].name, is_("pump"))
        assert_that(threads[0].daemon, is_(True))
        assert_that(threads[0] is threading.current_thread(), is_(False))

    @timeout_decorator.timeout(5)
    def test_start_twice_runs_one_thread(self):
        sut = AsyncLoop(lambda: sut.stop_event.wait(0.01))
        sut.start()
        first = sut.background_thread
        sut.start()
        assert_that(sut.background_thread is first, is_(True))
        sut.stop()

    @timeout_decorator.timeout(5)
    def test_can_restart_after_stop(self):
        count = Mock()

        def work():
            count()
            sut.stop_event.wait(0.01)

        sut = AsyncLoop(work)
        sut.start()
        sut.stop()
        calls = count.call_count
        sut.start()
        assert_that(sut.running(), is_(True))
        sut.stop()
        assert_that(count.call_count >= calls, is_(True))

    def test_startup_and_shutdown_called(self):
        sut = AsyncLoop(Mock())
        sut.startup = Mock()
        sut.shutdown = Mock()
        sut.stop_event.set()
        sut._run()
        sut.startup.assert_called_once_with()
        sut.shutdown.assert_called_once_with()
