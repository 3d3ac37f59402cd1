"""
Background loops that run on their own daemon thread until asked to stop.
"""
import logging
import threading

logger = logging.getLogger(__name__)


class AsyncLoop:
    """ Repeatedly runs loop(), which subclasses override, on a background thread until stop() is called.
        startup() runs before the first iteration and shutdown() after the last, on the same thread.
        Exceptions are passed to exception_handler(), which returns True to keep looping. Any other
        result ends the loop. The background thread is a daemon.
    """

    def __init__(self, name=None, log=logger):
        """
        :param name the name of the background thread
        """
        self.name = name
        self.stop_event = threading.Event()
        self.background_thread = None
        self.logger = log
        self._lock = threading.Lock()

    def start(self):
        """
        Starts the background thread. Returns False if the loop has already been started.
        """
        with self._lock:
            if self.background_thread is not None:
                return False
            self.stop_event.clear()
            t = threading.Thread(target=self._run, name=self.name)
            t.daemon = True
            self.background_thread = t
        t.start()
        return True

    @property
    def alive(self):
        thread = self.background_thread
        return thread is not None and thread.is_alive()

    def exception_handler(self, e):
        self.logger.exception(e)

    def _run(self):
        """ The processing loop for the background thread.
             Invokes loop() for as long as the stop signal is not received.
        """
        if self._do(self.startup):
            while self.running():
                if not self._do(self.loop):
                    break
        self._do(self.shutdown)
        self.logger.debug("background thread %s exiting" % threading.current_thread().name)

    def _do(self, callme):
        """ runs a function and captures any exceptions.
            :return: False if the function raised an exception that ends the loop.
        """
        try:
            callme()
            return True
        except Exception as e:
            return self.exception_handler(e) is True

    def startup(self):
        """ template method called when the thread starts"""
        pass

    def loop(self):
        """ one iteration of the background work. Subclasses override this. """
        raise NotImplementedError

    def shutdown(self):
        """ template method called when the thread exits """
        pass

    def running(self):
        return not self.stop_event.is_set()

    def request_stop(self):
        """ signals the loop to exit at the next iteration boundary, without waiting. """
        self.stop_event.set()

    def stop(self, timeout=None):
        """
        Signals the loop to stop and waits up to timeout seconds for the background thread to exit.
        When called from the background thread itself, only the signal is given.
        :return: True if the thread has exited (or was never started.)
        """
        self.request_stop()
        with self._lock:
            thread = self.background_thread
            self.background_thread = None
        if thread is None:
            return True
        if thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                self.logger.warning("background thread %s still running after %ss" % (thread.name, timeout))
                return False
            return True
        return False
