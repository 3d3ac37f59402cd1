import logging
import threading
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)


class EventSource(object):
    """
    A list of handlers that are each called when an event is fired.
    Handlers can be added and removed from any thread; fire() calls the handlers
    registered at the moment the event is fired.
    """

    def __init__(self):
        self._handlers = []
        self._lock = threading.Lock()

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def __len__(self):
        return len(self._handlers)

    def add(self, handler):
        with self._lock:
            self._handlers.append(handler)
        return self

    def remove(self, handler):
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)
        return self

    def clear(self):
        """ removes all handlers. """
        with self._lock:
            self._handlers = []

    def handlers(self):
        with self._lock:
            return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        self._fire(self.handlers(), *args, **kwargs)

    def _fire(self, handlers, *args, **kwargs):
        for handler in handlers:
            handler(*args, **kwargs)


class AsyncEventSource(EventSource):
    """
    fire() hands the event to a single worker thread and returns immediately.
    Events are delivered in the order they were fired, to the handlers that were
    registered when fire() was called. Once shut down, events are dropped until reopen() is called.
    """

    def __init__(self, name='events'):
        super().__init__()
        self._name = name
        self._executor = None
        self._closed = False
        self._executor_lock = threading.Lock()

    def fire(self, *args, **kwargs):
        """
        :return: the future for the dispatch, which completes once all handlers have been called,
            or None when the event was dropped because the source is shut down.
        """
        handlers = self.handlers()
        with self._executor_lock:
            if self._closed:
                logger.warning("%s is shut down, dropped event %s" % (self._name, args))
                return None
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=self._name)
            return self._executor.submit(self._dispatch, handlers, *args, **kwargs)

    def _dispatch(self, handlers, *args, **kwargs):
        try:
            self._fire(handlers, *args, **kwargs)
        except Exception as e:
            logger.exception("handler failed while dispatching %s: %s" % (self._name, e))
            raise

    def shutdown(self, wait=False):
        """
        Releases the worker thread. Events already fired are still delivered; later ones are dropped.
        """
        with self._executor_lock:
            executor = self._executor
            self._executor = None
            self._closed = True
        if executor is not None:
            executor.shutdown(wait=wait)

    def reopen(self):
        """ accepts events again after shutdown(). """
        with self._executor_lock:
            self._closed = False
