import logging

from socketmanager.config.config import apply
from socketmanager.support.mixins import CommonEqualityMixin, StringerMixin

logger = logging.getLogger(__name__)

config_name = 'socketmanager'
config_section = 'socket'


class SocketSettings(StringerMixin, CommonEqualityMixin):
    """
    Tunable values for a socket manager. Durations are in seconds.
    """

    def __init__(self, **kwargs):
        self.buffer_size = 1024         # bytes per socket read
        self.connect_timeout = 3.0
        self.send_timeout = 0.5         # per socket send
        self.receive_timeout = 0.5      # per socket receive
        self.read_timeout = 45.0        # text reads
        self.bytes_timeout = 3.0        # read_bytes and write_read
        self.message_pause = 0.005      # between reads in read_message
        self.stop_grace = 0.1           # wait for a background loop to exit
        self.poll_interval = 0.05       # idle wait in the receive and accept loops
        self.backlog = 5
        self.encoding = 'ascii'
        for k, v in kwargs.items():
            if not hasattr(self, k):
                raise TypeError("unknown setting %r" % k)
            setattr(self, k, v)

    @staticmethod
    def load(name=config_name, directory=None, user_file=None):
        """
        Creates settings from the layered configuration files for name.
        See socketmanager.config.config.load_config.
        """
        settings = apply(SocketSettings(), config_section, name, directory, user_file)
        logger.debug("loaded settings %s" % settings)
        return settings
