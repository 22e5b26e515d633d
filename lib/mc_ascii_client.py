#!/usr/bin/env python
"""
Ascii memcached client.
"""

import logger
import memcacheConstants
import mc_ascii_protocol as protocol
from mc_config import ConnectOptions, KeepaliveOptions
from mc_errors import MemcachedError, NotInitializedError, ProtocolError, TransportError
from mc_key_codec import escape_key
from mc_transport import SocketTransport

__all__ = ["MemcachedAsciiClient", "MemcachedError", "NotInitializedError",
           "ProtocolError", "TransportError"]


class MemcachedAsciiClient(object):
    """Simple ascii memcached client.

    A client owns at most one connection and runs one command on it at a
    time. Until ``connect`` succeeds, and again after ``close``,
    ``set_keepalive``, ``quit`` or a transport failure, every operation
    raises NotInitializedError without touching the network.
    """

    def __init__(self, timeout=memcacheConstants.DEFAULT_TIMEOUT, transport_factory=SocketTransport,
                 keepalive=None):
        self.timeout = timeout
        self.keepalive = keepalive if keepalive is not None else KeepaliveOptions()
        self.transport_factory = transport_factory
        self._transport = None
        self.log = logger.Logger.get_logger()

    @property
    def state(self):
        if self._transport is None:
            return memcacheConstants.STATE_UNINITIALIZED
        return memcacheConstants.STATE_CONNECTED

    def connect(self, host=memcacheConstants.DEFAULT_HOST, port=memcacheConstants.DEFAULT_PORT,
                path=None, options=None):
        """Attach a connection to host:port, or to the unix socket at ``path``."""
        if options is None:
            options = ConnectOptions(timeout=self.timeout)
        transport = self.transport_factory(timeout=options.timeout)
        transport.connect(host, port, path=path, options=options)
        if self._transport is not None:
            self._detach()
        self._transport = transport
        self.log.info("connected to {0}".format(path or "{0}:{1}".format(host, port)))
        return True

    def _checkTransport(self):
        if self._transport is None:
            raise NotInitializedError()
        return self._transport

    def _detach(self):
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            transport.close()
        except TransportError as e:
            self.log.debug("error closing a failed connection: {0}".format(e))

    def _doCmd(self, cmd, reader=None, *args, **kwargs):
        """Send a command and await its response."""
        transport = self._checkTransport()
        self.log.debug("sending: {0}".format(cmd.split(memcacheConstants.CRLF, 1)[0]))
        try:
            transport.send(cmd)
            if reader is None:
                return True
            return reader(transport, *args, **kwargs)
        except ProtocolError as e:
            if not e.framed:
                self._detach()
            raise
        except BaseException:
            # the reply may be half read, so the connection cannot be reused
            self._detach()
            raise

    def _doMulti(self, verb, keys, with_cas=False):
        self._checkTransport()
        keys = list(keys)
        if not keys:
            return {}
        # a key asked for as both str and bytes comes back as the later one
        requested = dict((escape_key(key), key) for key in keys)
        return self._doCmd(protocol.encode_get_multi(keys, verb), protocol.read_values,
                           with_cas=with_cas, requested=requested)

    def _doStore(self, cmd):
        return self._doCmd(cmd, protocol.read_status, memcacheConstants.RES_STORED)

    def set_timeout(self, timeout):
        """Timeout in seconds for every later send and receive."""
        self._checkTransport().set_timeout(timeout)
        self.timeout = timeout

    def get(self, key):
        """Get the value for a given key within the memcached server.

        Returns a StoredItem(value, flags), or None on a miss. A list or
        tuple of keys is handled by get_multi.
        """
        if isinstance(key, (list, tuple, set, frozenset)):
            return self.get_multi(key)
        return self._doCmd(protocol.encode_get(key), protocol.read_value)

    def get_multi(self, keys):
        """Get values for any available keys in the given iterable.
        Returns a dict of matched keys to their values."""
        return self._doMulti(memcacheConstants.CMD_GET, keys)

    def gets(self, key):
        """Get the value, flags and cas unique for a key, or None."""
        return self._doCmd(protocol.encode_get(key, memcacheConstants.CMD_GETS),
                           protocol.read_value, with_cas=True)

    def gets_multi(self, keys):
        return self._doMulti(memcacheConstants.CMD_GETS, keys, with_cas=True)

    def set(self, key, value, exptime=0, flags=0):
        """Set a value in the memcached server."""
        return self._store(memcacheConstants.CMD_SET, key, value, exptime, flags)

    def add(self, key, value, exptime=0, flags=0):
        """Add a value in the memcached server iff it doesn't already exist."""
        return self._store(memcacheConstants.CMD_ADD, key, value, exptime, flags)

    def replace(self, key, value, exptime=0, flags=0):
        """Replace a value in the memcached server iff it already exists."""
        return self._store(memcacheConstants.CMD_REPLACE, key, value, exptime, flags)

    def append(self, key, value, exptime=0, flags=0):
        return self._store(memcacheConstants.CMD_APPEND, key, value, exptime, flags)

    def prepend(self, key, value, exptime=0, flags=0):
        return self._store(memcacheConstants.CMD_PREPEND, key, value, exptime, flags)

    def _store(self, verb, key, value, exptime, flags):
        self._checkTransport()
        return self._doStore(protocol.encode_store(verb, key, value, exptime, flags))

    def cas(self, key, value, cas_unique, exptime=0, flags=0):
        """CAS in a new value for the given key and comparison value."""
        self._checkTransport()
        return self._doStore(protocol.encode_store(memcacheConstants.CMD_CAS, key, value,
                                                   exptime, flags, cas_unique))

    def touch(self, key, exptime):
        """Touch a key in the memcached server."""
        return self._doCmd(protocol.encode_touch(key, exptime), protocol.read_status,
                           memcacheConstants.RES_TOUCHED)

    def delete(self, key, time=None):
        """Delete the value for a given key within the memcached server."""
        return self._doCmd(protocol.encode_delete(key, time), protocol.read_status,
                           memcacheConstants.RES_DELETED)

    def incr(self, key, delta=1):
        """Increment the named counter; returns the new value as text."""
        return self._doCmd(protocol.encode_arithmetic(memcacheConstants.CMD_INCR, key, delta),
                           protocol.read_numeric)

    def decr(self, key, delta=1):
        """Decrement the named counter; returns the new value as text."""
        return self._doCmd(protocol.encode_arithmetic(memcacheConstants.CMD_DECR, key, delta),
                           protocol.read_numeric)

    def flush_all(self, time=None):
        """Flush all storage in a memcached instance."""
        return self._doCmd(protocol.encode_flush_all(time), protocol.read_status,
                           memcacheConstants.RES_OK)

    def stats(self, args=None):
        """Get stats as the raw lines the server sent before END."""
        return self._doCmd(protocol.encode_stats(args), protocol.read_stats)

    def version(self):
        return self._doCmd(protocol.encode_version(), protocol.read_version)

    def verbosity(self, level):
        return self._doCmd(protocol.encode_verbosity(level), protocol.read_status,
                           memcacheConstants.RES_OK)

    def quit(self):
        """Ask the server to close the connection; no reply is read."""
        self._doCmd(protocol.encode_quit())
        self._detach()
        return True

    def set_keepalive(self, idle_timeout=None, pool_size=None):
        """Put the connection into the keep-alive pool and detach it.

        Arguments left as None come from the client's KeepaliveOptions.
        """
        transport = self._checkTransport()
        if idle_timeout is None:
            idle_timeout = self.keepalive.idle_timeout
        if pool_size is None:
            pool_size = self.keepalive.pool_size
        self._transport = None
        transport.release(idle_timeout, pool_size)
        self.log.info("released connection to the keep-alive pool")
        return True

    def get_reused_times(self):
        return self._checkTransport().reused_count()

    def close(self):
        transport = self._checkTransport()
        self._transport = None
        transport.close()
        self.log.info("connection closed")
        return True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if self._transport is not None:
            self._detach()
