"""
Blocking stream transports for the memcached ascii client.

A transport moves bytes and nothing else: it knows how to read one CRLF
terminated line and how to read an exact number of bytes, and it hands its
socket to a keep-alive pool when asked to.
"""

import select
import socket
import threading
import time

import logger
import memcacheConstants
from mc_config import ConnectOptions
from mc_errors import TransportError

log = logger.Logger.get_logger()

RECV_SIZE = 4096
MAX_RECV_SIZE = 256 * 1024


class MemcachedTransport(object):
    """Interface consumed by the client. Every failure raises TransportError."""

    def connect(self, host, port=None, path=None, options=None):
        raise NotImplementedError

    def send(self, data):
        """Write all of ``data``; returns the number of bytes written."""
        raise NotImplementedError

    def receive_line(self):
        """Return the next line without its CRLF."""
        raise NotImplementedError

    def receive_exact(self, length):
        raise NotImplementedError

    def set_timeout(self, timeout):
        raise NotImplementedError

    def close(self):
        raise NotImplementedError

    def release(self, idle_timeout, pool_size):
        """Give the connection to the keep-alive pool instead of closing it."""
        raise NotImplementedError

    def reused_count(self):
        raise NotImplementedError


class _PooledSocket(object):
    def __init__(self, sock, reused, idle_timeout):
        self.sock = sock
        self.reused = reused
        self.idle_timeout = idle_timeout
        self.released_at = time.monotonic()

    def expired(self, now):
        return self.idle_timeout > 0 and now - self.released_at > self.idle_timeout

    def alive(self):
        """An idle socket has nothing to read; readable means EOF or stray bytes."""
        try:
            readable, _, _ = select.select([self.sock], [], [], 0)
        except (OSError, ValueError):
            return False
        return not readable


class SocketPool(object):
    """Idle sockets keyed by pool name, most recently released first."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pools = {}

    def take(self, key):
        now = time.monotonic()
        stale = []
        found = None
        with self._lock:
            idle = self._pools.get(key, [])
            while idle:
                entry = idle.pop()
                if entry.expired(now) or not entry.alive():
                    stale.append(entry)
                    continue
                found = entry
                break
        for entry in stale:
            log.debug("closing idle connection from pool {0}".format(key))
            entry.sock.close()
        if found is None:
            return None
        return found.sock, found.reused

    def put(self, key, sock, reused, idle_timeout, pool_size):
        evicted = []
        with self._lock:
            idle = self._pools.setdefault(key, [])
            idle.append(_PooledSocket(sock, reused, idle_timeout))
            while len(idle) > max(pool_size, 0):
                evicted.append(idle.pop(0))
        for entry in evicted:
            log.debug("pool {0} is full, closing its oldest connection".format(key))
            entry.sock.close()

    def size(self, key):
        with self._lock:
            return len(self._pools.get(key, []))

    def clear(self):
        with self._lock:
            pools, self._pools = self._pools, {}
        for idle in pools.values():
            for entry in idle:
                entry.sock.close()


default_pool = SocketPool()


class SocketTransport(MemcachedTransport):
    """TCP or unix domain socket transport with a keep-alive pool."""

    def __init__(self, timeout=memcacheConstants.DEFAULT_TIMEOUT, pool=None):
        self.timeout = timeout
        self.pool = pool if pool is not None else default_pool
        self.peer = None
        self._sock = None
        self._buffer = bytearray()
        self._reused = 0
        self._pool_key = None

    def connect(self, host=memcacheConstants.DEFAULT_HOST, port=memcacheConstants.DEFAULT_PORT,
                path=None, options=None):
        if options is None:
            options = ConnectOptions(timeout=self.timeout)
        if self._sock is not None:
            self.close()
        self.timeout = options.timeout
        self.peer = "unix:{0}".format(path) if path else "{0}:{1}".format(host, port)
        self._pool_key = options.pool or self.peer

        pooled = self.pool.take(self._pool_key)
        if pooled is not None:
            sock, reused = pooled
            self._reused = reused + 1
            log.debug("reusing pooled connection to {0} ({1} times)".format(self.peer, self._reused))
        else:
            sock = self._create_socket(host, port, path)
            self._reused = 0
        sock.settimeout(self.timeout)
        self._sock = sock
        self._buffer = bytearray()
        return True

    def _create_socket(self, host, port, path):
        try:
            if path:
                sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
                try:
                    sock.settimeout(self.timeout)
                    sock.connect(path)
                except OSError:
                    sock.close()
                    raise
            else:
                sock = socket.create_connection((host, port), timeout=self.timeout)
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except socket.timeout:
            raise TransportError("Timeout waiting for connect. to {0}".format(self.peer))
        except OSError as e:
            raise TransportError("failed to connect to {0}: {1}".format(self.peer, e))
        return sock

    def _check(self):
        if self._sock is None:
            raise TransportError("closed")
        return self._sock

    def send(self, data):
        sock = self._check()
        try:
            sock.sendall(data)
        except socket.timeout:
            raise TransportError("Timeout waiting for socket send. to {0}".format(self.peer))
        except OSError as e:
            raise TransportError("send to {0} failed: {1}".format(self.peer, e))
        return len(data)

    def _recv(self, size=RECV_SIZE):
        """Append at least one byte from the socket to the buffer."""
        sock = self._check()
        try:
            data = sock.recv(size)
        except socket.timeout:
            raise TransportError("Timeout waiting for socket recv. from {0}".format(self.peer))
        except OSError as e:
            raise TransportError("recv from {0} failed: {1}".format(self.peer, e))
        if not data:
            raise TransportError("Got empty data (remote died?). from {0}".format(self.peer))
        self._buffer += data

    def receive_line(self):
        start = 0
        while True:
            index = self._buffer.find(memcacheConstants.CRLF, start)
            if index >= 0:
                break
            # a CR at the end of the buffer may pair with an LF still in flight
            start = max(len(self._buffer) - 1, 0)
            self._recv()
        line = bytes(self._buffer[:index])
        del self._buffer[:index + len(memcacheConstants.CRLF)]
        return line

    def receive_exact(self, length):
        while len(self._buffer) < length:
            self._recv(min(max(length - len(self._buffer), RECV_SIZE), MAX_RECV_SIZE))
        data = bytes(self._buffer[:length])
        del self._buffer[:length]
        return data

    def set_timeout(self, timeout):
        sock = self._check()
        self.timeout = timeout
        sock.settimeout(timeout)

    def close(self):
        sock = self._check()
        self._sock = None
        self._buffer = bytearray()
        try:
            sock.close()
        except OSError as e:
            raise TransportError("close of {0} failed: {1}".format(self.peer, e))

    def release(self, idle_timeout=memcacheConstants.DEFAULT_KEEPALIVE_TIMEOUT,
                pool_size=memcacheConstants.DEFAULT_POOL_SIZE):
        sock = self._check()
        if self._buffer:
            self.close()
            raise TransportError("unread data in buffer")
        self._sock = None
        self.pool.put(self._pool_key, sock, self._reused, idle_timeout, pool_size)
        return True

    def reused_count(self):
        self._check()
        return self._reused
