import os
import socket
import socketserver
import sys
import threading

sys.path.append(os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "lib"))
import memcacheConstants
from mc_errors import TransportError
from mc_transport import MemcachedTransport

VERSION = "1.6.21-fake"


class ScriptedTransport(MemcachedTransport):
    """In-memory transport: replays canned server bytes and records writes."""

    def __init__(self, replies=b"", timeout=None, fail_send=False):
        self.replies = replies
        self.timeout = timeout
        self.fail_send = fail_send
        self.sent = []
        self.connected = None
        self.closed = False
        self.released = None
        self.reused = 0

    def connect(self, host, port=None, path=None, options=None):
        self.connected = (host, port, path)
        return True

    def send(self, data):
        if self.fail_send:
            raise TransportError("broken pipe")
        self.sent.append(data)
        return len(data)

    def receive_line(self):
        index = self.replies.find(memcacheConstants.CRLF)
        if index < 0:
            raise TransportError("timeout")
        line, self.replies = self.replies[:index], self.replies[index + 2:]
        return line

    def receive_exact(self, length):
        if len(self.replies) < length:
            raise TransportError("timeout")
        data, self.replies = self.replies[:length], self.replies[length:]
        return data

    def set_timeout(self, timeout):
        self.timeout = timeout

    def close(self):
        self.closed = True
        return True

    def release(self, idle_timeout, pool_size):
        self.released = (idle_timeout, pool_size)
        return True

    def reused_count(self):
        return self.reused


def transport_factory(transport):
    return lambda timeout=None: transport


class _ThreadingTCPServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    allow_reuse_address = True
    daemon_threads = True


class FakeMemcachedHandler(socketserver.StreamRequestHandler):
    """Enough of the memcached text protocol for the client tests.

    Keys are kept exactly as they appear on the wire.
    """

    def setup(self):
        socketserver.StreamRequestHandler.setup(self)
        with self.server.lock:
            self.server.connections.append(self.connection)

    def reply(self, *lines):
        self.wfile.write(b"".join(line + b"\r\n" for line in lines))

    def handle(self):
        while True:
            line = self.rfile.readline()
            if not line:
                break
            parts = line.rstrip(b"\r\n").decode("ascii").split(" ")
            cmd, args = parts[0], parts[1:]
            self.server.commands.append(cmd)
            if cmd == "quit":
                break
            handler = getattr(self, "do_" + cmd, None)
            if handler is None:
                self.reply(b"ERROR")
                continue
            handler(args)

    def _store(self):
        return self.server.store

    def do_get(self, args, with_cas=False):
        for key in args:
            item = self._store().get(key)
            if item is None:
                continue
            flags, data, cas = item
            header = "VALUE {0} {1} {2}".format(key, flags, len(data))
            if with_cas:
                header += " {0}".format(cas)
            self.wfile.write(header.encode("ascii") + b"\r\n" + data + b"\r\n")
        self.reply(b"END")

    def do_gets(self, args):
        self.do_get(args, with_cas=True)

    def _read_data(self, length):
        data = self.rfile.read(length + 2)
        return data[:-2]

    def _put(self, key, flags, data):
        with self.server.lock:
            self.server.cas_counter += 1
            self._store()[key] = (int(flags), data, self.server.cas_counter)

    def do_set(self, args):
        key, flags, _, length = args[:4]
        self._put(key, flags, self._read_data(int(length)))
        self.reply(b"STORED")

    def do_add(self, args):
        key, flags, _, length = args[:4]
        data = self._read_data(int(length))
        if key in self._store():
            self.reply(b"NOT_STORED")
            return
        self._put(key, flags, data)
        self.reply(b"STORED")

    def do_replace(self, args):
        key, flags, _, length = args[:4]
        data = self._read_data(int(length))
        if key not in self._store():
            self.reply(b"NOT_STORED")
            return
        self._put(key, flags, data)
        self.reply(b"STORED")

    def _concat(self, args, append):
        key, _, _, length = args[:4]
        data = self._read_data(int(length))
        item = self._store().get(key)
        if item is None:
            self.reply(b"NOT_STORED")
            return
        flags, old, _ = item
        self._put(key, flags, old + data if append else data + old)
        self.reply(b"STORED")

    def do_append(self, args):
        self._concat(args, True)

    def do_prepend(self, args):
        self._concat(args, False)

    def do_cas(self, args):
        key, flags, _, length, cas = args[:5]
        data = self._read_data(int(length))
        item = self._store().get(key)
        if item is None:
            self.reply(b"NOT_FOUND")
        elif item[2] != int(cas):
            self.reply(b"EXISTS")
        else:
            self._put(key, flags, data)
            self.reply(b"STORED")

    def do_touch(self, args):
        self.reply(b"TOUCHED" if args[0] in self._store() else b"NOT_FOUND")

    def do_delete(self, args):
        if self._store().pop(args[0], None) is None:
            self.reply(b"NOT_FOUND")
        else:
            self.reply(b"DELETED")

    def _arithmetic(self, args, sign):
        key, delta = args[0], args[1]
        item = self._store().get(key)
        if item is None:
            self.reply(b"NOT_FOUND")
            return
        if not delta.isdigit():
            self.reply(b"CLIENT_ERROR invalid numeric delta argument")
            return
        flags, data, _ = item
        if not data.isdigit():
            self.reply(b"CLIENT_ERROR cannot increment or decrement non-numeric value")
            return
        value = str(max(int(data) + sign * int(delta), 0)).encode("ascii")
        self._put(key, flags, value)
        self.reply(value)

    def do_incr(self, args):
        self._arithmetic(args, 1)

    def do_decr(self, args):
        self._arithmetic(args, -1)

    def do_flush_all(self, args):
        self._store().clear()
        self.reply(b"OK")

    def do_stats(self, args):
        if args:
            self.reply(b"ERROR")
            return
        self.reply(b"STAT pid " + str(os.getpid()).encode("ascii"),
                   b"STAT version " + VERSION.encode("ascii"),
                   b"STAT curr_items " + str(len(self._store())).encode("ascii"),
                   b"END")

    def do_version(self, args):
        self.reply(b"VERSION " + VERSION.encode("ascii"))

    def do_verbosity(self, args):
        self.reply(b"OK" if args and args[0].isdigit() else b"ERROR")


class FakeMemcachedServer(object):
    """Threaded in-process server listening on a free localhost port."""

    def __init__(self):
        self.server = _ThreadingTCPServer(("127.0.0.1", 0), FakeMemcachedHandler)
        self.server.store = {}
        self.server.commands = []
        self.server.connections = []
        self.server.lock = threading.Lock()
        self.server.cas_counter = 0
        self.host, self.port = self.server.server_address
        self._thread = threading.Thread(target=self.server.serve_forever)
        self._thread.daemon = True

    @property
    def store(self):
        return self.server.store

    @property
    def commands(self):
        return self.server.commands

    def hang_up(self):
        """Close every client connection from the server side."""
        with self.server.lock:
            connections, self.server.connections = self.server.connections, []
        for conn in connections:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass

    def start(self):
        self._thread.start()
        return self

    def stop(self):
        self.server.shutdown()
        self.server.server_close()
        self._thread.join()
