import os
import socket
import sys
import unittest
import uuid

sys.path.append(os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "lib"))
import logger
import memcacheConstants
from mc_ascii_client import MemcachedAsciiClient
from mc_ascii_protocol import StoredItem
from mc_config import ConnectOptions
from mc_errors import NotInitializedError, ProtocolError, TransportError
from mc_transport import SocketPool, SocketTransport

from fake_memcached import VERSION, FakeMemcachedServer


class FakeServerTestBase(unittest.TestCase):
    log = logger.Logger.get_logger()

    def setUp(self):
        self.server = FakeMemcachedServer().start()
        self.pool = SocketPool()
        self.client = self._client()
        self.client.connect(self.server.host, self.server.port)

    def tearDown(self):
        if self.client.state == memcacheConstants.STATE_CONNECTED:
            self.client.close()
        self.pool.clear()
        self.server.stop()

    def _client(self, timeout=5):
        pool = self.pool
        return MemcachedAsciiClient(timeout=timeout,
                                    transport_factory=lambda timeout=None: SocketTransport(timeout, pool))


class SetGetTests(FakeServerTestBase):

    def test_set_then_get(self):
        self.assertTrue(self.client.set("k", "v", 0, 0))
        self.assertEqual(self.client.get("k"), StoredItem(b"v", 0))

    def test_flags_round_trip(self):
        for flags in [0, 1, 34532, 4294967295]:
            self.client.set("flagged", "x", 0, flags)
            self.assertEqual(self.client.get("flagged").flags, flags)

    def test_value_with_crlf(self):
        self.client.set("k", b"a\r\nb", 0, 0)
        self.assertEqual(self.client.get("k"), StoredItem(b"a\r\nb", 0))
        # the connection is still framed
        self.assertEqual(self.client.version(), VERSION)

    def test_binary_value(self):
        value = bytes(range(256)) * 4
        self.client.set("bin", value)
        self.assertEqual(self.client.get("bin").value, value)

    def test_key_with_spaces_and_control_bytes(self):
        key = "user name\r\n\t{0}".format(uuid.uuid4())
        self.client.set(key, "spaced")
        self.assertEqual(self.client.get(key).value, b"spaced")
        self.assertEqual(self.client.get_multi([key]), {key: StoredItem(b"spaced", 0)})

    def test_get_miss(self):
        self.assertIsNone(self.client.get("never-set"))

    def test_delete_then_get(self):
        self.client.set("k", "v")
        self.assertTrue(self.client.delete("k"))
        self.assertIsNone(self.client.get("k"))
        with self.assertRaises(ProtocolError) as ctx:
            self.client.delete("k")
        self.assertEqual(ctx.exception.msg, "NOT_FOUND")

    def test_add_replace_append_prepend(self):
        self.assertRaises(ProtocolError, self.client.replace, "k", "v")
        self.assertTrue(self.client.add("k", "mid"))
        self.assertRaises(ProtocolError, self.client.add, "k", "v")
        self.assertTrue(self.client.append("k", "-end"))
        self.assertTrue(self.client.prepend("k", "start-"))
        self.assertEqual(self.client.get("k").value, b"start-mid-end")
        self.assertTrue(self.client.replace("k", "new", 0, 3))
        self.assertEqual(self.client.get("k"), StoredItem(b"new", 3))

    def test_gets_and_cas(self):
        self.client.set("k", "v1")
        item = self.client.gets("k")
        self.assertEqual(item.value, b"v1")
        self.assertTrue(self.client.cas("k", "v2", item.cas))
        with self.assertRaises(ProtocolError) as ctx:
            self.client.cas("k", "v3", item.cas)
        self.assertEqual(ctx.exception.msg, "EXISTS")
        self.assertEqual(self.client.get("k").value, b"v2")

    def test_touch(self):
        self.client.set("k", "v")
        self.assertTrue(self.client.touch("k", 60))
        self.assertRaises(ProtocolError, self.client.touch, "missing", 60)


class MultiGetTests(FakeServerTestBase):

    def test_only_hits_are_returned(self):
        self.client.set("a", "1")
        self.client.set("c", "3", 0, 9)
        result = self.client.get_multi(["a", "b", "c"])
        self.assertEqual(result, {"a": StoredItem(b"1", 0), "c": StoredItem(b"3", 9)})
        self.assertNotIn("b", result)

    def test_empty_keys_does_not_touch_the_server(self):
        before = len(self.server.commands)
        self.assertEqual(self.client.get_multi([]), {})
        self.assertEqual(len(self.server.commands), before)

    def test_gets_multi(self):
        self.client.set("a", "1")
        self.client.set("b", "2")
        result = self.client.gets_multi(["a", "b"])
        self.assertEqual(sorted(result), ["a", "b"])
        self.assertNotEqual(result["a"].cas, result["b"].cas)


class CounterTests(FakeServerTestBase):

    def test_incr_existing(self):
        self.client.set("ctr", "10")
        self.assertEqual(self.client.incr("ctr", 5), "15")
        self.assertEqual(self.client.decr("ctr", 20), "0")

    def test_incr_missing_is_protocol_error(self):
        with self.assertRaises(ProtocolError) as ctx:
            self.client.incr("ctr", 5)
        self.assertEqual(ctx.exception.msg, "NOT_FOUND")
        # the connection is still usable
        self.assertEqual(self.client.version(), VERSION)

    def test_incr_non_numeric(self):
        self.client.set("word", "abc")
        with self.assertRaises(ProtocolError) as ctx:
            self.client.incr("word", 1)
        self.assertTrue(ctx.exception.msg.startswith("CLIENT_ERROR"))


class ServerCommandTests(FakeServerTestBase):

    def test_stats(self):
        self.client.set("k", "v")
        lines = self.client.stats()
        self.assertIn("STAT version {0}".format(VERSION), lines)
        self.assertIn("STAT curr_items 1", lines)
        self.assertNotIn("END", lines)

    def test_stats_error(self):
        with self.assertRaises(ProtocolError) as ctx:
            self.client.stats("bogus")
        self.assertEqual(ctx.exception.msg, "ERROR")

    def test_version(self):
        self.assertEqual(self.client.version(), VERSION)

    def test_verbosity(self):
        self.assertTrue(self.client.verbosity(1))

    def test_flush_all(self):
        self.client.set("a", "1")
        self.assertTrue(self.client.flush_all())
        self.assertIsNone(self.client.get("a"))
        self.assertTrue(self.client.flush_all(0))

    def test_quit(self):
        self.assertTrue(self.client.quit())
        self.assertEqual(self.client.state, memcacheConstants.STATE_UNINITIALIZED)
        self.assertRaises(NotInitializedError, self.client.get, "k")


class KeepaliveTests(FakeServerTestBase):

    def test_released_connection_is_reused(self):
        self.assertEqual(self.client.get_reused_times(), 0)
        self.client.set_keepalive(10, 5)
        self.assertEqual(self.pool.size("{0}:{1}".format(self.server.host, self.server.port)), 1)

        self.client.connect(self.server.host, self.server.port)
        self.assertEqual(self.client.get_reused_times(), 1)
        self.client.set("k", "v")
        self.assertEqual(self.client.get("k").value, b"v")

    def test_named_pool(self):
        options = ConnectOptions(timeout=5, pool="sessions")
        client = self._client()
        client.connect(self.server.host, self.server.port, options=options)
        client.set_keepalive()
        self.assertEqual(self.pool.size("sessions"), 1)
        client.connect(self.server.host, self.server.port, options=options)
        self.assertEqual(client.get_reused_times(), 1)
        client.close()

    def test_zero_pool_size_closes(self):
        self.client.set_keepalive(10, 0)
        self.client.connect(self.server.host, self.server.port)
        self.assertEqual(self.client.get_reused_times(), 0)


class TransportFailureTests(FakeServerTestBase):

    def test_connect_refused(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            port = s.getsockname()[1]
        client = self._client()
        self.assertRaises(TransportError, client.connect, "127.0.0.1", port)
        self.assertEqual(client.state, memcacheConstants.STATE_UNINITIALIZED)

    def test_timeout_is_transport_error(self):
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.bind(("127.0.0.1", 0))
        listener.listen(1)
        try:
            client = self._client(timeout=0.2)
            client.connect("127.0.0.1", listener.getsockname()[1])
            with self.assertRaises(TransportError) as ctx:
                client.version()
            self.assertIn("Timeout", ctx.exception.msg)
            self.assertEqual(client.state, memcacheConstants.STATE_UNINITIALIZED)
        finally:
            listener.close()
