import importlib.util
import io
import os
import sys
import unittest
from contextlib import redirect_stdout

ROOT = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..")
sys.path.append(os.path.join(ROOT, "lib"))
from mc_ascii_client import MemcachedAsciiClient

from fake_memcached import FakeMemcachedServer, ScriptedTransport, transport_factory

_spec = importlib.util.spec_from_file_location("mc_ascii_tool", os.path.join(ROOT, "scripts", "mc_ascii_tool.py"))
mc_ascii_tool = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(mc_ascii_tool)


class RunCommandTests(unittest.TestCase):

    def _run(self, replies, command, *args):
        transport = ScriptedTransport(replies)
        client = MemcachedAsciiClient(transport_factory=transport_factory(transport))
        client.connect()
        out = io.StringIO()
        with redirect_stdout(out):
            mc_ascii_tool.run_command(client, command, list(args))
        return transport, out.getvalue()

    def test_get_hit_and_miss(self):
        _, out = self._run(b"VALUE k 2 1\r\nv\r\nEND\r\n", "get", "k")
        self.assertEqual(out, "k: flags=2 v\n")
        _, out = self._run(b"END\r\n", "get", "k")
        self.assertEqual(out, "k: (miss)\n")

    def test_get_many(self):
        _, out = self._run(b"VALUE b 0 1\r\n2\r\nEND\r\n", "get", "a", "b")
        self.assertEqual(out, "a: (miss)\nb: flags=0 2\n")

    def test_set_with_exptime_and_flags(self):
        transport, out = self._run(b"STORED\r\n", "set", "k", "v", "60", "3")
        self.assertEqual(transport.sent, [b"set k 3 60 1\r\nv\r\n"])
        self.assertEqual(out, "STORED\n")

    def test_incr(self):
        transport, out = self._run(b"11\r\n", "incr", "ctr", "1")
        self.assertEqual(out, "11\n")

    def test_stats(self):
        _, out = self._run(b"STAT pid 1\r\nEND\r\n", "stats")
        self.assertEqual(out, "STAT pid 1\n")

    def test_unknown_command_exits(self):
        with redirect_stdout(io.StringIO()):
            self.assertRaises(SystemExit, self._run, b"", "bogus")


class MainTests(unittest.TestCase):

    def setUp(self):
        self.server = FakeMemcachedServer().start()
        self.address = "{0}:{1}".format(self.server.host, self.server.port)

    def tearDown(self):
        self.server.stop()

    def _main(self, *args):
        out = io.StringIO()
        with redirect_stdout(out):
            rc = mc_ascii_tool.main(["mc_ascii_tool.py", "-s", self.address, "-p", "timeout=5"] + list(args))
        return rc, out.getvalue()

    def test_set_then_get(self):
        self.assertEqual(self._main("set", "k", "hello"), (0, "STORED\n"))
        self.assertEqual(self._main("get", "k"), (0, "k: flags=0 hello\n"))

    def test_protocol_error_returns_2(self):
        rc, out = self._main("incr", "missing", "1")
        self.assertEqual(rc, 2)
        self.assertEqual(out, "ERROR: NOT_FOUND\n")
