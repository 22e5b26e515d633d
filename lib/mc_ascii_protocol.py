#!/usr/bin/env python
"""
Memcached text protocol: command encoding and reply parsing.

Encoders return the complete command as bytes. Readers drive a transport
(see mc_transport.MemcachedTransport) through exactly one reply and either
return its result or raise.
"""

import re
from collections import namedtuple

import logger
import memcacheConstants
from memcacheConstants import CRLF
from mc_errors import ProtocolError
from mc_key_codec import escape_key, unescape_key

log = logger.Logger.get_logger()

Reply = namedtuple("Reply", "kind token fields line")
StoredItem = namedtuple("StoredItem", "value flags")
CasItem = namedtuple("CasItem", "value flags cas")

VALUE_RE = re.compile(r"^VALUE (\S+) (\d+) (\d+)(?: (\d+))?\Z")
NUMERIC_RE = re.compile(r"^[0-9]+\Z")
VERSION_RE = re.compile(r"^VERSION (.+)\Z")

LINE_ENCODING = "utf-8"
LINE_ERRORS = "surrogateescape"


def _to_bytes(value):
    if isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    return str(value).encode(LINE_ENCODING)


def _command(*parts):
    return (" ".join(str(part) for part in parts)).encode(LINE_ENCODING, LINE_ERRORS) + CRLF


def encode_get(key, verb=memcacheConstants.CMD_GET):
    return _command(verb, escape_key(key))


def encode_get_multi(keys, verb=memcacheConstants.CMD_GET):
    return _command(verb, *[escape_key(key) for key in keys])


def encode_store(verb, key, value, exptime=0, flags=0, cas_unique=None):
    """<verb> <key> <flags> <exptime> <bytes> [<cas unique>]\\r\\n<data>\\r\\n"""
    data = _to_bytes(value)
    parts = [verb, escape_key(key), flags or 0, exptime or 0, len(data)]
    if cas_unique is not None:
        parts.append(cas_unique)
    return _command(*parts) + data + CRLF


def encode_delete(key, time=None):
    if time is None:
        return _command(memcacheConstants.CMD_DELETE, escape_key(key))
    return _command(memcacheConstants.CMD_DELETE, escape_key(key), time)


def encode_arithmetic(verb, key, delta):
    return _command(verb, escape_key(key), delta)


def encode_touch(key, exptime):
    return _command(memcacheConstants.CMD_TOUCH, escape_key(key), exptime)


def encode_flush_all(time=None):
    if time is None:
        return _command(memcacheConstants.CMD_FLUSH_ALL)
    return _command(memcacheConstants.CMD_FLUSH_ALL, time)


def encode_stats(args=None):
    if args is None:
        return _command(memcacheConstants.CMD_STATS)
    return _command(memcacheConstants.CMD_STATS, args)


def encode_version():
    return _command(memcacheConstants.CMD_VERSION)


def encode_verbosity(level):
    return _command(memcacheConstants.CMD_VERBOSITY, level)


def encode_quit():
    return _command(memcacheConstants.CMD_QUIT)


def classify_line(line):
    """Classify one reply line (without CRLF) into a Reply."""
    if isinstance(line, bytes):
        line = line.decode(LINE_ENCODING, LINE_ERRORS)
    if line == memcacheConstants.RES_END:
        return Reply(memcacheConstants.REPLY_END, line, (), line)

    match = VALUE_RE.match(line)
    if match:
        key, flags, length, cas = match.groups()
        fields = (key, int(flags) % memcacheConstants.FLAGS_MASK, int(length),
                  int(cas) if cas is not None else None)
        return Reply(memcacheConstants.REPLY_VALUE, memcacheConstants.RES_VALUE, fields, line)

    if NUMERIC_RE.match(line):
        return Reply(memcacheConstants.REPLY_NUMERIC, line, (line,), line)

    token, _, rest = line.partition(" ")
    if token in memcacheConstants.STATUS_TOKENS and not rest:
        return Reply(memcacheConstants.REPLY_STATUS, token, (), line)
    if token in memcacheConstants.ERROR_TOKENS:
        return Reply(memcacheConstants.REPLY_ERROR, token, (rest,) if rest else (), line)
    return Reply(memcacheConstants.REPLY_RAW, token, tuple(rest.split(" ")) if rest else (), line)


def read_reply(transport):
    return classify_line(transport.receive_line())


def read_data(transport, length):
    """Read one data block; the CRLF closing it is part of the same read."""
    data = transport.receive_exact(length + len(CRLF))
    if data[length:] != CRLF:
        raise ProtocolError("bad data chunk", framed=False)
    return data[:length]


def _item(reply, data, with_cas):
    _, flags, _, cas = reply.fields
    if with_cas:
        return CasItem(data, flags, cas)
    return StoredItem(data, flags)


def _drain_values(transport):
    while True:
        reply = read_reply(transport)
        if reply.kind == memcacheConstants.REPLY_END:
            return
        if reply.kind == memcacheConstants.REPLY_VALUE:
            read_data(transport, reply.fields[2])
        else:
            log.debug("skipping unexpected reply line: {0}".format(reply.line))


def read_value(transport, with_cas=False):
    """Single key fetch. Returns StoredItem (CasItem), or None on a miss."""
    reply = read_reply(transport)
    if reply.kind == memcacheConstants.REPLY_END:
        return None
    if reply.kind != memcacheConstants.REPLY_VALUE:
        raise ProtocolError(reply.line)

    data = read_data(transport, reply.fields[2])
    _drain_values(transport)
    return _item(reply, data, with_cas)


def read_values(transport, as_bytes=False, with_cas=False, requested=None):
    """Multi key fetch. Returns {key: StoredItem}; misses are absent.

    ``requested`` maps wire tokens back to the keys the caller asked for, so
    each key comes back as the str or bytes object it was requested as.
    Tokens missing from it are unescaped.

    Lines that are neither VALUE headers nor END are skipped. Error lines
    raise, since the server never follows them with END.
    """
    results = {}
    while True:
        reply = read_reply(transport)
        if reply.kind == memcacheConstants.REPLY_END:
            return results
        if reply.kind == memcacheConstants.REPLY_ERROR:
            raise ProtocolError(reply.line)
        if reply.kind != memcacheConstants.REPLY_VALUE:
            log.debug("skipping unexpected reply line: {0}".format(reply.line))
            continue

        key = reply.fields[0]
        data = read_data(transport, reply.fields[2])
        if requested and key in requested:
            key = requested[key]
        else:
            key = unescape_key(key, as_bytes=as_bytes)
        results[key] = _item(reply, data, with_cas)


def read_status(transport, expected):
    """Succeeds iff the reply is exactly ``expected``; otherwise raises with the line."""
    reply = read_reply(transport)
    if reply.kind == memcacheConstants.REPLY_STATUS and reply.token == expected:
        return True
    raise ProtocolError(reply.line)


def read_numeric(transport):
    """incr/decr reply: the new counter value as text."""
    reply = read_reply(transport)
    if reply.kind != memcacheConstants.REPLY_NUMERIC:
        raise ProtocolError(reply.line)
    return reply.token


def read_stats(transport):
    lines = []
    while True:
        reply = read_reply(transport)
        if reply.kind == memcacheConstants.REPLY_END:
            return lines
        if memcacheConstants.RES_ERROR in reply.line:
            raise ProtocolError(reply.line)
        lines.append(reply.line)


def read_version(transport):
    reply = read_reply(transport)
    match = VERSION_RE.match(reply.line)
    if not match:
        raise ProtocolError(reply.line)
    return match.group(1)
