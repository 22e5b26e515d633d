"""
Errors raised by the memcached ascii client.
"""

import memcacheConstants


def error_to_str(status):
    return memcacheConstants.ERROR_NAMES.get(status, "unknown error")


class MemcachedError(Exception):
    """Error raised when a command fails."""

    def __init__(self, status, msg=None):
        supermsg = 'Memcached error #' + repr(status) + ' ' + repr(error_to_str(status))
        if msg:
            supermsg += ":  " + str(msg)
        Exception.__init__(self, supermsg)

        self.status = status
        self.msg = msg

    def __repr__(self):
        return "<MemcachedError #%d ``%s''>" % (self.status, self.msg)


class NotInitializedError(MemcachedError):
    """No connection is attached to the client."""

    def __init__(self, msg="not initialized"):
        MemcachedError.__init__(self, memcacheConstants.ERR_NOT_INITIALIZED, msg)


class TransportError(MemcachedError, EOFError):
    """Connect, send, receive or close failed; timeouts included."""

    def __init__(self, msg):
        MemcachedError.__init__(self, memcacheConstants.ERR_TRANSPORT, msg)


class ProtocolError(MemcachedError):
    """The server answered with a line the command did not expect.

    ``line`` is the reply exactly as received, without the line terminator.
    ``framed`` is False when the stream position is no longer known, in which
    case the connection must not be used again.
    """

    def __init__(self, line, framed=True):
        MemcachedError.__init__(self, memcacheConstants.ERR_PROTOCOL, line)
        self.line = line
        self.framed = framed
