"""
Percent-escaping of keys for the memcached text protocol.

Every byte outside ``A-Za-z0-9-_.~`` is written as ``%XX`` so a key can never
carry whitespace or control bytes into a command line.
"""

from urllib.parse import quote, unquote, unquote_to_bytes

KEY_ENCODING = "utf-8"
KEY_ERRORS = "surrogateescape"


def escape_key(key):
    """Return the wire token for a ``str`` or ``bytes`` key."""
    if isinstance(key, bytes):
        return quote(key, safe="")
    return quote(str(key), safe="", encoding=KEY_ENCODING, errors=KEY_ERRORS)


def unescape_key(token, as_bytes=False):
    """Inverse of :func:`escape_key`."""
    if isinstance(token, bytes):
        token = token.decode("ascii", KEY_ERRORS)
    if as_bytes:
        return unquote_to_bytes(token)
    return unquote(token, encoding=KEY_ENCODING, errors=KEY_ERRORS)
