#!/usr/bin/env python
"""
Memcached text protocol constants.
"""

CRLF = b"\r\n"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 11211
# seconds
DEFAULT_TIMEOUT = 30

# keep-alive pool defaults, seconds / sockets per pool
DEFAULT_KEEPALIVE_TIMEOUT = 60
DEFAULT_POOL_SIZE = 30

# Command verbs
CMD_GET = "get"
CMD_GETS = "gets"
CMD_SET = "set"
CMD_ADD = "add"
CMD_REPLACE = "replace"
CMD_APPEND = "append"
CMD_PREPEND = "prepend"
CMD_CAS = "cas"
CMD_DELETE = "delete"
CMD_INCR = "incr"
CMD_DECR = "decr"
CMD_TOUCH = "touch"
CMD_FLUSH_ALL = "flush_all"
CMD_STATS = "stats"
CMD_VERSION = "version"
CMD_VERBOSITY = "verbosity"
CMD_QUIT = "quit"

STORE_COMMANDS = (CMD_SET, CMD_ADD, CMD_REPLACE, CMD_APPEND, CMD_PREPEND)

# Reply tokens
RES_END = "END"
RES_VALUE = "VALUE"
RES_STORED = "STORED"
RES_NOT_STORED = "NOT_STORED"
RES_EXISTS = "EXISTS"
RES_NOT_FOUND = "NOT_FOUND"
RES_DELETED = "DELETED"
RES_TOUCHED = "TOUCHED"
RES_OK = "OK"
RES_ERROR = "ERROR"
RES_CLIENT_ERROR = "CLIENT_ERROR"
RES_SERVER_ERROR = "SERVER_ERROR"

STATUS_TOKENS = (RES_STORED, RES_NOT_STORED, RES_EXISTS, RES_NOT_FOUND,
                 RES_DELETED, RES_TOUCHED, RES_OK)
ERROR_TOKENS = (RES_ERROR, RES_CLIENT_ERROR, RES_SERVER_ERROR)

# Reply kinds produced by the line classifier
REPLY_STATUS = "status"
REPLY_VALUE = "value"
REPLY_ERROR = "error"
REPLY_END = "end"
REPLY_NUMERIC = "numeric"
REPLY_RAW = "raw"

# Client states
STATE_UNINITIALIZED = "uninitialized"
STATE_CONNECTED = "connected"

# Error statuses carried by MemcachedError
ERR_NOT_INITIALIZED = 0x01
ERR_TRANSPORT = 0x02
ERR_PROTOCOL = 0x03

ERROR_NAMES = {
    ERR_NOT_INITIALIZED: "not initialized",
    ERR_TRANSPORT: "transport error",
    ERR_PROTOCOL: "protocol error",
}

# Flags are 32 bit unsigned on the wire
FLAGS_MASK = 2 ** 32
