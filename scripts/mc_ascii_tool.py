#!/usr/bin/env python
import os
import sys

sys.path.extend(('.', 'lib', os.path.join(os.path.dirname(os.path.abspath(__file__)), '..', 'lib')))
import logger
import memcacheConstants
from mc_ascii_client import MemcachedAsciiClient
from mc_config import MemcachedInputParser
from mc_errors import MemcachedError


USAGE = """Usage: mc_ascii_tool.py [-i ini] [-s host[:port] | -s unix:path] [-p k=v,...] [-l level] command [args]
    -i ini file with a [memcached] section
    -s The hostname:port (or unix:/path) where the memcached server is running
    -p Override settings, e.g. -p timeout=5,pool_size=10
    -l Log level (debug, info, warning, error)

    commands:
       get <key> [<key> ...]
       gets <key> [<key> ...]
       set|add|replace|append|prepend <key> <value> [<exptime> [<flags>]]
       cas <key> <value> <cas> [<exptime> [<flags>]]
       touch <key> <exptime>
       delete <key> [<time>]
       incr|decr <key> <delta>
       flush_all [<time>]
       stats [<args>]
       version
       verbosity <level>"""


def usage(err=None):
    if err:
        print("Error: {0}\n".format(err))
    print(USAGE)
    sys.exit(1 if err else 0)


def _print_item(key, item):
    if item is None:
        print("{0}: (miss)".format(key))
        return
    value = item.value.decode("utf-8", "backslashreplace")
    if len(item) == 3:
        print("{0}: flags={1} cas={2} {3}".format(key, item.flags, item.cas, value))
    else:
        print("{0}: flags={1} {2}".format(key, item.flags, value))


def run_command(client, command, args):
    if command in ("get", "gets"):
        if not args:
            usage("{0} needs at least one key".format(command))
        if len(args) == 1:
            fetch = client.get if command == "get" else client.gets
            _print_item(args[0], fetch(args[0]))
        else:
            fetch = client.get_multi if command == "get" else client.gets_multi
            items = fetch(args)
            for key in args:
                _print_item(key, items.get(key))
    elif command in memcacheConstants.STORE_COMMANDS:
        if len(args) < 2:
            usage("{0} needs a key and a value".format(command))
        exptime = int(args[2]) if len(args) > 2 else 0
        flags = int(args[3]) if len(args) > 3 else 0
        getattr(client, command)(args[0], args[1], exptime, flags)
        print("STORED")
    elif command == "cas":
        if len(args) < 3:
            usage("cas needs a key, a value and a cas unique")
        exptime = int(args[3]) if len(args) > 3 else 0
        flags = int(args[4]) if len(args) > 4 else 0
        client.cas(args[0], args[1], int(args[2]), exptime, flags)
        print("STORED")
    elif command == "touch":
        if len(args) != 2:
            usage("touch needs a key and an exptime")
        client.touch(args[0], int(args[1]))
        print("TOUCHED")
    elif command == "delete":
        if not args:
            usage("delete needs a key")
        client.delete(args[0], args[1] if len(args) > 1 else None)
        print("DELETED")
    elif command in ("incr", "decr"):
        if len(args) != 2:
            usage("{0} needs a key and a delta".format(command))
        print(getattr(client, command)(args[0], args[1]))
    elif command == "flush_all":
        client.flush_all(args[0] if args else None)
        print("OK")
    elif command == "stats":
        for line in client.stats(" ".join(args) if args else None):
            print(line)
    elif command == "version":
        print(client.version())
    elif command == "verbosity":
        if len(args) != 1:
            usage("verbosity needs a level")
        client.verbosity(args[0])
        print("OK")
    else:
        usage("unknown command {0}".format(command))


def main(argv):
    input = MemcachedInputParser.get_input(argv)
    if input is None:
        usage()
    if not input.args:
        usage("no command given")
    log = logger.Logger.start_logger(input.param("log_level", None),
                                     input.param("log_config", None))

    options = input.connect_options()
    server = input.server
    with MemcachedAsciiClient(timeout=options.timeout, keepalive=input.keepalive_options()) as client:
        try:
            client.connect(server.host, server.port, path=server.path or None, options=options)
            run_command(client, input.args[0], input.args[1:])
        except MemcachedError as e:
            log.error("{0} failed: {1}".format(input.args[0], e))
            print("ERROR: {0}".format(e.msg))
            return 2
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
