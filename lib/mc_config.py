import configparser
import getopt
import re

import logger
import memcacheConstants

#class to parse the client settings either from command line or from an ini file
#
#  [memcached]
#  host:127.0.0.1
#  port:11211
#  #path:/var/run/memcached.sock
#  timeout:5
#  keepalive_timeout:60
#  pool_size:30
#
# -p k=v,k2=v2 overrides any of those (and carries free-form params)


class ConnectOptions(object):
    """Options for a single connect call.

    ``pool`` names the keep-alive pool the connection is taken from and
    released into; by default it is derived from the address.
    """

    def __init__(self, timeout=memcacheConstants.DEFAULT_TIMEOUT, pool=None):
        self.timeout = timeout
        self.pool = pool

    def __repr__(self):
        return "ConnectOptions(timeout={0}, pool={1})".format(self.timeout, self.pool)


class KeepaliveOptions(object):
    """Options used when a connection goes back to its keep-alive pool.

    An ``idle_timeout`` of 0 keeps idle sockets forever.
    """

    def __init__(self, idle_timeout=memcacheConstants.DEFAULT_KEEPALIVE_TIMEOUT,
                 pool_size=memcacheConstants.DEFAULT_POOL_SIZE):
        self.idle_timeout = idle_timeout
        self.pool_size = pool_size

    def __repr__(self):
        return "KeepaliveOptions(idle_timeout={0}, pool_size={1})".format(self.idle_timeout,
                                                                           self.pool_size)


class MemcachedInputServer(object):
    def __init__(self):
        self.host = memcacheConstants.DEFAULT_HOST
        self.port = memcacheConstants.DEFAULT_PORT
        self.path = ''

    def __str__(self):
        if self.path:
            return "unix:{0}".format(self.path)
        return "{0}:{1}".format(self.host, self.port)

    __repr__ = __str__


class MemcachedInput(object):

    def __init__(self):
        self.server = MemcachedInputServer()
        self.params = {}
        self.args = []

    def param(self, name, *args):
        """Returns the paramater or a default value

        The first parameter is the name of property, the second
        parameter is the default value. If not default value is given,
        an exception will be raised.
        """
        if name in self.params:
            return MemcachedInput._parse_param(self.params[name])
        elif len(args) == 1:
            return args[0]
        else:
            raise Exception("Parameter `{}` must be set "
                            "in the client configuration".format(name))

    @staticmethod
    def _parse_param(value):
        if not isinstance(value, str):
            return value

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        if value.lower() == "false":
            return False

        if value.lower() == "true":
            return True

        return value

    def connect_options(self):
        return ConnectOptions(timeout=self.param("timeout", memcacheConstants.DEFAULT_TIMEOUT),
                              pool=self.param("pool", None))

    def keepalive_options(self):
        return KeepaliveOptions(
            idle_timeout=self.param("keepalive_timeout", memcacheConstants.DEFAULT_KEEPALIVE_TIMEOUT),
            pool_size=self.param("pool_size", memcacheConstants.DEFAULT_POOL_SIZE))


# we parse this and then pass it on to the client and the tool
class MemcachedInputParser():

    SECTION = "memcached"

    @staticmethod
    def get_input(argv):
        #if file is given use parse_from_file
        #-s overrides the address from the file, -p any other setting
        (opts, args) = getopt.getopt(argv[1:], 'hi:p:s:l:', [])
        params = {}
        ini_file = ''
        server = None
        for option, argument in opts:
            if option == '-h':
                return None
            if option == '-i':
                ini_file = argument
            if option == '-s':
                server = MemcachedInputParser.handle_command_line_s(argument)
            if option == '-l':
                params["log_level"] = argument
            if option == '-p':
                params.update(MemcachedInputParser.handle_command_line_p(argument))

        if ini_file:
            input = MemcachedInputParser.parse_from_file(ini_file)
        else:
            input = MemcachedInput()
        if server is not None:
            input.server = server
        input.params.update(params)

        if "host" in params:
            input.server.host = params["host"]
        if "port" in params:
            input.server.port = int(params["port"])
        if "path" in params:
            input.server.path = params["path"]

        input.args = args
        return input

    @staticmethod
    def handle_command_line_p(argument):
        # takes in a string of the form "p1=v1,v2,p2=v3,p3=v4,v5,v6"
        # converts to a dictionary of the form {"p1":"v1,v2","p2":"v3","p3":"v4,v5,v6"}
        params = {}
        argument_split = [a.strip() for a in re.split("[,]?([^,=]+)=", argument)[1:]]
        pairs = dict(list(zip(argument_split[::2], argument_split[1::2])))
        for name, value in pairs.items():
            argument_list = [a.strip() for a in value.split(",")]
            if len(argument_list) > 1:
                params[name] = argument_list
            else:
                params[name] = argument_list[0]
        return params

    @staticmethod
    def parse_from_file(file):
        input = MemcachedInput()
        config = configparser.ConfigParser()
        if not config.read(file):
            log = logger.Logger.get_logger()
            log.error("unable to read config file {0}".format(file))
            raise IOError("unable to read config file {0}".format(file))
        if config.has_section(MemcachedInputParser.SECTION):
            for option in config.options(MemcachedInputParser.SECTION):
                input.params[option] = config.get(MemcachedInputParser.SECTION, option)
        server = input.server
        server.host = input.params.get("host", server.host)
        server.port = int(input.params.get("port", server.port))
        server.path = input.params.get("path", server.path)
        return input

    @staticmethod
    def handle_command_line_s(argument):
        #host:port or unix:/path/to/socket
        server = MemcachedInputServer()
        if argument.startswith("unix:"):
            server.path = argument[len("unix:"):]
        elif argument.find(":") == -1:
            server.host = argument
        else:
            info = argument.rsplit(":", 1)
            server.host = info[0]
            server.port = int(info[1])
        return server
