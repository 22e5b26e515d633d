import logging
import logging.config

LOGGER_NAME = "mcascii"

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "fatal": logging.FATAL,
}


class Logger:

    _logger = None

    @staticmethod
    def stop_logger():
        Logger._logger = None

    @staticmethod
    def get_logger():
        if Logger._logger is None:
            Logger._logger = logging.getLogger(LOGGER_NAME)
        return Logger._logger

    @staticmethod
    def start_logger(log_level=None, log_config_file=None):
        # create logger
        if log_config_file:
            logging.config.fileConfig(log_config_file, disable_existing_loggers=False)
        log = Logger.get_logger()
        set_log_level(log, log_level)
        return log


def set_log_level(log, log_level):
    if log_level:
        log.setLevel(LOG_LEVELS.get(log_level.lower(), logging.NOTSET))
    else:
        log.setLevel(logging.NOTSET)


def create_log_file(log_config_file_name, log_file_name, level,
                    template="logging.conf.sample"):
    """Render the logging ini template with a level and a log file."""
    with open(template) as tmpl_log_file, open(log_config_file_name, "w") as log_file:
        for line in tmpl_log_file:
            newline = line.replace("@@LEVEL@@", level.upper())
            newline = newline.replace("@@FILENAME@@", log_file_name.replace('\\', '/'))
            log_file.write(newline)
    return log_config_file_name
