from copy import copy
import logging
import sys

import termcolor


class CCFormatter(logging.Formatter):
    level_colors = {
        logging.DEBUG: 'blue',
        logging.INFO: 'green',
        logging.WARNING: 'yellow',
        logging.ERROR: 'red',
        logging.CRITICAL: 'red',
    }

    def color_level_name(self, level_name, level_number):
        if not (colour := self.level_colors.get(level_number)):
            return str(level_name)

        return termcolor.colored(level_name, colour, attrs=['bold'])

    def formatMessage(self, record):
        record_copy = copy(record)
        levelname = record_copy.levelname
        if sys.stdout.isatty():
            levelname = self.color_level_name(levelname, record_copy.levelno)
        record_copy.__dict__['levelprefix'] = levelname
        return super().formatMessage(record_copy)


# loggers of third-party libraries that are too chatty on INFO / DEBUG
noisy_loggers = (
    'git',
    'urllib3',
)


def configure_default_logging(
    stdout_level=None,
    force=True,
    custom_format_string: str = '',
):
    if not stdout_level:
        stdout_level = logging.INFO

    # make sure to have a clean root logger (in case setup is called multiple times)
    if force:
        handlers = logging.root.handlers
        for h in handlers:
            logging.root.removeHandler(h)
            h.close()

    sh = logging.StreamHandler()
    sh.setLevel(stdout_level)
    sh.setFormatter(CCFormatter(fmt=custom_format_string or default_fmt_string()))

    logging.root.addHandler(hdlr=sh)
    logging.root.setLevel(level=stdout_level)

    for name in noisy_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def default_fmt_string():
    return '%(asctime)s [%(levelprefix)s] %(name)s: %(message)s'
