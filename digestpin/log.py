from copy import copy
import logging
import sys


class Bcolors:
    RESET_ALL = '\033[0m'
    BOLD = '\033[1m'
    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    BLUE = '\033[34m'


class LevelPrefixFormatter(logging.Formatter):
    '''
    adds a `levelprefix` attribute to log-records, which is the level-name, coloured by level if
    writing to a terminal
    '''
    level_colors = {
        logging.DEBUG: Bcolors.BLUE,
        logging.INFO: Bcolors.GREEN,
        logging.WARNING: Bcolors.YELLOW,
        logging.ERROR: Bcolors.RED,
    }

    def color_level_name(self, level_name, level_number):
        if not (color := self.level_colors.get(level_number)):
            return str(level_name)

        return f'{Bcolors.BOLD}{color}{level_name}{Bcolors.RESET_ALL}'

    def formatMessage(self, record):
        record_copy = copy(record)
        levelname = record_copy.levelname
        if sys.stderr.isatty():
            levelname = self.color_level_name(levelname, record_copy.levelno)
        record_copy.__dict__['levelprefix'] = levelname
        return super().formatMessage(record_copy)


def default_fmt_string(print_thread_id: bool=False):
    ptid = print_thread_id
    return f'%(asctime)s [%(levelprefix)s] {"TID:%(thread)d " if ptid else ""}%(name)s: %(message)s'


def configure_default_logging(
    stdout_level=None,
    force=True,
    print_thread_id=False,
    custom_format_string: str = '',
):
    if not stdout_level:
        stdout_level = logging.INFO

    # make sure to have a clean root logger (in case setup is called multiple times)
    if force:
        for h in logging.root.handlers[:]:
            logging.root.removeHandler(h)
            h.close()

    sh = logging.StreamHandler()
    sh.setLevel(stdout_level)

    fmt = custom_format_string or default_fmt_string(print_thread_id=print_thread_id)
    sh.setFormatter(LevelPrefixFormatter(fmt=fmt))

    logging.root.addHandler(hdlr=sh)
    logging.root.setLevel(level=stdout_level)

    # too verbose
    logging.getLogger('urllib3').setLevel(logging.WARNING)
