"""
Console output helpers.

Status lines carry a fixed width prefix so that messages line up, and the
style helpers wrap text in ANSI codes through colorama.
"""

from colorama import init, Fore, Style

# Initialize colorama
init()

ITALIC = '\033[3m'
UNDERLINE = '\033[4m'


def _status(color, label, message, *args):
    if args:
        message = message % args
    print(f"{color}{label}{Style.RESET_ALL}{message}")


def info(message, *args):
    _status(Fore.BLUE, '[INFO]    | ', message, *args)


def warn(message, *args):
    _status(Fore.YELLOW, '[WARNING] | ', message, *args)


def error(message, *args):
    _status(Fore.RED, '[ERROR]   | ', message, *args)


def success(message, *args):
    _status(Fore.GREEN, '[SUCCESS] | ', message, *args)


def bold(value):
    return f"{Style.BRIGHT}{value}{Style.RESET_ALL}"


def italic(value):
    return f"{ITALIC}{value}{Style.RESET_ALL}"


def underline(value):
    return f"{UNDERLINE}{value}{Style.RESET_ALL}"


def red(value):
    return f"{Fore.RED}{value}{Style.RESET_ALL}"


def green(value):
    return f"{Fore.GREEN}{value}{Style.RESET_ALL}"
