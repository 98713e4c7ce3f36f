# What: Coloured console output for the nextbridge CLI.
# Why: Log records carry the "[next]" prefix; CLI status lines stay human-oriented.
import sys


class Color:
    BLUE = "\033[94m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    END = "\033[0m"


def _emit(color: str, symbol: str, msg: str, stream=None) -> None:
    print(f"{color}{symbol} {msg}{Color.END}", file=stream or sys.stdout, flush=True)


def info(msg: str):
    _emit(Color.CYAN, "ℹ", msg)


def success(msg: str):
    _emit(Color.GREEN, "✅", msg)


def warning(msg: str):
    _emit(Color.YELLOW, "⚠️", msg)


def error(msg: str):
    _emit(Color.RED, "❌", msg, stream=sys.stderr)


def step(msg: str):
    _emit(Color.BLUE, "➜", f"{Color.BOLD}{msg}")


def highlight(msg: str) -> str:
    return f"{Color.BOLD}{msg}{Color.END}"


def detail(label: str, value: str):
    print(f"   • {label}: {highlight(value)}")
