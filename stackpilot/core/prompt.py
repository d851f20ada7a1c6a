"""Interactive confirmation before mutating runs."""

import sys


def is_interactive() -> bool:
    return sys.stdin.isatty()


def ask_continue(message: str) -> bool:
    """Blocking yes/no prompt; anything but y/yes declines."""
    try:
        answer = input(f"{message}[y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")
