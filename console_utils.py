import threading
from enum import Enum
from typing import Optional
from colorama import Fore, Style

from services.interfaces import IMessenger


class MessageLevel(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ConsoleMessenger(IMessenger):
    """Colored console output for the worker's startup and shutdown messages.

    Job-level events go through ``BackupLogger``; this class is only for what
    an operator reads when starting the worker.
    """

    _color_map = {
        MessageLevel.INFO: Fore.CYAN,
        MessageLevel.SUCCESS: Fore.GREEN,
        MessageLevel.WARNING: Fore.YELLOW,
        MessageLevel.ERROR: Fore.RED,
    }
    _prefix_map = {
        MessageLevel.INFO: "",
        MessageLevel.SUCCESS: "✓ ",
        MessageLevel.WARNING: "[WARNING] ",
        MessageLevel.ERROR: "✗ ",
    }

    def __init__(self, enable_colors: bool = True):
        self.enable_colors = enable_colors
        self._lock = threading.Lock()

    def _format(self, message: str, level: MessageLevel) -> str:
        text = f"{self._prefix_map[level]}{message}"
        if not self.enable_colors:
            return text
        return f"{self._color_map[level]}{text}{Style.RESET_ALL}"

    def print_colored(self, message: str, level: MessageLevel = MessageLevel.INFO) -> None:
        with self._lock:
            print(self._format(message, level), flush=True)

    def info(self, message: str) -> None:
        self.print_colored(message, MessageLevel.INFO)

    def success(self, message: str) -> None:
        self.print_colored(message, MessageLevel.SUCCESS)

    def warning(self, message: str) -> None:
        self.print_colored(message, MessageLevel.WARNING)

    def error(self, message: str) -> None:
        self.print_colored(message, MessageLevel.ERROR)

    def section_header(self, title: str) -> None:
        separator = "=" * len(title)
        self.print_colored(f"\n{separator}\n{title}\n{separator}", MessageLevel.INFO)

    def config_item(self, key: str, value, mask_value: bool = False) -> None:
        if mask_value and value:
            display_value = "***"
        else:
            display_value = value if value not in (None, "") else "(not set)"
        if self.enable_colors:
            display_value = f"{Fore.GREEN}{display_value}{Style.RESET_ALL}"
        self.print_colored(f"  {key}: {display_value}", MessageLevel.INFO)


_global_messenger: Optional[ConsoleMessenger] = None


def get_messenger() -> ConsoleMessenger:
    global _global_messenger
    if _global_messenger is None:
        _global_messenger = ConsoleMessenger()
    return _global_messenger


def configure_messenger(enable_colors: bool = True) -> ConsoleMessenger:
    global _global_messenger
    _global_messenger = ConsoleMessenger(enable_colors=enable_colors)
    return _global_messenger
