"""Paths, constants and terminal plumbing shared by every module."""

import logging
import os
import re
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Callable

import keyring
from keyring.backends import null
from platformdirs import user_data_dir
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import (
    WordCompleter,
)
from prompt_toolkit.filters import Condition
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style
from rich.console import Console
from rich.spinner import Spinner

# Default directories
APP_DIR = user_data_dir("Parley")
CONFIG_DIR = os.path.join(APP_DIR, "config")
EXPORTS_DIR = os.path.join(APP_DIR, "exports")
LOG_DIR = os.path.join(APP_DIR, "logs")
CONFIG_FILE = os.path.join(CONFIG_DIR, "settings.json")

os.makedirs(EXPORTS_DIR, exist_ok=True)
os.makedirs(CONFIG_DIR, exist_ok=True)
os.makedirs(LOG_DIR, exist_ok=True)

# Keychain entries for the token pair
KEYRING_SERVICE = "ParleyAPI"
ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"

# Characters that cannot appear in an exported file name
UNSAFE_FILENAME = re.compile(r'[<>:"/\\|?*\x00-\x1f]')

FALLBACK_REPLY = "Sorry, I encountered an error. Please try again."

# Terminal integration
CONSOLE = Console()

# Main prompt prefix
PROMPT_PREFIX = HTML("<seagreen>󰅂 </seagreen>")

# Dark style for all prompt_toolkit completers
COMPLETER_STYLER = Style.from_dict(
    {
        # Completions
        "completion-menu.completion": "bg:#202020 #ffffff",
        "completion-menu.completion.current": "bg:#024a1a #000000",  # 2E8B57
        # Tooltips
        "completion-menu.meta.completion": "bg:#202020 #aaaaaa",
        "completion-menu.meta.completion.current": "bg:#024a1a #000000",
    }
)

# Main prompt command completer
COMMAND_COMPLETER = WordCompleter(
    [
        "!admin",
        "!back",
        "!clear",
        "!config",
        "!cp",
        "!dislike",
        "!export",
        "!google",
        "!h",
        "!help",
        "!like",
        "!list",
        "!login",
        "!logout",
        "!new",
        "!open",
        "!panel",
        "!q",
        "!quit",
        "!register",
        "!search",
        "!stats",
    ],
    match_middle=True,
    WORD=True,
)

# Root prompt history, shared across the session
main_history = InMemoryHistory()

# Text typed before a shortcut fired, restored on the next root prompt
_carried_text: str = ""


def build_key_bindings(panel_open: Callable[[], bool]) -> KeyBindings:
    """Keyboard shortcuts resolve to the command they stand for.

    Escape only closes the conversation panel while `panel_open()` is true.
    """
    bindings = KeyBindings()

    def _run(event, command: str):
        global _carried_text
        _carried_text = event.app.current_buffer.text
        event.app.exit(result=command)

    @bindings.add("c-k")
    def _clear_shortcut(event):
        _run(event, "!clear")

    @bindings.add("c-_")
    def _panel_shortcut(event):
        _run(event, "!panel")

    @bindings.add("escape", filter=Condition(panel_open))
    def _close_panel_shortcut(event):
        _run(event, "!panel close")

    return bindings


# Created on first use, prompt_toolkit binds to the terminal on construction
_root_session: PromptSession | None = None


def init_logger(level: str = "ERROR"):
    """Routes logging to a dated, rotating file in LOG_DIR."""
    date_str = datetime.now().strftime("%Y%m%d")
    # Output example: parley_20251109.log
    log_path = os.path.join(LOG_DIR, f"parley_{date_str}.log")
    # Max of 3 backups, max size of 1MB
    handler = RotatingFileHandler(
        log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.ERROR),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def log_exception(e: Exception, context: str = ""):
    """Writes the full traceback of `e` to the log, with optional context."""
    import traceback

    tb = "".join(traceback.format_exception(type(e), e, e.__traceback__))
    msg = f"{context}\n{tb}" if context else tb
    logging.error(msg)


def setup_keyring_backend():
    """Falls back to the null keyring when no usable backend exists."""
    try:
        keyring.get_keyring()
    except Exception as e:
        keyring.set_keyring(null.Keyring())
        logging.error(
            f"Keyring backend failed. Falling back to NullBackend. Error: {e}"
        )


def spinner_constructor(content: str) -> Spinner:
    return Spinner(
        "moon",
        text=f"[bold medium_orchid]{content}[/bold medium_orchid]",
    )


async def root_prompt(prefix=PROMPT_PREFIX, key_bindings: KeyBindings | None = None) -> str:
    global _root_session, _carried_text
    if _root_session is None:
        _root_session = PromptSession(history=main_history)
    default, _carried_text = _carried_text, ""
    return await _root_session.prompt_async(
        prefix,
        default=default,
        key_bindings=key_bindings,
        completer=COMMAND_COMPLETER,
        style=COMPLETER_STYLER,
        complete_while_typing=False,
    )
