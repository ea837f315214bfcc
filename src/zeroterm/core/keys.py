# =============================================================================
# Key Translation
# =============================================================================
# Turns terminal key presses into the abstract input events the navigator
# understands. The bindings are the user contract:
#
#   j / ↓          down              a / d     archive / delete one email
#   k / ↑          up                A / D     archive / delete group/thread
#   g g / Home     top               Enter     open / confirm
#   G / End        bottom            q         back (quit from group list)
#   Ctrl+d / PgDn  half page down    Esc       cancel / back
#   Ctrl+u / PgUp  half page up      y / n     confirm / cancel a prompt
#   /              search            m         toggle address/domain mode
#   r              refresh           ?         help
#
# While a search query is being typed, printable characters are text, not
# commands.
# =============================================================================

from dataclasses import dataclass
from enum import Enum, auto


class Key(Enum):
    """Abstract input events."""
    DOWN = auto()
    UP = auto()
    TOP = auto()
    BOTTOM = auto()
    HALF_PAGE_DOWN = auto()
    HALF_PAGE_UP = auto()
    SELECT = auto()         # Enter
    BACK = auto()           # q
    CANCEL = auto()         # Esc
    QUIT = auto()           # Ctrl+c, always exits
    SEARCH = auto()
    BACKSPACE = auto()
    TOGGLE_MODE = auto()
    REFRESH = auto()
    ARCHIVE = auto()        # single item
    ARCHIVE_ALL = auto()    # group or thread
    DELETE = auto()
    DELETE_ALL = auto()
    CONFIRM = auto()        # y
    DENY = auto()           # n
    HELP = auto()


@dataclass(frozen=True)
class TextInput:
    """Characters typed into the search prompt."""
    text: str


# Special keys, matched on the terminal key name
NAMED_KEYS: dict[str, Key] = {
    "down": Key.DOWN,
    "up": Key.UP,
    "home": Key.TOP,
    "end": Key.BOTTOM,
    "ctrl+d": Key.HALF_PAGE_DOWN,
    "ctrl+u": Key.HALF_PAGE_UP,
    "pagedown": Key.HALF_PAGE_DOWN,
    "pageup": Key.HALF_PAGE_UP,
    "enter": Key.SELECT,
    "escape": Key.CANCEL,
    "backspace": Key.BACKSPACE,
    "ctrl+c": Key.QUIT,
}

# Printable keys, matched on the character (case-sensitive)
CHARACTER_KEYS: dict[str, Key] = {
    "j": Key.DOWN,
    "k": Key.UP,
    "G": Key.BOTTOM,
    "q": Key.BACK,
    "/": Key.SEARCH,
    "m": Key.TOGGLE_MODE,
    "r": Key.REFRESH,
    "a": Key.ARCHIVE,
    "A": Key.ARCHIVE_ALL,
    "d": Key.DELETE,
    "D": Key.DELETE_ALL,
    "y": Key.CONFIRM,
    "Y": Key.CONFIRM,
    "n": Key.DENY,
    "N": Key.DENY,
    "?": Key.HELP,
}

# Keys that keep their meaning while typing a search query
TEXT_ENTRY_KEYS = ("enter", "escape", "backspace", "ctrl+c")


class KeyTranslator:
    """
    Stateful translator (it remembers a pending "g" for "gg").

    Usage:
        >>> translator = KeyTranslator()
        >>> translator.translate("g", "g")
        >>> translator.translate("g", "g")
        <Key.TOP: 3>
    """

    def __init__(self) -> None:
        self._pending_g = False

    def translate(
        self,
        key: str,
        character: str | None = None,
        *,
        text_entry: bool = False,
    ) -> Key | TextInput | None:
        """
        Translate one key press.

        Args:
            key: Terminal key name ("j", "down", "ctrl+d", "G", ...).
            character: The printable character, if any.
            text_entry: True while the search prompt is open.

        Returns:
            A Key, a TextInput (text entry only), or None if unbound.
        """
        if text_entry:
            self._pending_g = False
            if key in TEXT_ENTRY_KEYS:
                return NAMED_KEYS[key]
            if character and character.isprintable():
                return TextInput(character)
            return None

        if key in NAMED_KEYS:
            self._pending_g = False
            return NAMED_KEYS[key]

        if character == "g":
            if self._pending_g:
                self._pending_g = False
                return Key.TOP
            self._pending_g = True
            return None

        self._pending_g = False
        if character and character in CHARACTER_KEYS:
            return CHARACTER_KEYS[character]
        return None
