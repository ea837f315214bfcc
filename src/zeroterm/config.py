# =============================================================================
# Configuration Management
# =============================================================================
# Handles loading, saving, and validating zeroterm configuration.
#
# XDG Base Directory Compliance (https://specifications.freedesktop.org/basedir-spec/):
#   - Config:  $XDG_CONFIG_HOME/zeroterm/  (default: ~/.config/zeroterm/)
#   - State:   $XDG_STATE_HOME/zeroterm/   (default: ~/.local/state/zeroterm/)
#
# Files:
#   - config.toml: User configuration (accounts, preferences)
#   - debug.log: Log output (in state directory)
#
# zeroterm keeps no local mail cache, so there are no data or cache
# directories.
# =============================================================================

import os
import tomllib  # Built into Python 3.11+
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w  # For writing TOML (tomllib is read-only)

from zeroterm.core import Account
from zeroterm.core.grouping import GroupMode
from zeroterm.core.navigation import NavigatorSettings


# =============================================================================
# XDG Directory Management
# =============================================================================

# Application identifier used in all XDG paths
APP_NAME = "zeroterm"


def get_xdg_config_home() -> Path:
    """
    Returns the XDG config directory for zeroterm.

    Respects $XDG_CONFIG_HOME if set, otherwise uses ~/.config/zeroterm/
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base = Path(xdg_config)
    else:
        base = Path.home() / ".config"
    return base / APP_NAME


def get_xdg_state_home() -> Path:
    """
    Returns the XDG state directory for zeroterm.

    Respects $XDG_STATE_HOME if set, otherwise uses ~/.local/state/zeroterm/
    This is where the log file lives.
    """
    xdg_state = os.environ.get("XDG_STATE_HOME")
    if xdg_state:
        base = Path(xdg_state)
    else:
        base = Path.home() / ".local" / "state"
    return base / APP_NAME


# =============================================================================
# Configuration Data Structures
# =============================================================================

@dataclass
class BehaviorConfig:
    """
    How the triage core behaves.

    Attributes:
        protect_threads: Require a multi-message thread to be opened in
                         thread view before archiving/deleting it from a
                         sender view.
        grouping_default_mode: Grouping mode at start-up ("address" or "domain").
    """
    protect_threads: bool = True
    grouping_default_mode: str = "address"


@dataclass
class UIConfig:
    """
    Configuration for the user interface.

    Attributes:
        date_format: Format string for displaying dates (strftime format).
        time_format: Format string for displaying times of today's mail.
    """
    date_format: str = "%b %d"
    time_format: str = "%H:%M"


# Account settings accepted under [accounts.<name>], with their types
ACCOUNT_FIELDS: dict[str, type] = {
    "email": str,
    "imap_host": str,
    "imap_port": int,
    "imap_security": str,
    "inbox_folder": str,
    "archive_folder": str,
    "trash_folder": str,
    "enabled": bool,
}

SECURITY_MODES = ("ssl", "starttls")


@dataclass
class Config:
    """
    Main configuration container for zeroterm.

    Attributes:
        default_account: Name of the account to open on startup.
        accounts: Dictionary of configured email accounts, keyed by name.
        behavior: Thread protection and grouping settings.
        ui: User interface configuration.
        path: File the configuration was loaded from (None for defaults).

    Usage:
        >>> config = Config.load()
        >>> config.active_account().email
        'user@gmail.com'
    """
    # General settings
    default_account: str = ""

    # Account configurations (name -> Account)
    accounts: dict[str, Account] = field(default_factory=dict)

    behavior: BehaviorConfig = field(default_factory=BehaviorConfig)
    ui: UIConfig = field(default_factory=UIConfig)

    path: Path | None = None

    # -------------------------------------------------------------------------
    # File Paths
    # -------------------------------------------------------------------------

    @staticmethod
    def config_file_path() -> Path:
        """Returns the path to the main config file."""
        return get_xdg_config_home() / "config.toml"

    @staticmethod
    def log_file_path() -> Path:
        """Returns the path to the log file."""
        return get_xdg_state_home() / "debug.log"

    # -------------------------------------------------------------------------
    # Loading and Saving
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """
        Load configuration from a config file.

        If the default config file doesn't exist, returns default
        configuration. An explicitly given path must exist.

        Args:
            path: Config file to read (default: the XDG location).

        Returns:
            Loaded Config object.

        Raises:
            ConfigError: If the config file is missing (explicit path) or invalid.
        """
        config_path = path or cls.config_file_path()

        if not config_path.exists():
            if path is not None:
                raise ConfigError(f"Config file not found: {config_path}")
            # No config file yet - return defaults
            return cls()

        # Load and parse the TOML file
        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

        config = cls._from_dict(data)
        config.path = config_path
        return config

    def save(self, path: Path | None = None) -> Path:
        """
        Save configuration to a config file.

        Creates the config directory if it doesn't exist.

        Returns:
            The path written.
        """
        config_path = path or self.path or self.config_file_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "wb") as f:
            tomli_w.dump(self._to_dict(), f)

        self.path = config_path
        return config_path

    @classmethod
    def starter(cls) -> "Config":
        """A starter configuration with one example Gmail account."""
        return cls(
            default_account="personal",
            accounts={"personal": Account(name="personal", email="you@gmail.com")},
        )

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """
        Create a Config object from a dictionary (parsed TOML).

        Raises:
            ConfigError: If a value has the wrong type or is not allowed.
        """
        config = cls()

        # General settings
        general = _section(data, "general")
        config.default_account = _get(general, "general", "default_account", str, "")

        # Behavior settings
        behavior = _section(data, "behavior")
        mode = _get(behavior, "behavior", "grouping_default_mode", str, "address")
        try:
            GroupMode.parse(mode)
        except ValueError as e:
            raise ConfigError(f"behavior.grouping_default_mode: {e}") from e
        config.behavior = BehaviorConfig(
            protect_threads=_get(behavior, "behavior", "protect_threads", bool, True),
            grouping_default_mode=mode,
        )

        # UI settings
        ui = _section(data, "ui")
        config.ui = UIConfig(
            date_format=_get(ui, "ui", "date_format", str, "%b %d"),
            time_format=_get(ui, "ui", "time_format", str, "%H:%M"),
        )

        # Accounts - each key under [accounts] is an account name
        accounts_data = _section(data, "accounts")
        for name, acct_data in accounts_data.items():
            where = f"accounts.{name}"
            if not isinstance(acct_data, dict):
                raise ConfigError(f"[{where}] must be a table")

            unknown = set(acct_data) - set(ACCOUNT_FIELDS)
            if unknown:
                raise ConfigError(f"[{where}] unknown setting(s): {', '.join(sorted(unknown))}")

            values = {
                key: _get(acct_data, where, key, expected, None)
                for key, expected in ACCOUNT_FIELDS.items()
                if key in acct_data
            }
            if not values.get("email"):
                raise ConfigError(f"[{where}] email is required")
            if values.get("imap_security", "ssl") not in SECURITY_MODES:
                raise ConfigError(
                    f"[{where}] imap_security must be one of {', '.join(SECURITY_MODES)}"
                )

            config.accounts[name] = Account(name=name, **values)

        return config

    def _to_dict(self) -> dict[str, Any]:
        """
        Convert Config to a dictionary for TOML serialization.
        """
        data: dict[str, Any] = {}

        data["general"] = {
            "default_account": self.default_account,
        }

        data["behavior"] = {
            "protect_threads": self.behavior.protect_threads,
            "grouping_default_mode": self.behavior.grouping_default_mode,
        }

        data["ui"] = {
            "date_format": self.ui.date_format,
            "time_format": self.ui.time_format,
        }

        data["accounts"] = {}
        for name, account in self.accounts.items():
            data["accounts"][name] = {
                "email": account.email,
                "imap_host": account.imap_host,
                "imap_port": account.imap_port,
                "imap_security": account.imap_security,
                "inbox_folder": account.inbox_folder,
                "archive_folder": account.archive_folder,
                "trash_folder": account.trash_folder,
                "enabled": account.enabled,
            }

        return data

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def active_account(self, name: str | None = None) -> Account:
        """
        Resolve the one mailbox this session works on.

        Order: the explicit name, then default_account, then the
        alphabetically first enabled account.

        Raises:
            ConfigError: If the name is unknown or no account is usable.
        """
        wanted = name or self.default_account
        if wanted:
            account = self.accounts.get(wanted)
            if account is None:
                raise ConfigError(f"Unknown account: {wanted!r}")
            if not account.enabled:
                raise ConfigError(f"Account {wanted!r} is disabled")
            return account

        enabled = sorted(n for n, a in self.accounts.items() if a.enabled)
        if not enabled:
            raise ConfigError(
                f"No accounts configured. Run `zeroterm --init-config` and edit "
                f"{self.config_file_path()}, or try `zeroterm --demo`."
            )
        return self.accounts[enabled[0]]

    def navigator_settings(self) -> NavigatorSettings:
        """The settings the navigation core consumes."""
        return NavigatorSettings(
            protect_threads=self.behavior.protect_threads,
            grouping_mode=GroupMode.parse(self.behavior.grouping_default_mode),
        )


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table")
    return section


def _get(section: dict[str, Any], where: str, key: str, expected: type, default: Any) -> Any:
    """Read one setting, checking its type (bool is not accepted as int)."""
    if key not in section:
        return default
    value = section[key]
    if isinstance(value, bool) and expected is not bool:
        raise ConfigError(f"{where}.{key} must be {expected.__name__}, got {value!r}")
    if not isinstance(value, expected):
        raise ConfigError(f"{where}.{key} must be {expected.__name__}, got {value!r}")
    return value


# =============================================================================
# Exceptions
# =============================================================================

class ConfigError(Exception):
    """Raised when there's an error loading or parsing configuration."""
    pass


# =============================================================================
# Utility Functions
# =============================================================================

def print_paths() -> None:
    """
    Print all XDG paths for debugging.
    Useful for users wondering where their config and logs are stored.
    """
    print(f"Config:  {get_xdg_config_home()}")
    print(f"State:   {get_xdg_state_home()}")
    print()
    print(f"Config file:  {Config.config_file_path()}")
    print(f"Log file:     {Config.log_file_path()}")
