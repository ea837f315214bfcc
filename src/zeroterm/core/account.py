# =============================================================================
# Account Model
# =============================================================================
# Represents the mailbox zeroterm works on. Only IMAP details are needed:
# zeroterm never sends mail.
#
# IMPORTANT: Passwords are NOT stored here. They are retrieved from the system
# keyring at runtime using the 'keyring' library. This keeps credentials
# (Gmail App Passwords, usually) out of config files.
# =============================================================================

from dataclasses import dataclass


@dataclass
class Account:
    """
    An email account with IMAP configuration.

    Attributes:
        name: A unique identifier for this account (e.g., "personal", "work").
              Used as the key in config files and for keyring lookups.
        email: The email address (also the IMAP login).

        imap_host: Hostname of the IMAP server (e.g., "imap.gmail.com").
        imap_port: Port for IMAP connection (993 for SSL, 143 for STARTTLS).
        imap_security: Connection security method ("ssl" or "starttls").

        inbox_folder: Folder that is triaged.
        archive_folder: Where archived messages are moved to.
                        Gmail's "All Mail" keeps the message but drops
                        the Inbox label.
        trash_folder: Where deleted messages are moved to.

        enabled: Whether this account may be selected.

    Example:
        >>> account = Account(name="personal", email="user@gmail.com")
        >>> account.keyring_service
        'zeroterm:personal'
    """

    # Account identification
    name: str
    email: str

    # IMAP configuration
    imap_host: str = "imap.gmail.com"
    imap_port: int = 993                # Default to SSL port
    imap_security: str = "ssl"          # "ssl" or "starttls"

    # Folders used for triage
    inbox_folder: str = "INBOX"
    archive_folder: str = "[Gmail]/All Mail"
    trash_folder: str = "[Gmail]/Trash"

    enabled: bool = True

    @property
    def keyring_service(self) -> str:
        """
        Returns the service name used for keyring password storage.

        Passwords can be managed via the keyring CLI:
            keyring set zeroterm:personal user@gmail.com
        """
        return f"zeroterm:{self.name}"

    def __str__(self) -> str:
        """Human-readable representation showing account name and email."""
        return f"{self.name} <{self.email}>"
