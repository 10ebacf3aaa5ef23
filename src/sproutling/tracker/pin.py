"""Parent PIN storage using bcrypt hashes in the credential store."""

import bcrypt
import structlog

from sproutling.storage.credentials import CredentialStore
from sproutling.storage.errors import StorageError

logger = structlog.get_logger()

PIN_ACCOUNT = "parent_pin"
PIN_LENGTH = 4


def is_valid_pin(pin: str) -> bool:
    return len(pin) == PIN_LENGTH and pin.isascii() and pin.isdigit()


class PinVault:
    """Stores and checks the parent PIN.

    Only a bcrypt hash reaches the credential store, and the PIN is never
    logged. Credential store failures are logged and treated as "no PIN
    stored" or "not verified", so the gate fails closed.

    Args:
        credentials: Secure credential store.
        service: Fixed service identifier the PIN is filed under.
        rounds: bcrypt cost factor.
    """

    def __init__(self, credentials: CredentialStore, service: str, rounds: int = 12):
        self.credentials = credentials
        self.service = service
        self._rounds = rounds

    def has_pin(self) -> bool:
        return self._stored_hash() is not None

    def save(self, pin: str) -> bool:
        """Replace the stored PIN.

        Args:
            pin: Four numeric digits.

        Returns:
            False if the PIN is malformed or could not be stored, True once stored.
        """
        if not is_valid_pin(pin):
            logger.info("pin_rejected_format")
            return False
        hashed = bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds))
        try:
            self.credentials.delete(self.service, PIN_ACCOUNT)
            self.credentials.set(self.service, PIN_ACCOUNT, hashed.decode("utf-8"))
        except (StorageError, OSError) as e:
            logger.warning("pin_store_failed", operation="save", error=str(e))
            return False
        logger.info("pin_saved")
        return True

    def verify(self, pin: str) -> bool:
        stored = self._stored_hash()
        if stored is None or not pin:
            return False
        try:
            return bcrypt.checkpw(pin.encode("utf-8"), stored.encode("utf-8"))
        except ValueError:
            logger.warning("pin_hash_unreadable")
            return False

    def delete(self) -> bool:
        try:
            self.credentials.delete(self.service, PIN_ACCOUNT)
        except (StorageError, OSError) as e:
            logger.warning("pin_store_failed", operation="delete", error=str(e))
            return False
        logger.info("pin_deleted")
        return True

    def _stored_hash(self) -> str | None:
        try:
            return self.credentials.get(self.service, PIN_ACCOUNT)
        except (StorageError, OSError) as e:
            logger.warning("pin_store_failed", operation="read", error=str(e))
            return None
