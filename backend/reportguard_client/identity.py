import logging
import secrets
import time
from typing import Optional

from reportguard_client.storage import MemoryStorage, StorageError

logger = logging.getLogger(__name__)

DEVICE_KEY = '__install_id__'
TAB_KEY = '__tab_id__'

_BASE36 = '0123456789abcdefghijklmnopqrstuvwxyz'


def uid(n: int = 8) -> str:
    """n random hex characters."""
    return ''.join(format(b % 16, 'x') for b in secrets.token_bytes(n))


def base36(value: int) -> str:
    if value == 0:
        return '0'
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_BASE36[rem])
    return ''.join(reversed(out))


class IdentityProvider:
    """Layered anonymous identity for one client process.

    The device layer lives in persistent storage and is never regenerated,
    the tab layer lives in session storage, the run layer only in this
    object. Build one per process and pass it to whoever needs the id.
    """

    def __init__(self, device_storage, session_storage=None, multitab: bool = False,
                 tab_hint: Optional[str] = None):
        self._device_storage = device_storage
        self._session_storage = session_storage if session_storage is not None else MemoryStorage()
        self.multitab = multitab
        self._tab_hint = tab_hint
        self._run_id: Optional[str] = None

    def _fall_back(self, exc: StorageError) -> None:
        logger.warning("device storage unavailable, using in-memory identity: %s", exc)
        self._device_storage = MemoryStorage()

    @property
    def device_id(self) -> str:
        try:
            value = self._device_storage.get_item(DEVICE_KEY)
            if not value:
                value = f"{base36(int(time.time() * 1000))}-{uid(8)}"
                self._device_storage.set_item(DEVICE_KEY, value)
            return value
        except StorageError as exc:
            self._fall_back(exc)
            return self.device_id

    @property
    def tab_id(self) -> str:
        value = self._session_storage.get_item(TAB_KEY)
        if not value:
            value = (self._tab_hint or '').strip() or uid(4)
            self._session_storage.set_item(TAB_KEY, value)
        return value

    @property
    def run_id(self) -> str:
        if self._run_id is None:
            self._run_id = uid(3)
        return self._run_id

    def get_install_id(self) -> str:
        base = self.device_id
        if not self.multitab:
            return base
        return f"{base}.{self.tab_id}-{self.run_id}"
