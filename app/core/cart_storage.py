# app/core/cart_storage.py
import json
import logging
import os
import re
import tempfile
import threading
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from app.core.config import get_settings
from app.schemas.cart import Cart

settings = get_settings()
logger = logging.getLogger(__name__)

# Cart session ids end up in file names
_SCOPE_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

# One lock per cart file, shared by every request of the process
_file_locks: dict[Path, AbstractContextManager] = {}
_file_locks_guard = threading.Lock()


def _lock_for_path(path: Path) -> AbstractContextManager:
    key = path.resolve()
    with _file_locks_guard:
        return _file_locks.setdefault(key, threading.RLock())


class CartPersistence(Protocol):
    """
    Local persistence of a single cart.

    load() returns None when nothing was saved yet, or when what was saved
    can no longer be read. `lock` guards a load-mutate-save sequence and is
    shared by every adapter over the same storage.
    """

    lock: AbstractContextManager

    def load(self) -> Cart | None: ...

    def save(self, cart: Cart) -> None: ...


class MemoryCartPersistence:
    """Keeps the serialized cart in memory (tests, one-off scripts)."""

    def __init__(self, cart: Cart | None = None):
        self._payload: str | None = cart.model_dump_json() if cart else None
        self.lock = threading.RLock()

    def load(self) -> Cart | None:
        if self._payload is None:
            return None
        return Cart.model_validate_json(self._payload)

    def save(self, cart: Cart) -> None:
        self._payload = cart.model_dump_json()


class FileCartPersistence:
    """
    Stores the cart as JSON under a fixed key inside one file:

        {"jam-cart-storage": {"state": {...cart...}, "version": 0}}

    Writes go through a temp file + os.replace so a crash never
    leaves a half-written cart behind. An unreadable file or an entry
    in an outdated shape is logged and treated as an empty cart.
    """

    VERSION = 0

    def __init__(self, path: str | Path, key: str = settings.CART_STORAGE_KEY):
        self.path = Path(path)
        self.key = key
        self.lock = _lock_for_path(self.path)

    def load(self) -> Cart | None:
        entry = self._read_document().get(self.key)
        if not isinstance(entry, dict) or "state" not in entry:
            return None
        try:
            return Cart.model_validate(entry["state"])
        except ValidationError as e:
            logger.warning("Discarding unreadable cart in %s: %s", self.path, e)
            return None

    def save(self, cart: Cart) -> None:
        document = self._read_document()
        document[self.key] = {
            "state": cart.model_dump(mode="json"),
            "version": self.VERSION,
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh)
            os.replace(tmp, self.path)
        except BaseException:
            os.unlink(tmp)
            raise

    # ---- internal helpers ----

    def _read_document(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                document = json.load(fh)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Cart file %s is corrupt, starting over: %s", self.path, e)
            return {}
        if not isinstance(document, dict):
            logger.warning("Cart file %s is not a JSON object, starting over", self.path)
            return {}
        return document


def is_valid_scope(scope: str) -> bool:
    return bool(_SCOPE_RE.match(scope))


def persistence_for_scope(scope: str) -> FileCartPersistence:
    """
    File persistence for one cart session.

    Path pattern:
        <CART_STORAGE_DIR>/<scope>.json

    Raises:
        ValueError: if scope is not a safe file name.
    """
    if not is_valid_scope(scope):
        raise ValueError(f"Invalid cart session id: {scope!r}")
    return FileCartPersistence(Path(settings.CART_STORAGE_DIR) / f"{scope}.json")
