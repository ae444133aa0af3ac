import logging
import secrets
import threading
from typing import Callable, Iterable

from jsonfiles import read_json_or_default, write_json_atomic

logger = logging.getLogger(__name__)


def _new_token() -> str:
    return secrets.token_urlsafe(12)


class PublicIdMap:
    """Stable-once-assigned public tokens standing in for internal player ids.

    The map is persisted as ``{"internalToPublic": {...}, "publicToInternal": {...}}``
    and rewritten in full after every mutation.
    """

    def __init__(
        self,
        path: str,
        known_ids: Callable[[], Iterable[str]] | None = None,
        token_factory: Callable[[], str] = _new_token,
    ):
        self.path = path
        self._known_ids = known_ids
        self._token_factory = token_factory
        self._lock = threading.RLock()
        self._to_public: dict[str, str] = {}
        self._to_internal: dict[str, str] = {}
        self._loaded = False

    def load(self) -> bool:
        """Read the persisted map; returns True when it had to be rebuilt."""
        with self._lock:
            doc = read_json_or_default(self.path, None, dict)
            forward = doc.get("internalToPublic") if doc else None
            if not isinstance(forward, dict):
                self._recover()
                return True

            self._to_public = {}
            self._to_internal = {}
            for internal_id, public_id in forward.items():
                if not isinstance(public_id, str) or public_id in self._to_internal:
                    logger.warning(f"⚠️  Dropping invalid public id for {internal_id}")
                    continue
                self._to_public[str(internal_id)] = public_id
                self._to_internal[public_id] = str(internal_id)
            self._loaded = True
            logger.info(f"✓ Loaded {len(self._to_public)} public ids")
            return False

    def _recover(self) -> None:
        logger.warning("⚠️  Public id map missing or unreadable; rebuilding from known players.")
        self._to_public = {}
        self._to_internal = {}
        self._loaded = True
        for internal_id in list(self._known_ids() if self._known_ids else []):
            if internal_id:
                self._mint(str(internal_id))
        self._save()

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _mint(self, internal_id: str) -> str:
        token = self._token_factory()
        while token in self._to_internal:
            token = self._token_factory()
        self._to_public[internal_id] = token
        self._to_internal[token] = internal_id
        return token

    def _save(self) -> None:
        write_json_atomic(
            self.path,
            {"internalToPublic": self._to_public, "publicToInternal": self._to_internal},
        )

    def public_id_for(self, internal_id: str) -> str:
        internal_id = str(internal_id)
        with self._lock:
            self._ensure_loaded()
            existing = self._to_public.get(internal_id)
            if existing:
                return existing
            token = self._mint(internal_id)
            self._save()
            return token

    def public_ids_for(self, internal_ids: Iterable[str]) -> dict[str, str]:
        """Batch form of ``public_id_for``; persists at most once."""
        with self._lock:
            self._ensure_loaded()
            minted = False
            result = {}
            for internal_id in internal_ids:
                internal_id = str(internal_id)
                token = self._to_public.get(internal_id)
                if not token:
                    token = self._mint(internal_id)
                    minted = True
                result[internal_id] = token
            if minted:
                self._save()
            return result

    def internal_id_for(self, public_id) -> str | None:
        if not public_id or not isinstance(public_id, str):
            return None
        with self._lock:
            self._ensure_loaded()
            return self._to_internal.get(public_id)

    def __len__(self) -> int:
        with self._lock:
            self._ensure_loaded()
            return len(self._to_public)
