import logging
import os
from typing import Iterator, NamedTuple

from errors import PayloadRejected, PlayerNotFound
from jsonfiles import read_json, write_json_atomic

logger = logging.getLogger(__name__)

REQUIRED_SECTIONS = ("account", "player", "pokemons")


class StoredSnapshot(NamedTuple):
    file_id: str
    data: dict
    mtime_ms: float


def has_required_sections(data) -> bool:
    return (
        isinstance(data, dict)
        and isinstance(data.get("account"), dict)
        and isinstance(data.get("player"), dict)
        and isinstance(data.get("pokemons"), list)
    )


def is_valid_player_id(player_id) -> bool:
    # Ids are used verbatim as file names.
    if not isinstance(player_id, str) or player_id in {"", ".", ".."}:
        return False
    return not any(sep in player_id for sep in ("/", "\\", "\0"))


class PlayerSnapshotStore:
    """One JSON document per player, named ``<playerSupportId>.json``."""

    def __init__(self, directory: str, auxiliary_files=frozenset()):
        self.directory = directory
        self.auxiliary_files = set(auxiliary_files)

    def path_for(self, player_id: str) -> str:
        if not is_valid_player_id(player_id):
            raise PlayerNotFound(f"Invalid player id: {player_id!r}")
        return os.path.join(self.directory, f"{player_id}.json")

    def save(self, player_id: str, data: dict) -> str:
        if not is_valid_player_id(player_id):
            raise PayloadRejected(f"Invalid player id: {player_id!r}")
        path = self.path_for(player_id)
        write_json_atomic(path, data)
        return path

    def load(self, player_id: str) -> dict:
        path = self.path_for(player_id)
        try:
            data = read_json(path)
        except FileNotFoundError as exc:
            raise PlayerNotFound("Player data not found.") from exc
        except (OSError, ValueError) as exc:
            logger.warning(f"⚠️  Unreadable snapshot {path}: {exc}")
            raise PlayerNotFound("Player data not found.") from exc
        if not has_required_sections(data):
            raise PlayerNotFound("Player data not found.")
        return data

    def snapshot_files(self) -> list[str]:
        if not os.path.isdir(self.directory):
            return []
        return [
            name
            for name in os.listdir(self.directory)
            if name.endswith(".json") and name not in self.auxiliary_files
        ]

    def iter_snapshots(self) -> Iterator[StoredSnapshot]:
        """Yield every well-formed snapshot; malformed files are logged and skipped."""
        for name in self.snapshot_files():
            path = os.path.join(self.directory, name)
            try:
                mtime_ms = os.stat(path).st_mtime * 1000
                data = read_json(path)
            except (OSError, ValueError) as exc:
                logger.warning(f"⚠️  Skipping unreadable snapshot {name}: {exc}")
                continue
            if not has_required_sections(data):
                logger.warning(f"⚠️  Skipping snapshot {name}: missing account/player/pokemons")
                continue
            yield StoredSnapshot(name[: -len(".json")], data, mtime_ms)

    def mtime_ms(self, player_id: str) -> float | None:
        try:
            return os.stat(self.path_for(player_id)).st_mtime * 1000
        except (OSError, PlayerNotFound):
            return None
