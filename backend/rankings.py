import logging
import os
import threading
from typing import NamedTuple

from enrichment import (
    display_fields,
    is_displayable,
    pokemon_flags,
    rarity_score,
    reference_entry,
)
from jsonfiles import read_json_or_default, write_json_atomic
from player_store import PlayerSnapshotStore, StoredSnapshot, has_required_sections
from pokedex import ReferenceDataCache
from public_ids import PublicIdMap

logger = logging.getLogger(__name__)

RANKING_KEYS = ("recentPlayers", "strongestPokemon", "rarestPokemon")


class RankedPokemon(NamedTuple):
    record: dict
    owner: str
    owner_id: str
    owner_public_id: str
    entry: dict | None
    score: float

    @property
    def cp(self) -> int:
        try:
            return int(self.record.get("cp") or 0)
        except (TypeError, ValueError):
            return 0


def empty_rankings() -> dict:
    return {key: [] for key in RANKING_KEYS}


def format_km(value) -> str:
    try:
        return f"{float(value or 0):.1f}"
    except (TypeError, ValueError):
        return "0.0"


def owner_id_of(snapshot: StoredSnapshot) -> str:
    return str(snapshot.data["account"].get("playerSupportId") or snapshot.file_id)


def find_buddy(data: dict) -> dict | None:
    buddy_proto = data["account"].get("buddyPokemonProto")
    buddy_id = buddy_proto.get("buddyPokemonId") if isinstance(buddy_proto, dict) else None
    if not buddy_id:
        return None
    for p in data["pokemons"]:
        if isinstance(p, dict) and p.get("id") == buddy_id:
            return p
    return None


class RankingAggregator:
    """Builds and persists the recent-players / strongest / rarest document.

    Rebuilds are serialized behind a lock; the last completed rebuild is
    what ``rankings.json`` holds.
    """

    def __init__(
        self,
        store: PlayerSnapshotStore,
        cache: ReferenceDataCache,
        public_ids: PublicIdMap,
        rankings_file: str,
        limit: int = 50,
    ):
        self.store = store
        self.cache = cache
        self.public_ids = public_ids
        self.rankings_file = rankings_file
        self.limit = limit
        self._lock = threading.Lock()

    # Building blocks

    def _recent_entry(self, snapshot: StoredSnapshot, public_id: str) -> dict:
        account = snapshot.data["account"]
        player = snapshot.data["player"]
        buddy = find_buddy(snapshot.data)
        buddy_info = None
        if is_displayable(buddy):
            fields = display_fields(buddy, self.cache)
            buddy_info = {"name": fields["name"], "sprite": fields["sprite"]}
        return {
            "name": account.get("name"),
            "publicId": public_id,
            "buddy": buddy_info,
            "kmWalked": format_km(player.get("kmWalked")),
            "pokemonCaught": player.get("numPokemonCaptured", 0),
            "lastUpdate": snapshot.mtime_ms,
        }

    def _scan(self) -> tuple[list[dict], list[RankedPokemon]]:
        snapshots = list(self.store.iter_snapshots())
        public = self.public_ids.public_ids_for(owner_id_of(s) for s in snapshots)

        recent = []
        pool = []
        for snapshot in snapshots:
            owner_id = owner_id_of(snapshot)
            owner_public_id = public[owner_id]
            owner = snapshot.data["account"].get("name")
            recent.append(self._recent_entry(snapshot, owner_public_id))
            for record in snapshot.data["pokemons"]:
                if not is_displayable(record):
                    continue
                entry = reference_entry(record, self.cache)
                pool.append(
                    RankedPokemon(
                        record=record,
                        owner=owner,
                        owner_id=owner_id,
                        owner_public_id=owner_public_id,
                        entry=entry,
                        score=rarity_score(record, entry),
                    )
                )
        return recent, pool

    def _sort_recent(self, recent: list[dict]) -> list[dict]:
        return sorted(recent, key=lambda e: e.get("lastUpdate") or 0, reverse=True)[
            : self.limit
        ]

    def _strongest(self, pool: list[RankedPokemon]) -> list[dict]:
        ranked = sorted(pool, key=lambda r: r.cp, reverse=True)[: self.limit]
        out = []
        for r in ranked:
            fields = display_fields(r.record, self.cache)
            out.append(
                {
                    "name": fields["name"],
                    "sprite": fields["sprite"],
                    "cp": r.cp,
                    "owner": r.owner,
                    "ownerPublicId": r.owner_public_id,
                }
            )
        return out

    def _rarest(self, pool: list[RankedPokemon]) -> list[dict]:
        ranked = sorted(
            (r for r in pool if r.score > 0),
            key=lambda r: (r.score, r.cp),
            reverse=True,
        )[: self.limit]
        out = []
        for r in ranked:
            flags = pokemon_flags(r.record, r.entry)
            out.append(
                {
                    **display_fields(r.record, self.cache),
                    "cp": r.cp,
                    "score": r.score,
                    "owner": r.owner,
                    "ownerPublicId": r.owner_public_id,
                    "isShiny": flags["isShiny"],
                    "isLucky": flags["isLucky"],
                    "isPerfect": flags["isPerfect"],
                    "isShadow": flags["isShadow"],
                    "isPurified": flags["isPurified"],
                    "isLegendary": flags["isLegendary"],
                    "isMythical": flags["isMythical"],
                }
            )
        return out

    def _save(self, rankings: dict) -> dict:
        write_json_atomic(self.rankings_file, rankings)
        return rankings

    # Operations

    def rebuild_all(self) -> dict:
        with self._lock:
            return self._rebuild_locked()

    def _rebuild_locked(self) -> dict:
        if not self.store.snapshot_files():
            logger.info("No player snapshots found; writing empty rankings.")
            return self._save(empty_rankings())

        recent, pool = self._scan()
        rankings = {
            "recentPlayers": self._sort_recent(recent),
            "strongestPokemon": self._strongest(pool),
            "rarestPokemon": self._rarest(pool),
        }
        logger.info(
            f"✓ Rankings rebuilt from {len(recent)} players and {len(pool)} Pokémon"
        )
        return self._save(rankings)

    def update_for_player(self, player_id: str, data: dict) -> dict:
        """Refresh rankings after one player's snapshot was written.

        Only that player's recent-players entry is replaced; strongest and
        rarest still need the whole population, so they are rescanned.
        """
        with self._lock:
            current = self._read()
            if current is None or not has_required_sections(data):
                return self._rebuild_locked()

            snapshot = StoredSnapshot(
                file_id=str(player_id),
                data=data,
                mtime_ms=self.store.mtime_ms(player_id) or 0,
            )
            owner_id = owner_id_of(snapshot)
            public_id = self.public_ids.public_id_for(owner_id)
            owners = [
                self.public_ids.internal_id_for(e.get("publicId"))
                for e in current["recentPlayers"]
            ]
            if None in owners:
                logger.warning("Rankings reference unknown public ids; rebuilding.")
                return self._rebuild_locked()

            recent = [
                e
                for e, entry_owner in zip(current["recentPlayers"], owners)
                if entry_owner != owner_id
            ]
            recent.append(self._recent_entry(snapshot, public_id))

            _, pool = self._scan()
            rankings = {
                "recentPlayers": self._sort_recent(recent),
                "strongestPokemon": self._strongest(pool),
                "rarestPokemon": self._rarest(pool),
            }
            return self._save(rankings)

    def _read(self) -> dict | None:
        doc = read_json_or_default(self.rankings_file, None, dict)
        if doc is None or not all(isinstance(doc.get(k), list) for k in RANKING_KEYS):
            return None
        return doc

    def migrate_legacy_file(self, legacy_path: str) -> None:
        if os.path.exists(legacy_path) and not os.path.exists(self.rankings_file):
            logger.info(f"Found legacy {legacy_path}. Moving to {self.rankings_file}...")
            os.makedirs(os.path.dirname(os.path.abspath(self.rankings_file)), exist_ok=True)
            os.replace(legacy_path, self.rankings_file)

    def ensure_present(self) -> None:
        if self._read() is None:
            logger.info("rankings.json missing or unreadable. Initializing from player data...")
            self.rebuild_all()

    def get_rankings(self) -> dict:
        with self._lock:
            rankings = self._read()
            if rankings is None:
                rankings = self._rebuild_locked()
            return rankings
