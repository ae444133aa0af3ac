import logging
from datetime import datetime, timezone

from config import HIGHLIGHT_LIMIT
from enrichment import (
    currency,
    display_fields,
    enrich_pokemon,
    is_displayable,
    roster_stats,
)
from errors import PayloadRejected
from player_store import PlayerSnapshotStore
from pokedex import TYPE_COLOR_MAP, ReferenceDataCache
from public_ids import PublicIdMap
from rankings import RankingAggregator, find_buddy, format_km, owner_id_of
from users import UserRegistry

logger = logging.getLogger(__name__)


def _creation_ms(record: dict) -> int:
    try:
        return int(record.get("creationTimeMs") or 0)
    except (TypeError, ValueError):
        return 0


def _cp(record: dict) -> int:
    try:
        return int(record.get("cp") or 0)
    except (TypeError, ValueError):
        return 0


def pick_highlights(pokemons, limit: int = HIGHLIGHT_LIMIT) -> list[dict]:
    """Most recent catch, latest shiny, then the strongest, without repeats."""
    roster = [p for p in pokemons if is_displayable(p)]
    by_recency = sorted(roster, key=_creation_ms, reverse=True)

    picks = []
    if by_recency:
        picks.append(by_recency[0])
    latest_shiny = next((p for p in by_recency if p["pokemonDisplay"].get("shiny")), None)
    if latest_shiny is not None:
        picks.append(latest_shiny)
    picks.extend(sorted(roster, key=_cp, reverse=True))

    highlights = []
    seen = set()
    for p in picks:
        key = p.get("id") if p.get("id") is not None else id(p)
        if key in seen:
            continue
        seen.add(key)
        highlights.append(p)
        if len(highlights) >= limit:
            break
    return highlights


def _start_date(account: dict) -> str | None:
    try:
        ms = int(account.get("creationTimeMs"))
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).date().isoformat()


class PlayerDataService:
    """Entry points used by the HTTP layer."""

    def __init__(
        self,
        store: PlayerSnapshotStore,
        cache: ReferenceDataCache,
        public_ids: PublicIdMap,
        users: UserRegistry,
        rankings: RankingAggregator,
    ):
        self.store = store
        self.cache = cache
        self.public_ids = public_ids
        self.users = users
        self.rankings = rankings

    def save_player_data(self, data) -> dict:
        """Persist an uploaded snapshot and refresh rankings.

        An empty object is the uploader's connectivity test and succeeds
        without writing anything.
        """
        if not isinstance(data, dict):
            raise PayloadRejected("Payload must be a JSON object.")

        account = data.get("account") if isinstance(data.get("account"), dict) else {}
        name = account.get("name")
        player_id = account.get("playerSupportId")

        if not name or not player_id:
            if not data:
                logger.info("✅ Received a successful connection test (empty JSON object).")
                return {"success": True, "message": "Connection test successful."}
            logger.error("❌ Received a payload but it was missing required fields.")
            raise PayloadRejected("Payload is missing required account data.")

        player_id = str(player_id)
        logger.info(f"✅ Received valid data for {name} ({player_id}).")

        self.store.save(player_id, data)
        self.users.upsert(player_id, name)
        self.public_ids.public_id_for(player_id)
        self.rankings.update_for_player(player_id, data)

        logger.info(f"✅ Data for '{name}' was saved successfully.")
        return {"success": True, "message": "Data saved and user profile updated."}

    def get_player_detail(self, internal_id: str) -> dict:
        data = self.store.load(internal_id)
        account = data["account"]
        player = data["player"]

        highlights = []
        for p in pick_highlights(data["pokemons"]):
            highlights.append({"cp": _cp(p), **display_fields(p, self.cache)})

        return {
            "name": account.get("name"),
            "startDate": _start_date(account),
            "totalXp": player.get("experience"),
            "pokemonCaught": player.get("numPokemonCaptured"),
            "pokestopsVisited": player.get("pokeStopVisits"),
            "kmWalked": player.get("kmWalked"),
            "highlights": highlights,
            "stats": roster_stats(data["pokemons"]),
        }

    def get_private_player_data(self, internal_id: str) -> dict:
        data = self.store.load(internal_id)
        player_data = dict(data)
        player_data["pokemons"] = [enrich_pokemon(p, self.cache) for p in data["pokemons"]]
        account = data["account"]
        return {
            "playerData": player_data,
            "stats": {
                **roster_stats(data["pokemons"]),
                "stardust": currency(account, "STARDUST"),
                "pokecoins": currency(account, "POKECOIN"),
            },
            "typeColorMap": dict(TYPE_COLOR_MAP),
        }

    def get_public_player_summaries(self) -> list[dict]:
        summaries = []
        for snapshot in self.store.iter_snapshots():
            data = snapshot.data
            display_pokemon = find_buddy(data)
            if not is_displayable(display_pokemon):
                roster = [p for p in data["pokemons"] if is_displayable(p)]
                display_pokemon = max(roster, key=_cp) if roster else None

            info = {"name": "N/A", "cp": 0, "sprite": ""}
            if display_pokemon is not None:
                fields = display_fields(display_pokemon, self.cache)
                info = {"name": fields["name"], "cp": _cp(display_pokemon), "sprite": fields["sprite"]}

            summaries.append(
                {
                    "name": data["account"].get("name"),
                    "level": data["player"].get("level"),
                    "team": data["account"].get("team"),
                    "kmWalked": format_km(data["player"].get("kmWalked")),
                    "displayPokemon": info,
                    "publicId": self.public_ids.public_id_for(owner_id_of(snapshot)),
                }
            )
        return summaries

    def get_rankings(self) -> dict:
        return self.rankings.get_rankings()

    def get_internal_id_from_public_id(self, public_id: str) -> str | None:
        return self.public_ids.internal_id_for(public_id)

    def get_health_check_data(self) -> dict:
        return self.cache.get_health_check_data()
