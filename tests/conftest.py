"""Shared fixtures: temp-rooted settings, a tiny reference dataset, fake HTTP."""

import hashlib
import json
import os

import pytest
import requests

from config import Settings
from player_store import PlayerSnapshotStore
from pokedex import ReferenceDataCache
from public_ids import PublicIdMap
from rankings import RankingAggregator
from users import UserRegistry

SPECIES_TABLE = [
    {
        "dexNr": 19,
        "formId": "RATTATA",
        "names": {"English": "Rattata"},
        "primaryType": {"type": "POKEMON_TYPE_NORMAL"},
        "secondaryType": None,
        "pokemonClass": None,
        "assetForms": [
            {"form": None, "costume": None, "image": "img/19.png", "shinyImage": "img/19.s.png"},
            {"form": "ALOLA", "costume": None, "image": "img/19.alola.png", "shinyImage": "img/19.alola.s.png"},
        ],
        "regionForms": {
            "RATTATA_ALOLA": {
                "dexNr": 19,
                "formId": "RATTATA_ALOLA",
                "names": {"English": "Alolan Rattata"},
                "primaryType": {"type": "POKEMON_TYPE_DARK"},
                "secondaryType": {"type": "POKEMON_TYPE_NORMAL"},
                "assetForms": [],
            }
        },
    },
    {
        "dexNr": 25,
        "formId": "PIKACHU",
        "names": {"English": "Pikachu"},
        "primaryType": {"type": "POKEMON_TYPE_ELECTRIC"},
        "secondaryType": None,
        "pokemonClass": None,
        "assetForms": [
            {"form": None, "costume": None, "image": "img/25.png", "shinyImage": "img/25.s.png"},
            {"form": None, "costume": "HOLIDAY_2016", "image": "img/25.holiday.png", "shinyImage": "img/25.holiday.s.png"},
            {"form": "KARIYUSHI", "costume": None, "image": "img/25.kariyushi.png", "shinyImage": "img/25.kariyushi.s.png"},
            {"form": "KARIYUSHI", "costume": "HOLIDAY_2016", "image": "img/25.both.png", "shinyImage": "img/25.both.s.png"},
        ],
    },
    {
        "dexNr": 122,
        "formId": "MR_MIME",
        "names": {"English": "Mr. Mime"},
        "primaryType": {"type": "POKEMON_TYPE_PSYCHIC"},
        "secondaryType": {"type": "POKEMON_TYPE_FAIRY"},
        "pokemonClass": None,
        "assetForms": [],
        "regionForms": {
            "MR_MIME_GALARIAN": {
                "dexNr": 122,
                "formId": "MR_MIME_GALARIAN",
                "names": {"English": "Galarian Mr. Mime"},
                "primaryType": {"type": "POKEMON_TYPE_ICE"},
                "secondaryType": {"type": "POKEMON_TYPE_PSYCHIC"},
                "assetForms": [],
            }
        },
    },
    {
        "dexNr": 150,
        "formId": "MEWTWO",
        "names": {"English": "Mewtwo"},
        "primaryType": {"type": "POKEMON_TYPE_PSYCHIC"},
        "secondaryType": None,
        "pokemonClass": "POKEMON_CLASS_LEGENDARY",
        "assetForms": [
            {"form": "NORMAL", "costume": None, "image": "img/150.png", "shinyImage": "img/150.s.png"},
        ],
    },
    {
        "dexNr": 151,
        "formId": "MEW",
        "names": {"English": "Mew"},
        "primaryType": {"type": "POKEMON_TYPE_PSYCHIC"},
        "secondaryType": None,
        "pokemonClass": "POKEMON_CLASS_MYTHIC",
        "assetForms": [],
    },
]

FAST_MOVES = [{"move_id": 216, "name": "Mud Shot"}, {"move_id": 221, "name": "Tackle"}]
CHARGED_MOVES = [{"move_id": 79, "name": "Thunderbolt"}]

SHINY_RATES = {
    "rates": {
        "standard": 512,
        "boosted": 64,
        "community-day": 25,
        "legendary": 20,
        "rocket-leader": 64,
        "rocket-grunt": 100,
    },
    "pokemon": {"19": "boosted"},
    "default_tier": "standard",
}

COSTUME_ID_MAP = {"1": "HOLIDAY_2016"}


class FakeResponse:
    def __init__(self, content: bytes, status_code: int = 200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Stands in for ``requests.Session``; routes map url -> bytes, status or exception."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls: list[str] = []

    def get(self, url, timeout=None):
        self.calls.append(url)
        if url not in self.routes:
            raise requests.ConnectionError(f"no route for {url}")
        result = self.routes[url]
        if isinstance(result, Exception):
            raise result
        if isinstance(result, int):
            return FakeResponse(b"", result)
        return FakeResponse(result)


def write_json(path, data) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f)


def file_bytes(path) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def manifest_routes(settings, pokedex_bytes, fast_bytes, charged_bytes) -> dict:
    """Hash manifests advertising the given file contents."""
    return {
        settings.pokedex_hashes_url: json.dumps(
            {"sha512": {"pokedex.json": hashlib.sha512(pokedex_bytes).hexdigest()}}
        ).encode(),
        settings.moves_hashes_url: json.dumps(
            {
                "fast_moves.json": {"hash_sha256": hashlib.sha256(fast_bytes).hexdigest()},
                "charged_moves.json": {"hash_sha256": hashlib.sha256(charged_bytes).hexdigest()},
            }
        ).encode(),
    }


def local_routes(settings) -> dict:
    return manifest_routes(
        settings,
        file_bytes(settings.pokedex_raw_file),
        file_bytes(settings.fast_moves_file),
        file_bytes(settings.charged_moves_file),
    )


@pytest.fixture()
def settings(tmp_path) -> Settings:
    s = Settings(
        data_dir=str(tmp_path / "data"),
        player_data_dir=str(tmp_path / "players"),
        fetch_timeout=1.0,
    )
    for d in s.required_dirs:
        os.makedirs(d, exist_ok=True)
    return s


@pytest.fixture()
def reference_files(settings) -> Settings:
    write_json(settings.pokedex_raw_file, SPECIES_TABLE)
    write_json(settings.fast_moves_file, FAST_MOVES)
    write_json(settings.charged_moves_file, CHARGED_MOVES)
    write_json(settings.shiny_rates_file, SHINY_RATES)
    write_json(settings.costume_id_map_file, COSTUME_ID_MAP)
    return settings


@pytest.fixture()
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def cache(reference_files, fake_session) -> ReferenceDataCache:
    c = ReferenceDataCache(reference_files, session=fake_session)
    c.load()
    return c


@pytest.fixture()
def empty_cache(settings, fake_session) -> ReferenceDataCache:
    c = ReferenceDataCache(settings, session=fake_session)
    c.load()
    return c


@pytest.fixture()
def users(settings) -> UserRegistry:
    return UserRegistry(settings.users_file)


@pytest.fixture()
def public_ids(settings, users) -> PublicIdMap:
    return PublicIdMap(settings.public_ids_file, known_ids=users.known_player_ids)


@pytest.fixture()
def store(settings) -> PlayerSnapshotStore:
    return PlayerSnapshotStore(settings.player_data_dir, settings.auxiliary_files)


@pytest.fixture()
def aggregator(store, cache, public_ids, settings) -> RankingAggregator:
    return RankingAggregator(store, cache, public_ids, settings.rankings_file)


def make_pokemon(
    id,
    pokemon_id=25,
    cp=500,
    ivs=(10, 10, 10),
    form_name="PIKACHU_NORMAL",
    shiny=False,
    lucky=False,
    shadow=False,
    purified=False,
    costume=0,
    creation_ms=1_600_000_000_000,
    **extra,
) -> dict:
    record = {
        "id": id,
        "pokemonId": pokemon_id,
        "cp": cp,
        "individualAttack": ivs[0],
        "individualDefense": ivs[1],
        "individualStamina": ivs[2],
        "isLucky": lucky,
        "isEgg": False,
        "creationTimeMs": creation_ms,
        "tradedTimeMs": 0,
        "pokemonDisplay": {
            "formName": form_name,
            "shiny": shiny,
            "shadow": shadow,
            "purified": purified,
            "costume": costume,
        },
    }
    record.update(extra)
    return record


def make_snapshot(player_id, name, pokemons, buddy_id=None, km=12.34, **player) -> dict:
    account = {
        "name": name,
        "playerSupportId": player_id,
        "team": 1,
        "creationTimeMs": 1_500_000_000_000,
        "currencyBalance": [
            {"currencyType": "POKECOIN", "quantity": 100},
            {"currencyType": "STARDUST", "quantity": 123456},
        ],
    }
    if buddy_id is not None:
        account["buddyPokemonProto"] = {"buddyPokemonId": buddy_id}
    return {
        "account": account,
        "player": {
            "level": 40,
            "experience": 20_000_000,
            "numPokemonCaptured": len(pokemons),
            "pokeStopVisits": 1000,
            "kmWalked": km,
            **player,
        },
        "items": [{"itemId": 1, "itemName": "Poke Ball", "count": 20}],
        "pokemons": pokemons,
    }
