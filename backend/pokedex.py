import copy
import hashlib
import json
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Callable, NamedTuple

import requests

from config import Settings
from errors import ReferenceFetchError
from forms import (
    NORMAL_FORM_KEY,
    compact_label,
    normalize_asset_label,
    normalize_form_key,
)
from jsonfiles import read_json, read_json_or_default, write_bytes_atomic, write_json_atomic
from sprites import SpriteQuery, fallback_sprite_url, select_sprite

logger = logging.getLogger(__name__)

TYPE_COLOR_MAP = {
    "NORMAL": "#A8A77A",
    "FIRE": "#EE8130",
    "WATER": "#6390F0",
    "GRASS": "#7AC74C",
    "ELECTRIC": "#F7D02C",
    "ICE": "#96D9D6",
    "FIGHTING": "#C22E28",
    "POISON": "#A33EA1",
    "GROUND": "#E2BF65",
    "FLYING": "#A98FF3",
    "PSYCHIC": "#F95587",
    "BUG": "#A6B91A",
    "ROCK": "#B6A136",
    "GHOST": "#735797",
    "DRAGON": "#6F35FC",
    "DARK": "#705746",
    "STEEL": "#B7B7CE",
    "FAIRY": "#D685AD",
}
FALLBACK_TYPE_COLOR = "#FFFFFF"

POKEMON_CLASS_LEGENDARY = "POKEMON_CLASS_LEGENDARY"
POKEMON_CLASS_MYTHIC = "POKEMON_CLASS_MYTHIC"

DEFAULT_SHINY_ODDS = 512
DEFAULT_SHINY_TIER = "standard"

# originDetail.originDetailCase values
ORIGIN_GO = 3
ORIGIN_RAID = 14
ORIGIN_ROCKET_LEADER = 26
ORIGIN_ROCKET_GRUNT = 27
ORIGIN_ROCKET_BOSS = 28


class TrackedFile(NamedTuple):
    health_key: str
    name: str
    path: str
    url: str


class Manifest(NamedTuple):
    url: str
    algorithm: str
    remote_hash: Callable[[dict, str], str | None]
    files: list[TrackedFile]


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dex_key(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _english_name(entry) -> str:
    if not isinstance(entry, dict):
        return ""
    names = entry.get("names")
    if isinstance(names, dict):
        return str(names.get("English") or "")
    return ""


def _type_name(type_field) -> str | None:
    if isinstance(type_field, dict):
        type_field = type_field.get("type")
    if not type_field or not isinstance(type_field, str):
        return None
    return type_field.replace("POKEMON_TYPE_", "").upper()


class ReferenceDataCache:
    """Local copy of the external pokedex, move tables and shiny-rate tiers.

    ``refresh_if_stale`` is the only writer of the downloaded files;
    ``load`` rebuilds the in-memory index from whatever is on disk.
    """

    def __init__(self, settings: Settings, session=None):
        self.settings = settings
        self.session = session if session is not None else requests.Session()
        self._lock = threading.Lock()

        self.pokedex: dict[int, dict[str, dict]] = {}
        self.move_map: dict[str, str] = {}
        self.shiny_rates: dict[str, int] = {}
        self.shiny_pokemon_tiers: dict[str, str] = {}
        self.default_shiny_tier = DEFAULT_SHINY_TIER
        self.costume_id_map: dict[str, str] = {}

        self.health_status = {
            "pokedex": self._blank_status("pokedex.json"),
            "fastMoves": self._blank_status("fast_moves.json"),
            "chargedMoves": self._blank_status("charged_moves.json"),
            "cron": {"lastRun": None, "status": "Not yet run"},
        }

    @staticmethod
    def _blank_status(filename: str) -> dict:
        return {
            "remoteHash": None,
            "localHash": None,
            "lastChecked": None,
            "status": "Not yet checked",
            "error": None,
            "file": filename,
        }

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def _manifests(self) -> list[Manifest]:
        s = self.settings
        return [
            Manifest(
                url=s.pokedex_hashes_url,
                algorithm="sha512",
                remote_hash=lambda doc, name: (doc.get("sha512") or {}).get(name),
                files=[
                    TrackedFile("pokedex", "pokedex.json", s.pokedex_raw_file, s.pokedex_url)
                ],
            ),
            Manifest(
                url=s.moves_hashes_url,
                algorithm="sha256",
                remote_hash=lambda doc, name: (doc.get(name) or {}).get("hash_sha256"),
                files=[
                    TrackedFile(
                        "fastMoves",
                        "fast_moves.json",
                        s.fast_moves_file,
                        f"{s.moves_base_url}/fast_moves.json",
                    ),
                    TrackedFile(
                        "chargedMoves",
                        "charged_moves.json",
                        s.charged_moves_file,
                        f"{s.moves_base_url}/charged_moves.json",
                    ),
                ],
            ),
        ]

    def _fetch_bytes(self, url: str) -> bytes:
        try:
            response = self.session.get(url, timeout=self.settings.fetch_timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ReferenceFetchError(f"Failed to fetch {url}: {exc}") from exc
        return response.content

    def _fetch_json(self, url: str):
        content = self._fetch_bytes(url)
        try:
            return json.loads(content)
        except ValueError as exc:
            raise ReferenceFetchError(f"Invalid JSON from {url}: {exc}") from exc

    @staticmethod
    def _local_hash(path: str, algorithm: str) -> str | None:
        if not os.path.exists(path):
            return None
        with open(path, "rb") as f:
            return hashlib.new(algorithm, f.read()).hexdigest()

    def _mark_failed(self, health_key: str, error: str) -> None:
        status = self.health_status[health_key]
        status["lastChecked"] = _utcnow_iso()
        status["status"] = "Failed"
        status["error"] = error

    def refresh_if_stale(self) -> bool:
        """Download every tracked file whose local hash differs from the manifest.

        Failures are logged and recorded in the health status; the existing
        local copies are left untouched. Returns whether any file changed.
        """
        changed = False
        for manifest in self._manifests():
            logger.info(f"🔄 Checking {manifest.url} for reference data updates...")
            try:
                doc = self._fetch_json(manifest.url)
                if not isinstance(doc, dict):
                    raise ReferenceFetchError(f"Unexpected manifest shape from {manifest.url}")
            except ReferenceFetchError as exc:
                logger.warning(f"❌ Reference manifest check failed: {exc}")
                for tracked in manifest.files:
                    self._mark_failed(tracked.health_key, str(exc))
                continue

            for tracked in manifest.files:
                try:
                    changed |= self._refresh_file(tracked, manifest, doc)
                except (ReferenceFetchError, OSError) as exc:
                    logger.warning(f"❌ Could not refresh {tracked.name}: {exc}")
                    self._mark_failed(tracked.health_key, str(exc))
        return changed

    def _refresh_file(self, tracked: TrackedFile, manifest: Manifest, doc: dict) -> bool:
        status = self.health_status[tracked.health_key]
        remote_hash = manifest.remote_hash(doc, tracked.name)
        if not remote_hash or not isinstance(remote_hash, str):
            raise ReferenceFetchError(f"No hash for {tracked.name} in remote manifest")

        local_hash = self._local_hash(tracked.path, manifest.algorithm)
        status["remoteHash"] = remote_hash
        status["localHash"] = local_hash
        status["lastChecked"] = _utcnow_iso()

        if local_hash and local_hash.lower() == remote_hash.lower():
            logger.info(f"👍 {tracked.name} is already up to date.")
            status["status"] = "Up to date"
            status["error"] = None
            return False

        if local_hash is None:
            logger.info(f"No local {tracked.name} found. A new one will be downloaded.")
        else:
            logger.info(f"{tracked.name} update available. Downloading new version...")

        content = self._fetch_bytes(tracked.url)
        try:
            json.loads(content)
        except ValueError as exc:
            raise ReferenceFetchError(f"Downloaded {tracked.name} is not valid JSON") from exc

        write_bytes_atomic(tracked.path, content)
        status["localHash"] = hashlib.new(manifest.algorithm, content).hexdigest()
        status["status"] = "Updated"
        status["error"] = None
        logger.info(f"✅ New {tracked.name} downloaded successfully.")
        return True

    def record_scheduled_run(self, status: str) -> None:
        cron = self.health_status["cron"]
        if status == "Running":
            cron["lastRun"] = _utcnow_iso()
        cron["status"] = status

    def get_health_check_data(self) -> dict:
        return copy.deepcopy(self.health_status)

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    @staticmethod
    def _clean_species_entry(
        raw: dict, dex_nr: int | None = None, species_name: str | None = None
    ) -> dict | None:
        if not isinstance(raw, dict):
            return None
        dex = _dex_key(raw.get("dexNr"))
        if dex is None:
            dex = dex_nr
        if dex is None:
            return None

        entry = {k: v for k, v in raw.items() if k != "regionForms"}
        entry["dexNr"] = dex
        entry["formKey"] = normalize_form_key(
            raw.get("formId"), species_name or _english_name(raw)
        )
        entry["assetForms"] = [
            {
                **asset,
                "form": normalize_asset_label(asset.get("form")),
                "costume": normalize_asset_label(asset.get("costume")),
            }
            for asset in (raw.get("assetForms") or [])
            if isinstance(asset, dict)
        ]
        return entry

    def _clean_species_table(self, raw_data) -> list[dict]:
        if not isinstance(raw_data, list):
            raise ValueError("species table is not a list")
        cleaned = []
        for raw in raw_data:
            entry = self._clean_species_entry(raw)
            if entry is None:
                continue
            cleaned.append(entry)
            region_forms = raw.get("regionForms")
            if isinstance(region_forms, dict):
                for form in region_forms.values():
                    form_entry = self._clean_species_entry(
                        form, entry["dexNr"], _english_name(raw)
                    )
                    if form_entry is not None:
                        cleaned.append(form_entry)
        return cleaned

    def _load_species_entries(self) -> list[dict] | None:
        s = self.settings
        try:
            cleaned = self._clean_species_table(read_json(s.pokedex_raw_file))
            write_json_atomic(s.pokedex_file, cleaned)
            logger.info("✅ Cleaned and saved Pokédex data.")
            return cleaned
        except FileNotFoundError:
            logger.warning(f"⚠️  {s.pokedex_raw_file} not found; using processed copy.")
        except (OSError, ValueError) as exc:
            logger.error(f"❌ Could not clean Pokédex data: {exc}")

        data = read_json_or_default(s.pokedex_file, None, list)
        if data is None:
            return None
        return [e for e in data if isinstance(e, dict) and _dex_key(e.get("dexNr")) is not None]

    @staticmethod
    def _build_index(entries: list[dict]) -> dict[int, dict[str, dict]]:
        index: dict[int, dict[str, dict]] = {}
        for entry in entries:
            key = entry.get("formKey") or normalize_form_key(
                entry.get("formId"), _english_name(entry)
            )
            # First entry wins so a species keeps exactly one NORMAL entry.
            index.setdefault(int(entry["dexNr"]), {}).setdefault(key, entry)
        return index

    def _load_move_map(self) -> dict[str, str] | None:
        s = self.settings
        try:
            fast_moves = read_json(s.fast_moves_file)
            charged_moves = read_json(s.charged_moves_file)
        except (OSError, ValueError) as exc:
            logger.error(f"❌ Could not load move files: {exc}")
            return None

        move_map = {}
        for move in list(fast_moves or []) + list(charged_moves or []):
            if isinstance(move, dict) and move.get("move_id") is not None:
                move_map[str(move["move_id"])] = move.get("name")
        return move_map

    def load(self) -> None:
        """Rebuild the in-memory view from the local files.

        Parts that cannot be read keep their previous in-memory value.
        """
        entries = self._load_species_entries()
        move_map = self._load_move_map()

        shiny_data = read_json_or_default(self.settings.shiny_rates_file, {}, dict)
        costume_map = read_json_or_default(self.settings.costume_id_map_file, {}, dict)

        with self._lock:
            if entries is not None:
                self.pokedex = self._build_index(entries)
                logger.info(f"👍 Pokédex is now loaded with {len(self.pokedex)} entries.")
            else:
                logger.error("❌ No usable Pokédex on disk; keeping the current one.")
            if move_map is not None:
                self.move_map = move_map
                logger.info(f"👍 Move map is now loaded with {len(move_map)} entries.")
            self.shiny_rates = shiny_data.get("rates") or {}
            self.shiny_pokemon_tiers = {
                str(k): v for k, v in (shiny_data.get("pokemon") or {}).items()
            }
            self.default_shiny_tier = shiny_data.get("default_tier") or DEFAULT_SHINY_TIER
            self.costume_id_map = {str(k): v for k, v in costume_map.items()}

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def species_entries(self, dex_nr) -> dict[str, dict]:
        return self.pokedex.get(_dex_key(dex_nr), {})

    def normal_entry(self, dex_nr) -> dict | None:
        entries = self.species_entries(dex_nr)
        if not entries:
            return None
        return entries.get(NORMAL_FORM_KEY) or next(iter(entries.values()))

    def resolve_entry(self, dex_nr, form_name=None) -> dict | None:
        normal = self.normal_entry(dex_nr)
        if normal is None:
            return None
        key = normalize_form_key(form_name, _english_name(normal))
        return self.species_entries(dex_nr).get(key) or normal

    def resolve_display_name(self, dex_nr, form_name=None) -> str:
        default_name = f"Pokedex #{dex_nr}"
        entry = self.resolve_entry(dex_nr, form_name)
        return _english_name(entry) or default_name

    def _costume_key(self, costume_id) -> str | None:
        if not costume_id:
            return None
        name = self.costume_id_map.get(str(costume_id))
        return compact_label(name) or None

    def resolve_sprite(self, record: dict) -> str:
        display = record.get("pokemonDisplay") if isinstance(record, dict) else None
        if not isinstance(display, dict):
            display = {}
        dex_nr = record.get("pokemonId") if isinstance(record, dict) else None
        shiny = bool(display.get("shiny"))

        normal = self.normal_entry(dex_nr)
        if normal is None:
            return fallback_sprite_url(dex_nr, shiny)

        form_key = normalize_form_key(display.get("formName"), _english_name(normal))
        query = SpriteQuery(
            dex_nr=dex_nr,
            form_key=None if form_key == NORMAL_FORM_KEY else form_key,
            costume_key=self._costume_key(display.get("costume")),
            shiny=shiny,
        )

        assets = list(normal.get("assetForms") or [])
        form_entry = self.species_entries(dex_nr).get(form_key)
        if form_entry is not None and form_entry is not normal:
            assets = list(form_entry.get("assetForms") or []) + assets

        _, url = select_sprite(assets, query)
        return url

    def resolve_type_colors(self, entry) -> list[str]:
        if not isinstance(entry, dict):
            return []
        colors = []
        for field in ("primaryType", "secondaryType"):
            type_name = _type_name(entry.get(field))
            if type_name:
                colors.append(TYPE_COLOR_MAP.get(type_name, FALLBACK_TYPE_COLOR))
        return colors

    def resolve_shiny_rate(self, species_id, origin=None, rarity_class=None, origin_events=None) -> int:
        rates = self.shiny_rates
        if not rates:
            return DEFAULT_SHINY_ODDS

        candidates = []
        if origin_events and any("community_day" in str(e) for e in origin_events):
            candidates.append("community-day")
        if origin in (ORIGIN_RAID, ORIGIN_GO) and rarity_class in (
            POKEMON_CLASS_LEGENDARY,
            POKEMON_CLASS_MYTHIC,
        ):
            candidates.append("legendary")
        if origin in (ORIGIN_ROCKET_LEADER, ORIGIN_ROCKET_BOSS):
            candidates.append("rocket-leader")
        if origin == ORIGIN_ROCKET_GRUNT:
            candidates.append("rocket-grunt")
        candidates.append(self.shiny_pokemon_tiers.get(str(species_id)) or self.default_shiny_tier)
        candidates.append(self.default_shiny_tier)

        for tier in candidates:
            odds = rates.get(tier)
            if odds:
                return int(odds)
        return DEFAULT_SHINY_ODDS

    def move_name(self, move_id) -> str | None:
        if move_id is None:
            return None
        return self.move_map.get(str(move_id))
