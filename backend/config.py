import os
from dataclasses import dataclass, field

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

POKEDEX_API_URL = "https://pokemon-go-api.github.io/pokemon-go-api/api/pokedex.json"
POKEDEX_HASHES_URL = "https://pokemon-go-api.github.io/pokemon-go-api/api/hashes.json"
MOVES_API_BASE_URL = "https://pogoapi.net/api/v1"
MOVES_HASHES_URL = f"{MOVES_API_BASE_URL}/api_hashes.json"

# Files sitting in the snapshot folder that are not player uploads.
AUXILIARY_PLAYER_FILES = {"PGSStats.json"}

RANKING_LIMIT = 50
HIGHLIGHT_LIMIT = 4


def _env(name: str, default: str) -> str:
    return os.environ.get(f"DEXBOARD_{name}", default)


@dataclass(frozen=True)
class Settings:
    """Filesystem layout and tunables for one running instance."""

    data_dir: str = os.path.join(BASE_DIR, "data")
    player_data_dir: str = os.path.join(BASE_DIR, "pgsharp_player_data")
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000
    fetch_timeout: float = 30.0
    refresh_hour: int = 3
    refresh_minute: int = 0
    refresh_timezone: str = "America/New_York"
    ranking_limit: int = RANKING_LIMIT
    pokedex_url: str = POKEDEX_API_URL
    pokedex_hashes_url: str = POKEDEX_HASHES_URL
    moves_base_url: str = MOVES_API_BASE_URL
    moves_hashes_url: str = MOVES_HASHES_URL
    auxiliary_files: frozenset = field(
        default_factory=lambda: frozenset(AUXILIARY_PLAYER_FILES)
    )

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            data_dir=_env("DATA_DIR", os.path.join(BASE_DIR, "data")),
            player_data_dir=_env(
                "PLAYER_DATA_DIR", os.path.join(BASE_DIR, "pgsharp_player_data")
            ),
            log_level=_env("LOG_LEVEL", "INFO"),
            host=_env("HOST", "0.0.0.0"),
            port=int(_env("PORT", "3000")),
            fetch_timeout=float(_env("FETCH_TIMEOUT", "30")),
            refresh_hour=int(_env("REFRESH_HOUR", "3")),
            refresh_minute=int(_env("REFRESH_MINUTE", "0")),
            refresh_timezone=_env("REFRESH_TIMEZONE", "America/New_York"),
        )

    # Derived paths

    @property
    def users_file(self) -> str:
        return os.path.join(self.data_dir, "users.json")

    @property
    def rankings_file(self) -> str:
        return os.path.join(self.data_dir, "rankings.json")

    @property
    def public_ids_file(self) -> str:
        return os.path.join(self.data_dir, "public_ids.json")

    @property
    def pokedex_raw_file(self) -> str:
        return os.path.join(self.data_dir, "pokedex_raw.json")

    @property
    def pokedex_file(self) -> str:
        return os.path.join(self.data_dir, "pokedex.json")

    @property
    def fast_moves_file(self) -> str:
        return os.path.join(self.data_dir, "fast_moves.json")

    @property
    def charged_moves_file(self) -> str:
        return os.path.join(self.data_dir, "charged_moves.json")

    @property
    def shiny_rates_file(self) -> str:
        return os.path.join(self.data_dir, "shinyRates.json")

    @property
    def costume_id_map_file(self) -> str:
        return os.path.join(self.data_dir, "costumeIdMap.json")

    @property
    def required_dirs(self) -> list[str]:
        return [self.data_dir, self.player_data_dir]
