import logging
import os

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS

from config import BASE_DIR, Settings
from errors import PayloadRejected, PlayerNotFound
from logging_config import setup_logging
from player_service import PlayerDataService
from player_store import PlayerSnapshotStore
from pokedex import ReferenceDataCache
from public_ids import PublicIdMap
from rankings import RankingAggregator
from scheduler import DailyRefreshScheduler
from users import UserRegistry

logger = logging.getLogger(__name__)

EXTENSION_KEY = "dexboard"


def build_services(settings: Settings, session=None) -> dict:
    """Wire every service explicitly; nothing here touches disk or network yet."""
    cache = ReferenceDataCache(settings, session=session)
    users = UserRegistry(settings.users_file)
    public_ids = PublicIdMap(settings.public_ids_file, known_ids=users.known_player_ids)
    store = PlayerSnapshotStore(settings.player_data_dir, settings.auxiliary_files)
    rankings = RankingAggregator(
        store, cache, public_ids, settings.rankings_file, limit=settings.ranking_limit
    )
    scheduler = DailyRefreshScheduler(
        cache,
        hour=settings.refresh_hour,
        minute=settings.refresh_minute,
        timezone_name=settings.refresh_timezone,
        on_reloaded=rankings.rebuild_all,
    )
    return {
        "settings": settings,
        "cache": cache,
        "users": users,
        "public_ids": public_ids,
        "store": store,
        "rankings": rankings,
        "scheduler": scheduler,
        "players": PlayerDataService(store, cache, public_ids, users, rankings),
    }


def initialize_services(services: dict, refresh: bool = True) -> None:
    settings = services["settings"]
    for dir_path in settings.required_dirs:
        os.makedirs(dir_path, exist_ok=True)
        logger.info(f"✓ Directory ready at: {dir_path}")

    cache = services["cache"]
    if refresh:
        cache.refresh_if_stale()
    cache.load()

    ids_recovered = services["public_ids"].load()
    rankings = services["rankings"]
    rankings.migrate_legacy_file(os.path.join(BASE_DIR, "rankings.json"))
    if ids_recovered:
        # Persisted rankings still carry the tokens that were lost.
        logger.warning("Public ids were reissued; rebuilding rankings.")
        rankings.rebuild_all()
    else:
        rankings.ensure_present()


def create_app(
    settings: Settings | None = None,
    services: dict | None = None,
    initialize: bool = True,
    start_scheduler: bool = True,
) -> Flask:
    if services is None:
        services = build_services(settings or Settings.from_env())

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = 10 * 1024 * 1024
    CORS(
        app,
        origins="*",
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        supports_credentials=False,
    )
    app.extensions[EXTENSION_KEY] = services

    if initialize:
        initialize_services(services)
    if start_scheduler:
        services["scheduler"].start()

    register_routes(app)
    return app


def _players() -> PlayerDataService:
    return current_app.extensions[EXTENSION_KEY]["players"]


def register_routes(app: Flask) -> None:
    @app.errorhandler(PayloadRejected)
    def payload_rejected(exc):
        return jsonify({"message": str(exc)}), 400

    @app.errorhandler(PlayerNotFound)
    def player_not_found(exc):
        return jsonify({"message": str(exc) or "Player data not found."}), 404

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok", "message": "API is running"})

    @app.route("/api/health-check", methods=["GET"])
    def health_check():
        return jsonify(_players().get_health_check_data())

    @app.route("/api/save-data", methods=["POST"])
    def save_data():
        data = request.get_json(silent=True)
        if data is None:
            raise PayloadRejected("Request body must be JSON.")
        return jsonify(_players().save_player_data(data))

    @app.route("/api/rankings", methods=["GET"])
    def rankings():
        return jsonify(_players().get_rankings())

    @app.route("/api/public-data", methods=["GET"])
    def public_data():
        return jsonify(_players().get_public_player_summaries())

    @app.route("/api/player-detail/<public_id>", methods=["GET"])
    def player_detail(public_id):
        players = _players()
        internal_id = players.get_internal_id_from_public_id(public_id)
        if internal_id is None:
            raise PlayerNotFound("Player data not found.")
        return jsonify(players.get_player_detail(internal_id))


if __name__ == "__main__":
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    logger.info("🚀 Starting Flask API...")
    logger.info(f"📂 Player data directory: {settings.player_data_dir}")
    logger.info(f"📊 Data directory: {settings.data_dir}")
    app = create_app(settings)
    app.run(host=settings.host, port=settings.port)
