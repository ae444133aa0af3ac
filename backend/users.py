import logging
import threading

from jsonfiles import read_json_or_default, write_json_atomic

logger = logging.getLogger(__name__)


class UserRegistry:
    """``users.json``: one ``{username, playerId}`` record per uploading player."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def read_users(self) -> list[dict]:
        users = read_json_or_default(self.path, [], list)
        return [u for u in users if isinstance(u, dict)]

    def known_player_ids(self) -> list[str]:
        return [str(u["playerId"]) for u in self.read_users() if u.get("playerId")]

    def upsert(self, player_id: str, username: str) -> bool:
        """Record the in-game name for ``player_id``; returns True when the user is new."""
        with self._lock:
            users = self.read_users()
            for user in users:
                if user.get("playerId") == player_id:
                    user["username"] = username
                    logger.info(f"- User record found for {player_id}. Updating in-game name.")
                    created = False
                    break
            else:
                users.append({"username": username, "playerId": player_id})
                logger.info(f"- No user record found for {player_id}. Creating placeholder user.")
                created = True
            write_json_atomic(self.path, users)
        return created
