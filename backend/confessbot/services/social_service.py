"""
Follow graph.

An edge lives on both profiles: the follower's `following` list and the
target's `followers` list. Both sides are written with set-semantics
appends, and a failure on the second side undoes the first.
"""
import logging
from typing import List

from confessbot.core.exceptions import BusinessError
from confessbot.services.profile_service import ProfileService, display_name

logger = logging.getLogger(__name__)


class SocialService:
    def __init__(self, store, profiles: ProfileService):
        self.store = store
        self.profiles = profiles

    def is_following(self, user_id: int, target_id: int) -> bool:
        profile = self.profiles.get(user_id)
        return bool(profile) and target_id in (profile.get("following") or [])

    async def follow(self, user_id: int, target_id: int) -> bool:
        """Returns True if a new edge was created, False if it already existed."""
        if user_id == target_id:
            raise BusinessError.bad_request("❌ You cannot follow yourself.")
        target = self.profiles.require(target_id)
        follower = self.profiles.get_or_create(user_id)

        added = self.store.array_append("users", user_id, "following", target_id, unique=True)
        try:
            self.store.array_append("users", target_id, "followers", user_id, unique=True)
        except Exception:
            if added:
                self.store.array_remove("users", user_id, "following", target_id)
            raise

        if added:
            logger.info(f"[Social] {user_id} now follows {target_id}")
            await self.profiles.notify(
                target_id,
                f"👤 {display_name(follower)} started following you!",
                "new_follower",
            )
        else:
            logger.debug(f"[Social] {user_id} already follows {target['telegram_id']}")
        return added

    async def follow_author(self, user_id: int, confession_id: str) -> dict:
        confession = self.store.get("confessions", confession_id)
        if not confession:
            raise BusinessError.not_found("Confession", f"id={confession_id}")
        await self.follow(user_id, confession["user_id"])
        return self.profiles.require(confession["user_id"])

    def unfollow(self, user_id: int, target_id: int) -> bool:
        """Idempotent. Returns True if an edge was removed from either side."""
        removed = self.store.array_remove("users", user_id, "following", target_id)
        removed_back = self.store.array_remove("users", target_id, "followers", user_id)
        if removed or removed_back:
            logger.info(f"[Social] {user_id} unfollowed {target_id}")
        return removed or removed_back

    def _profiles_for(self, ids: List[int]) -> List[dict]:
        if not ids:
            return []
        return self.store.query("users", [("telegram_id", "in", ids)])

    def followers(self, user_id: int) -> List[dict]:
        return self._profiles_for(self.profiles.require(user_id).get("followers") or [])

    def following(self, user_id: int) -> List[dict]:
        return self._profiles_for(self.profiles.require(user_id).get("following") or [])
