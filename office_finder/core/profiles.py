"""PostgreSQL-backed user profile store."""

import asyncio
import logging
from typing import Any, Dict, Optional

from office_finder.core.db import get_connection
from office_finder.models import UserProfile

logger = logging.getLogger(__name__)

_SELECT_PROFILE = """
SELECT user_id, platform, name, address, city, state, language, onboarding_complete
FROM user_profiles
WHERE user_id = %(user_id)s;
"""

_UPSERT_PROFILE = """
INSERT INTO user_profiles (
    user_id,
    platform,
    name,
    address,
    city,
    state,
    language,
    onboarding_complete,
    updated_at
) VALUES (
    %(user_id)s,
    %(platform)s,
    %(name)s,
    %(address)s,
    %(city)s,
    %(state)s,
    %(language)s,
    %(onboarding_complete)s,
    NOW()
)
ON CONFLICT (user_id) DO UPDATE SET
    platform = EXCLUDED.platform,
    name = EXCLUDED.name,
    address = EXCLUDED.address,
    city = EXCLUDED.city,
    state = EXCLUDED.state,
    language = EXCLUDED.language,
    onboarding_complete = EXCLUDED.onboarding_complete,
    updated_at = NOW();
"""


def _prepare_params(profile: UserProfile) -> Dict[str, Any]:
    return {
        "user_id": profile.user_id,
        "platform": profile.platform,
        "name": profile.name,
        "address": profile.address,
        "city": profile.city,
        "state": profile.state,
        "language": profile.language,
        "onboarding_complete": profile.onboarding_complete,
    }


def fetch_profile(user_id: str) -> Optional[UserProfile]:
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(_SELECT_PROFILE, {"user_id": user_id})
            row = cur.fetchone()
    if row is None:
        return None
    return UserProfile(
        user_id=row[0],
        platform=row[1] or "",
        name=row[2] or "",
        address=row[3] or "",
        city=row[4] or "",
        state=row[5] or "",
        language=row[6] or "en",
        onboarding_complete=bool(row[7]),
    )


def upsert_profile(profile: UserProfile) -> None:
    """Persist a profile, performing an idempotent upsert."""
    if not profile.user_id:
        raise ValueError("user_id is required for upsert")

    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(_UPSERT_PROFILE, _prepare_params(profile))
        conn.commit()
        logger.debug("Upserted profile %s", profile.user_id)


class PgProfileStore:
    """Async facade; blocking psycopg2 calls run in worker threads."""

    async def get(self, user_id: str) -> Optional[UserProfile]:
        return await asyncio.to_thread(fetch_profile, user_id)

    async def put(self, user_id: str, profile: UserProfile) -> None:
        if profile.user_id != user_id:
            raise ValueError("profile.user_id does not match the storage key")
        await asyncio.to_thread(upsert_profile, profile)
