from datetime import datetime, timezone
from typing import Optional

from db.database import connect

SESSION_SLOT = "mini-ecom-session"


class SessionRecordRepository:
    """
    Stores the serialized session under a single slot.
    The payload is opaque here; validating it is the session store's job.
    """

    def __init__(self, slot: str = SESSION_SLOT) -> None:
        self.slot = slot

    async def load(self) -> Optional[str]:
        async with connect() as conn:
            cur = await conn.execute(
                "SELECT payload FROM session_record WHERE slot = ?;", (self.slot,)
            )
            row = await cur.fetchone()
            await cur.close()
        return row[0] if row else None

    async def save(self, payload: str) -> None:
        saved_at = datetime.now(timezone.utc).isoformat()
        async with connect() as conn:
            await conn.execute(
                """
                INSERT INTO session_record(slot, payload, saved_at) VALUES (?, ?, ?)
                ON CONFLICT(slot) DO UPDATE SET payload = excluded.payload,
                                                saved_at = excluded.saved_at;
                """,
                (self.slot, payload, saved_at),
            )
            await conn.commit()

    async def erase(self) -> None:
        async with connect() as conn:
            await conn.execute("DELETE FROM session_record WHERE slot = ?;", (self.slot,))
            await conn.commit()
