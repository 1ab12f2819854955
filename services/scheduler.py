from __future__ import annotations

import asyncio


async def wait_next_cycle(interval_seconds: float) -> None:
    await asyncio.sleep(max(0.0, interval_seconds))
