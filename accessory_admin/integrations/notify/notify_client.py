import httpx
from typing import Any, Dict

from accessory_admin.core import config


async def post_notification(payload: Dict[str, Any]) -> bool:
    """Forward a notification to the configured webhook; False when none is set."""
    if not config.NOTIFY_WEBHOOK_URL:
        return False
    async with httpx.AsyncClient(timeout=10) as client:
        r = await client.post(config.NOTIFY_WEBHOOK_URL, json=payload)
        r.raise_for_status()
    return True
