import asyncio
import logging
from decimal import Decimal

import httpx

from amanah.core.config import settings
from amanah.state import PriceCache

logger = logging.getLogger(__name__)


async def fetch_usd_price(client: httpx.AsyncClient) -> Decimal:
    coin = settings.PRICE_FEED_COIN_ID
    resp = await client.get(
        settings.PRICE_FEED_URL,
        params={"ids": coin, "vs_currencies": "usd"},
        timeout=10,
    )
    resp.raise_for_status()
    return Decimal(str(resp.json()[coin]["usd"]))


async def refresh_price(cache: PriceCache, client: httpx.AsyncClient) -> bool:
    """Update the cached price. On failure the previous price is kept."""
    try:
        cache.set(await fetch_usd_price(client))
    except (httpx.HTTPError, KeyError, TypeError, ValueError, ArithmeticError) as e:
        logger.error("Failed to fetch %s price: %s", settings.NATIVE_SYMBOL, e)
        return False
    logger.debug("%s price: %s USD", settings.NATIVE_SYMBOL, cache.usd)
    return True


async def run_price_poller(cache: PriceCache, interval: float | None = None):
    interval = interval or settings.PRICE_POLL_INTERVAL
    async with httpx.AsyncClient() as client:
        while True:
            await refresh_price(cache, client)
            await asyncio.sleep(interval)
