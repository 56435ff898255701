from functools import lru_cache
from redis.asyncio import Redis
from config import get_settings
from utils.logger import get_logger

log = get_logger(__name__)

# ------------------------------------------------------------------ #
# Redis client init
# ------------------------------------------------------------------ #
@lru_cache
def get_redis() -> Redis:
    cfg = get_settings()
    return Redis(
        host=cfg.redis_host,
        port=cfg.redis_port,
        db=cfg.redis_db,
        password=cfg.redis_password or None,
        decode_responses=True,
        health_check_interval=30,
    )

# ------------------------------------------------------------------ #
# Connection test
# ------------------------------------------------------------------ #
async def test_connection() -> bool:
    try:
        pong = await get_redis().ping()
        if pong:
            log.info("✅ Redis connection successful!")
            return True
    except Exception as e:
        log.error(f"❌ Redis connection failed: {e}", exc_info=True)
    return False
