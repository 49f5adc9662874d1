from redis.asyncio import Redis
import structlog
from lekha.config import Config

logger = structlog.get_logger(__name__)

# Initialize
redis_client = Redis.from_url(
    Config.REDIS_URL,
    decode_responses=True
)

async def check_redis_connection(client: Redis = redis_client):
    try:
        await client.ping()
        logger.info("redis_connected")
    except Exception as e:
        # OTP sign-in and logout need Redis; the ledger itself does not.
        logger.warning("redis_unavailable", error=str(e))
