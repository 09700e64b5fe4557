from redis.asyncio import Redis
from caporslap.load_secrets import redis_host, redis_port, redis_db

redis = Redis(
    host=redis_host,
    port=redis_port,
    db=redis_db,
    decode_responses=True,
    health_check_interval=30,
)
