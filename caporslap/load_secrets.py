import os
from dotenv import load_dotenv

load_dotenv()

def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() == "true"

redis_host = os.getenv("REDIS_HOST", "redis")
redis_port = int(os.getenv("REDIS_PORT", "6379"))
redis_db = int(os.getenv("REDIS_DB", "0"))

pepper_data = os.getenv("PEPPER_DATA", "")

session_ttl_seconds = int(os.getenv("SESSION_TTL_SECONDS", "3600"))
min_guess_interval_ms = int(os.getenv("MIN_GUESS_INTERVAL_MS", "500"))
verification_threshold = int(os.getenv("VERIFICATION_THRESHOLD", "10"))
preload_count = int(os.getenv("PRELOAD_COUNT", "5"))

feature_mystery_box = _flag("FEATURE_MYSTERY_BOX")
mystery_box_daily_pool = int(os.getenv("MYSTERY_BOX_DAILY_POOL", "50"))
mystery_box_daily_limit = int(os.getenv("MYSTERY_BOX_DAILY_LIMIT", "2"))

prize_pool_enabled = _flag("PRIZE_POOL_ENABLED")
prize_pool_top_n = int(os.getenv("PRIZE_POOL_TOP_N", "50"))
prize_pool_default_amount = float(os.getenv("PRIZE_POOL_DEFAULT_AMOUNT", "1000"))
prize_pool_auto_rollover = _flag("PRIZE_POOL_AUTO_ROLLOVER")

if __name__ == "__main__":
    print(redis_host, redis_port, redis_db, pepper_data, verification_threshold)
