from apscheduler.schedulers.asyncio import AsyncIOScheduler
import logging
from fastapi import Depends, FastAPI, HTTPException, status
from contextlib import asynccontextmanager

from caporslap.dependencies import get_store, prize_pool_service
from caporslap.errors import UpstreamUnavailableError
from caporslap.load_secrets import prize_pool_auto_rollover
from caporslap.routers import game, leaderboard, mystery_box, prize_pool
from caporslap.store import KeyValueStore

scheduler = AsyncIOScheduler()
logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app):
    """Start the weekly prize pool rollover when enabled.
    This function is called to start the server.
    """
    if prize_pool_auto_rollover:
        # Close the finished week every Sunday 00:00 UTC
        scheduler.add_job(
            prize_pool_service.scheduled_rollover,
            "cron",
            day_of_week="sun",
            hour=0,
            minute=0,
            timezone="UTC",
        )
        scheduler.start()
    try:
        yield
    finally:
        if scheduler.running:
            scheduler.shutdown()
        logging.info("Stop Server")


app = FastAPI(lifespan=lifespan)
app.include_router(game.game_router)
app.include_router(leaderboard.leaderboard_router)
app.include_router(mystery_box.mystery_box_router)
app.include_router(prize_pool.prize_pool_router)


@app.get("/health")
async def health(store: KeyValueStore = Depends(get_store)):
    try:
        await store.ping()
    except UpstreamUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": e.code, "message": e.message},
        ) from e
    return {"status": "ok"}


# if __name__ == "__main__":
#     uvicorn.run(app, host="0.0.0.0", port=8080, reload=True)
