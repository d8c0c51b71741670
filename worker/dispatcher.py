import asyncio
import logging

from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.db import create_engine
from app.services.outbox_dispatcher import dispatch_outbox
from worker.celery_app import celery

log = logging.getLogger(__name__)

POLL_SECONDS = 2


async def _tick(Session) -> int:
    async with Session() as db:
        return await dispatch_outbox(db)


async def main():
    celery.connection().ensure_connection(max_retries=3)

    logging.basicConfig(level=logging.INFO)
    log.info("dispatcher: started")

    engine = create_engine()
    Session = async_sessionmaker(engine, expire_on_commit=False)
    try:
        while True:
            try:
                count = await _tick(Session)
                if count:
                    log.info("dispatcher: enqueued %d outbox events", count)
            except Exception:
                log.exception("dispatcher: tick crashed")
            await asyncio.sleep(POLL_SECONDS)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
