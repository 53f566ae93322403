import asyncio
import logging

from society.config import get_settings
from society.db.session import create_all, create_engine

logger = logging.getLogger(__name__)


async def main():
    engine = create_engine(get_settings())
    try:
        await create_all(engine)
        logger.info("All tables created")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
