import asyncio
import os
import sys
import logging

# Ensure we can find the app module
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from dotenv import load_dotenv

# Load Env before the app reads its settings
load_dotenv()

from app.shared.db.session import get_session_factory, dispose_engine
from app.modules.content_automation.repositories.match_repository import MatchRepository
from app.modules.content_automation.constants import DEFAULT_TIMING_TEMPLATES

# Setup Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("seed_templates")


async def seed_templates():
    if not os.environ.get("DATABASE_URL"):
        logger.error("❌ DATABASE_URL is missing in .env")
        return

    logger.info(f"🔌 Connecting to DB to seed {len(DEFAULT_TIMING_TEMPLATES)} timing templates...")

    async with get_session_factory()() as session:
        repo = MatchRepository(session)
        try:
            for template in DEFAULT_TIMING_TEMPLATES:
                # Upsert by name: re-running refreshes offsets without duplicating rows
                await repo.upsert_template(template)
                logger.info(
                    f"✅ Processed: {template['name']} "
                    f"({template['min_importance_score']}-{template['max_importance_score']})"
                )
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    logger.info("✨ Timing templates seeded successfully!")
    await dispose_engine()

if __name__ == "__main__":
    asyncio.run(seed_templates())
