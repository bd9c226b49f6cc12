"""
Poll Options and Votes
======================
Options are keyed by Snowflake, so the newest option is simply the largest id.
Each identity gets one vote per option; repeat votes are ignored.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..core.database import Database
from ..core.errors import NotFound
from ..core.types import Clock
from ..models import PollOption, Vote
from ..snowflake import Snowflake, SnowflakeGenerator
from ..utils.logger import get_logger

logger = get_logger(__name__)

MAX_TITLE_LENGTH = 4096


@dataclass(frozen=True)
class PollResult:
    option_id: Snowflake
    title: str
    votes: int


class PollStore:
    def __init__(self, database: Database, generator: SnowflakeGenerator, clock: Clock = time.time):
        self.database = database
        self.generator = generator
        self._clock = clock

    @staticmethod
    def validate_title(title: str) -> None:
        if not title or len(title) > MAX_TITLE_LENGTH:
            raise ValueError(f"option title must be 1-{MAX_TITLE_LENGTH} characters")

    async def insert_option(self, title: str) -> Snowflake:
        """Create a poll option and return its id."""
        self.validate_title(title)
        option_id = self.generator.next()
        await self.database.run(self._insert_option_sync, option_id, title)
        logger.info("poll_option_created", option_id=option_id.hex())
        return option_id

    def _insert_option_sync(self, option_id: Snowflake, title: str) -> None:
        with self.database.session() as db:
            db.add(PollOption(id=int(option_id), title=title))

    async def cast_vote(self, identity_key: str, option_id: Snowflake) -> bool:
        """
        Record a vote. Returns False when this identity already voted for the option.
        Raises NotFound for an unknown option.
        """
        return await self.database.run(self._cast_vote_sync, identity_key, option_id)

    def _cast_vote_sync(self, identity_key: str, option_id: Snowflake) -> bool:
        at = datetime.fromtimestamp(self._clock(), tz=timezone.utc).replace(tzinfo=None)
        try:
            with self.database.session() as db:
                if db.get(PollOption, int(option_id)) is None:
                    raise NotFound(f"poll option {option_id.hex()} does not exist")
                if db.get(Vote, (identity_key, int(option_id))) is not None:
                    return False
                db.add(Vote(key=identity_key, option_id=int(option_id), at=at))
        except IntegrityError:
            # concurrent duplicate vote lost the race to the primary key
            return False
        return True

    async def last_results(self) -> PollResult:
        """Vote tally of the most recent option."""
        return await self.database.run(self._last_results_sync)

    def _last_results_sync(self) -> PollResult:
        with self.database.session() as db:
            option = db.query(PollOption).order_by(PollOption.id.desc()).first()
            if option is None:
                raise NotFound("no poll options yet")
            votes = (
                db.query(func.count(Vote.key))
                .filter(Vote.option_id == option.id)
                .scalar()
            )
            return PollResult(option_id=Snowflake(option.id), title=option.title, votes=int(votes or 0))
