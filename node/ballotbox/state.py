# in-memory ballot registry + helpers
import threading
from typing import Dict, List, Optional, Tuple

from .ballot import Ballot, CreatorCapability
from .errors import BallotExists, BallotNotFound
from .events import EventBus
from .log import get_logger
from .models import (
    BallotCreatedEvent,
    BallotInfo,
    BallotRecord,
    VoteCastEvent,
    VotingEndedEvent,
)

logger = get_logger("state")


class BallotRegistry:
    """
    Stores ballots and their capabilities, both keyed by ballot id.

    The registry lock only guards the two dicts; ballot operations run under
    the ballot's own lock so ballots never contend with each other.
    """

    def __init__(self, bus: Optional[EventBus] = None):
        self.ballots: Dict[str, Ballot] = {}
        self.capabilities: Dict[str, CreatorCapability] = {}
        self.bus = bus if bus is not None else EventBus()
        self._lock = threading.Lock()

    def create_ballot(
        self,
        title: str,
        description: str,
        options: List[str],
        duration_ms: int,
        now_ms: int,
        creator: str,
    ) -> Tuple[Ballot, CreatorCapability, BallotCreatedEvent]:
        ballot, capability = Ballot.create(title, description, options, duration_ms, now_ms, creator)
        with self._lock:
            self.ballots[ballot.ballot_id] = ballot
            self.capabilities[ballot.ballot_id] = capability

        logger.info("ballot %s created by %s, %d options, ends at %d",
                    ballot.ballot_id, creator, len(ballot.options), ballot.end_time)
        event = ballot.created_event()
        self.bus.emit(event)
        return ballot, capability, event

    def get(self, ballot_id: str) -> Ballot:
        with self._lock:
            ballot = self.ballots.get(ballot_id)
        if ballot is None:
            raise BallotNotFound(f"no ballot {ballot_id}")
        return ballot

    def list_ballots(self) -> List[BallotInfo]:
        with self._lock:
            ballots = list(self.ballots.values())
        return [b.info() for b in ballots]

    def cast_vote(self, ballot_id: str, option_index: int, now_ms: int, voter: str) -> VoteCastEvent:
        event = self.get(ballot_id).cast_vote(option_index, now_ms, voter)
        logger.debug("vote on %s by %s for option %d", ballot_id, voter, option_index)
        self.bus.emit(event)
        return event

    def end_voting(self, ballot_id: str, token: str, now_ms: int) -> VotingEndedEvent:
        ballot = self.get(ballot_id)
        event = ballot.end_voting(CreatorCapability(ballot_id=ballot_id, token=token), now_ms)
        logger.info("ballot %s ended: %r wins with %d of %d votes",
                    ballot_id, event.winning_option, event.winning_votes, event.total_votes)
        self.bus.emit(event)
        return event

    def export_ballot(self, ballot_id: str) -> BallotRecord:
        return self.get(ballot_id).to_record()

    def import_ballot(self, record: BallotRecord) -> Ballot:
        """
        Load a stored ballot. No capability comes with it, so an imported
        ballot cannot be finalized on this node. A ballot id already held
        here is never replaced.
        """
        ballot = Ballot.from_record(record)
        with self._lock:
            if ballot.ballot_id in self.ballots:
                raise BallotExists(f"ballot {ballot.ballot_id} already exists")
            self.ballots[ballot.ballot_id] = ballot
        logger.info("ballot %s imported with %d votes", ballot.ballot_id, ballot.total_votes)
        return ballot


registry = BallotRegistry()
