# ballot entity + guarded state transitions
import hmac
import secrets
import threading
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .errors import (
    AlreadyVoted,
    InvalidDuration,
    InvalidOption,
    NoOptions,
    NotAuthorized,
    VotingEnded,
    VotingNotEnded,
)
from .models import (
    BallotCreatedEvent,
    BallotInfo,
    BallotRecord,
    BallotResults,
    VoteCastEvent,
    VotingEndedEvent,
)


@dataclass(frozen=True)
class CreatorCapability:
    """
    Proof of the right to finalize one ballot.
    Minted only by Ballot.create; the token is opaque to the core.
    """
    ballot_id: str
    token: str = field(repr=False)


class Ballot:
    """
    Single-proposal ballot: fixed options, fixed window, one vote per identity.

    All mutation happens in cast_vote under the instance lock; queries take the
    same lock so a reader never sees the voter set, the per-option count and
    the total out of step.
    """

    def __init__(
        self,
        ballot_id: str,
        title: str,
        description: str,
        options: Tuple[str, ...],
        creator: str,
        start_time: int,
        end_time: int,
        vote_counts: Optional[Dict[int, int]] = None,
        voted_identities: Optional[Set[str]] = None,
    ):
        self.ballot_id = ballot_id
        self.title = title
        self.description = description
        self.options = options
        self.creator = creator
        self.start_time = start_time
        self.end_time = end_time
        self.vote_counts = vote_counts if vote_counts is not None else {i: 0 for i in range(len(options))}
        self.voted_identities = voted_identities if voted_identities is not None else set()
        self.total_votes = sum(self.vote_counts.values())
        self._capability_token: Optional[str] = None
        self._lock = threading.Lock()

    @classmethod
    def create(
        cls,
        title: str,
        description: str,
        options: List[str],
        duration_ms: int,
        now_ms: int,
        creator: str,
    ) -> Tuple["Ballot", CreatorCapability]:
        if duration_ms <= 0:
            raise InvalidDuration(f"duration must be positive, got {duration_ms}")
        if not options:
            raise NoOptions("a ballot needs at least one option")

        ballot = cls(
            ballot_id=uuid.uuid4().hex,
            title=title,
            description=description,
            options=tuple(options),
            creator=creator,
            start_time=now_ms,
            end_time=now_ms + duration_ms,
        )
        capability = CreatorCapability(ballot_id=ballot.ballot_id, token=secrets.token_urlsafe(32))
        ballot._capability_token = capability.token
        return ballot, capability

    def created_event(self) -> BallotCreatedEvent:
        return BallotCreatedEvent(
            ballot_id=self.ballot_id,
            title=self.title,
            creator=self.creator,
            end_time=self.end_time,
        )

    # ----------- transitions -----------

    def cast_vote(self, option_index: int, now_ms: int, voter: str) -> VoteCastEvent:
        """
        Record one vote. Checks run in a fixed order so the caller always sees
        the same error for the same combination of violations:
        window closed, then duplicate voter, then bad index.
        """
        with self._lock:
            if now_ms >= self.end_time:
                raise VotingEnded(f"ballot {self.ballot_id} closed at {self.end_time}")
            if voter in self.voted_identities:
                raise AlreadyVoted(f"{voter} has already voted on {self.ballot_id}")
            if not 0 <= option_index < len(self.options):
                raise InvalidOption(f"option {option_index} out of range 0..{len(self.options) - 1}")

            self.voted_identities.add(voter)
            self.vote_counts[option_index] += 1
            self.total_votes += 1

        return VoteCastEvent(
            ballot_id=self.ballot_id,
            voter=voter,
            option_index=option_index,
            option=self.options[option_index],
        )

    def end_voting(self, capability: CreatorCapability, now_ms: int) -> VotingEndedEvent:
        """
        Compute the winner once the window has closed. Nothing on the ballot
        changes; repeated calls return the same result.
        """
        with self._lock:
            if now_ms < self.end_time:
                raise VotingNotEnded(f"ballot {self.ballot_id} is open until {self.end_time}")
            if capability.ballot_id != self.ballot_id:
                raise NotAuthorized(f"capability is not bound to ballot {self.ballot_id}")
            if self._capability_token is None or not hmac.compare_digest(
                self._capability_token.encode(), capability.token.encode()
            ):
                raise NotAuthorized(f"capability was not minted for ballot {self.ballot_id}")

            # strictly greater only: ties stay with the lowest index
            winning_index = 0
            winning_votes = self.vote_counts[0]
            for index in range(1, len(self.options)):
                if self.vote_counts[index] > winning_votes:
                    winning_index = index
                    winning_votes = self.vote_counts[index]
            total = self.total_votes

        return VotingEndedEvent(
            ballot_id=self.ballot_id,
            total_votes=total,
            winning_option=self.options[winning_index],
            winning_votes=winning_votes,
        )

    # ----------- queries -----------

    def info(self) -> BallotInfo:
        with self._lock:
            return BallotInfo(
                ballot_id=self.ballot_id,
                title=self.title,
                description=self.description,
                start_time=self.start_time,
                end_time=self.end_time,
                total_votes=self.total_votes,
            )

    def get_options(self) -> List[str]:
        return list(self.options)

    def get_vote_count(self, option_index: int) -> int:
        with self._lock:
            return self.vote_counts.get(option_index, 0)

    def has_voted(self, identity: str) -> bool:
        with self._lock:
            return identity in self.voted_identities

    def is_active(self, now_ms: int) -> bool:
        return self.start_time <= now_ms < self.end_time

    def get_results(self) -> BallotResults:
        with self._lock:
            return BallotResults(
                ballot_id=self.ballot_id,
                options=list(self.options),
                vote_counts=[self.vote_counts[i] for i in range(len(self.options))],
                total_votes=self.total_votes,
            )

    # ----------- persistence -----------

    def to_record(self) -> BallotRecord:
        with self._lock:
            return BallotRecord(
                ballot_id=self.ballot_id,
                title=self.title,
                description=self.description,
                options=list(self.options),
                vote_counts=dict(self.vote_counts),
                voted_identities=sorted(self.voted_identities),
                creator=self.creator,
                start_time=self.start_time,
                end_time=self.end_time,
                total_votes=self.total_votes,
            )

    @classmethod
    def from_record(cls, record: BallotRecord) -> "Ballot":
        """
        Rebuild a ballot from its stored layout, rejecting records that break
        the tally invariants.
        """
        if not record.options:
            raise NoOptions("stored ballot has no options")
        if record.start_time >= record.end_time:
            raise InvalidDuration("stored ballot ends before it starts")
        if set(record.vote_counts) != set(range(len(record.options))):
            raise ValueError("vote_counts must have exactly one entry per option")
        if any(count < 0 for count in record.vote_counts.values()):
            raise ValueError("vote counts must be non-negative")
        total = sum(record.vote_counts.values())
        if total != record.total_votes or total != len(set(record.voted_identities)):
            raise ValueError("total_votes does not match counts and voters")

        return cls(
            ballot_id=record.ballot_id,
            title=record.title,
            description=record.description,
            options=tuple(record.options),
            creator=record.creator,
            start_time=record.start_time,
            end_time=record.end_time,
            vote_counts=dict(record.vote_counts),
            voted_identities=set(record.voted_identities),
        )
