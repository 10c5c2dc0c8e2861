from typing import Dict, List, Literal, Union
from pydantic import BaseModel, Field


class CreateBallotIn(BaseModel):
    title: str = Field(..., examples=["Adopt the new charter?"])
    description: str = Field("", examples=["Proposal 12"])
    options: List[str] = Field(..., examples=[["Yes", "No", "Abstain"]])
    duration_ms: int = Field(..., examples=[86_400_000])


class CreateBallotOut(BaseModel):
    ballot_id: str
    capability: str
    end_time: int


class VoteIn(BaseModel):
    option_index: int = Field(..., examples=[0])


class BallotInfo(BaseModel):
    ballot_id: str
    title: str
    description: str
    start_time: int
    end_time: int
    total_votes: int


class BallotResults(BaseModel):
    """
    Live or final tally, index-aligned:
    vote_counts[i] is the count for options[i].
    """
    ballot_id: str
    options: List[str]
    vote_counts: List[int]
    total_votes: int


class BallotRecord(BaseModel):
    """
    Persisted layout of one ballot. Capabilities are never part of it.
    """
    ballot_id: str
    title: str
    description: str
    options: List[str]
    vote_counts: Dict[int, int]
    voted_identities: List[str]
    creator: str
    start_time: int
    end_time: int
    total_votes: int


class BallotCreatedEvent(BaseModel):
    kind: Literal["ballot_created"] = "ballot_created"
    ballot_id: str
    title: str
    creator: str
    end_time: int


class VoteCastEvent(BaseModel):
    kind: Literal["vote_cast"] = "vote_cast"
    ballot_id: str
    voter: str
    option_index: int
    option: str


class VotingEndedEvent(BaseModel):
    kind: Literal["voting_ended"] = "voting_ended"
    ballot_id: str
    total_votes: int
    winning_option: str
    winning_votes: int


BallotEvent = Union[BallotCreatedEvent, VoteCastEvent, VotingEndedEvent]
