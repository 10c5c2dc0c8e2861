class BallotError(Exception):
    """Base class for ballot failures. Raised before any state is touched."""

    code = "ballot_error"
    status_code = 400


class InvalidDuration(BallotError):
    """Duration at creation was zero or negative."""

    code = "invalid_duration"
    status_code = 422


class NoOptions(BallotError):
    """A ballot was created without any option."""

    code = "no_options"
    status_code = 422


class VotingEnded(BallotError):
    """Vote attempted at or after the ballot's end time."""

    code = "voting_ended"
    status_code = 409


class AlreadyVoted(BallotError):
    code = "already_voted"
    status_code = 409


class InvalidOption(BallotError):
    code = "invalid_option"
    status_code = 422


class VotingNotEnded(BallotError):
    """Finalization attempted while the voting window is still open."""

    code = "voting_not_ended"
    status_code = 409


class NotAuthorized(BallotError):
    """The presented capability is not the one minted for this ballot."""

    code = "not_authorized"
    status_code = 403


class BallotNotFound(BallotError):
    code = "ballot_not_found"
    status_code = 404


class BallotExists(BallotError):
    """An imported record would replace a ballot already held."""

    code = "ballot_exists"
    status_code = 409
