"""
Engine exceptions
"""


class CastawayError(Exception):
    """Base class for game engine errors"""


class JoinValidationError(CastawayError, ValueError):
    """A join request was rejected; nothing was changed"""


class RoomNotFoundError(CastawayError, LookupError):
    def __init__(self, code: str):
        super().__init__(f"Room '{code}' not found")
        self.code = code


class PlayerNotFoundError(CastawayError, LookupError):
    def __init__(self, code: str, player_id: str):
        super().__init__(f"Player '{player_id}' is not in room '{code}'")
        self.code = code
        self.player_id = player_id


class ResolutionInProgressError(CastawayError):
    """A day is already being resolved for this room"""

    def __init__(self, code: str):
        super().__init__(f"Room '{code}' is already resolving a day")
        self.code = code


class IncompleteOutcomeError(CastawayError):
    """A generated resolution does not cover every acting player exactly once"""

    def __init__(self, missing: set[str], duplicated: set[str]):
        parts = []
        if missing:
            parts.append(f"missing outcomes for {sorted(missing)}")
        if duplicated:
            parts.append(f"duplicate outcomes for {sorted(duplicated)}")
        super().__init__("Incomplete outcomes: " + "; ".join(parts))
        self.missing = missing
        self.duplicated = duplicated
