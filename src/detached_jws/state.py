from __future__ import annotations
import enum

from .errors import WriteAfterFinishError


class StreamState(enum.Enum):
    OPEN = "open"
    FINISHED = "finished"
    FAILED = "failed"


class _StatefulWriter:
    """Tagged Open/Finished/Failed lifecycle shared by both JWS writers.

    Finished and Failed are terminal; every operation outside Open raises
    WriteAfterFinishError and leaves the writer untouched.
    """

    _state: StreamState = StreamState.OPEN

    @property
    def state(self) -> StreamState:
        return self._state

    def _ensure_open(self, op: str) -> None:
        if self._state is not StreamState.OPEN:
            raise WriteAfterFinishError(
                f"{op}() called on a {self._state.value} {type(self).__name__}"
            )
