"""
Update state machine for the Paket bootstrapper.

One UpdateStateMachine tracks a single fetch or self-update attempt:

- idle: nothing in progress
- resolving: computing the package URL
- downloading: fetching the package into a scratch workspace
- unpacking: extracting the package
- locating: finding the payload executable
- swapping: putting the payload at the target path
- cleanup: deleting the scratch workspace
- done: finished, or skipped because already up to date
- failed: the attempt raised
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from paket_bootstrapper.errors import InvalidArgumentError
from paket_bootstrapper.logging import get_logger

logger = get_logger(__name__)


class UpdateState(str, Enum):
    """
    States for the update state machine.

    State transitions:
    - idle → resolving (start)
    - resolving → downloading (URL known)
    - resolving → done (already up to date)
    - downloading → unpacking → locating → swapping → cleanup → done
    - any active state → failed
    - done / failed → idle (reset)
    """

    IDLE = "idle"
    RESOLVING = "resolving"
    DOWNLOADING = "downloading"
    UNPACKING = "unpacking"
    LOCATING = "locating"
    SWAPPING = "swapping"
    CLEANUP = "cleanup"
    DONE = "done"
    FAILED = "failed"


class UpdateStateData(BaseModel):
    """Observable data of an attempt, passed to progress callbacks."""

    state: UpdateState = Field(default=UpdateState.IDLE)
    package: str | None = Field(default=None, description="Package being fetched")
    version: str | None = Field(default=None, description="Requested version")
    url: str | None = Field(default=None, description="Package download URL")
    workspace: str | None = Field(default=None, description="Scratch workspace")
    last_transition_at: str | None = Field(default=None)
    error_message: str | None = Field(default=None)


_VALID_TRANSITIONS: dict[UpdateState, set[UpdateState]] = {
    UpdateState.IDLE: {UpdateState.RESOLVING},
    UpdateState.RESOLVING: {
        UpdateState.DOWNLOADING,
        UpdateState.DONE,
        UpdateState.FAILED,
    },
    UpdateState.DOWNLOADING: {UpdateState.UNPACKING, UpdateState.FAILED},
    UpdateState.UNPACKING: {UpdateState.LOCATING, UpdateState.FAILED},
    UpdateState.LOCATING: {UpdateState.SWAPPING, UpdateState.FAILED},
    UpdateState.SWAPPING: {UpdateState.CLEANUP, UpdateState.FAILED},
    UpdateState.CLEANUP: {UpdateState.DONE, UpdateState.FAILED},
    UpdateState.DONE: {UpdateState.IDLE},
    UpdateState.FAILED: {UpdateState.IDLE},
}


class UpdateStateMachine:
    """
    Validates and records the state transitions of one update attempt.

    Attributes:
        state: Current state.
        state_data: Observable data for the attempt.
        history: Every state entered since the last reset, in order.
    """

    def __init__(self) -> None:
        self._state_data = UpdateStateData()
        self._history: list[UpdateState] = []
        self._progress_callbacks: list[Callable[[UpdateStateData], None]] = []

    @property
    def state(self) -> UpdateState:
        """Get the current state."""
        return self._state_data.state

    @property
    def state_data(self) -> UpdateStateData:
        """Get the state data."""
        return self._state_data

    @property
    def history(self) -> list[UpdateState]:
        """States entered since the last reset."""
        return list(self._history)

    def add_progress_callback(
        self, callback: Callable[[UpdateStateData], None]
    ) -> None:
        """Add a callback to be notified of state changes."""
        self._progress_callbacks.append(callback)

    def _notify_progress(self) -> None:
        for callback in self._progress_callbacks:
            try:
                callback(self._state_data)
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")

    def transition_to(
        self,
        new_state: UpdateState,
        *,
        error_message: str | None = None,
        **data: str | None,
    ) -> None:
        """
        Transition to a new state.

        Args:
            new_state: The state to transition to.
            error_message: Optional error message for the failed state.
            **data: UpdateStateData fields to set (package, version, url,
                workspace).

        Raises:
            InvalidArgumentError: If the transition is not valid.
        """
        current = self.state

        if new_state not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidArgumentError(
                f"Invalid state transition from {current.value} to {new_state.value}",
                details={
                    "current_state": current.value,
                    "target_state": new_state.value,
                    "valid_transitions": sorted(
                        s.value for s in _VALID_TRANSITIONS.get(current, set())
                    ),
                },
            )

        logger.info(
            f"State transition: {current.value} -> {new_state.value}",
            extra={
                "old_state": current.value,
                "new_state": new_state.value,
                "package": self._state_data.package,
            },
        )

        updates = {key: value for key, value in data.items() if value is not None}
        self._state_data = self._state_data.model_copy(
            update={
                **updates,
                "state": new_state,
                "last_transition_at": datetime.now(UTC).isoformat(),
            }
        )
        if error_message is not None:
            self._state_data.error_message = error_message

        self._history.append(new_state)
        self._notify_progress()

    def fail(self, error: BaseException) -> None:
        """Move to the failed state unless the attempt already ended."""
        if self.state in (UpdateState.IDLE, UpdateState.DONE, UpdateState.FAILED):
            return
        self.transition_to(UpdateState.FAILED, error_message=str(error))

    def reset(self) -> None:
        """Return to idle and forget the previous attempt."""
        logger.debug("Resetting state machine to idle")
        self._state_data = UpdateStateData()
        self._history.clear()
