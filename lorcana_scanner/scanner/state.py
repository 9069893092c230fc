"""Finite state machine for the capture pipeline."""

from typing import Callable, Dict, FrozenSet, List, Optional

from ..core.types import PipelineState
from ..utils.error_handler import ErrorContext, StateTransitionError, safe_execute
from ..utils.log import LoggerMixin

S = PipelineState

# Close is allowed from every state and handled separately.
TRANSITIONS: Dict[PipelineState, FrozenSet[PipelineState]] = {
    S.IDLE: frozenset({S.REQUESTING}),
    S.REQUESTING: frozenset({S.STREAMING, S.ERROR}),
    S.STREAMING: frozenset({S.PROCESSING}),
    S.PROCESSING: frozenset({S.MATCHED, S.DISAMBIGUATING, S.STREAMING}),
    S.MATCHED: frozenset({S.STREAMING}),
    S.DISAMBIGUATING: frozenset({S.MATCHED, S.STREAMING}),
    S.ERROR: frozenset({S.REQUESTING}),
}

StateListener = Callable[[PipelineState, PipelineState], None]


class PipelineStateMachine(LoggerMixin):
    """Holds the current state and rejects transitions the pipeline never makes."""

    def __init__(self, on_change: Optional[StateListener] = None):
        self._state = S.IDLE
        self._listeners: List[StateListener] = []
        if on_change is not None:
            self._listeners.append(on_change)

    @property
    def state(self) -> PipelineState:
        return self._state

    def can_transition(self, target: PipelineState) -> bool:
        return target == S.IDLE or target in TRANSITIONS[self._state]

    def subscribe(self, listener: StateListener):
        self._listeners.append(listener)

    def transition(self, target: PipelineState):
        if target == self._state:
            return
        if not self.can_transition(target):
            raise StateTransitionError(
                f"Invalid scanner transition {self._state.value} -> {target.value}",
                details={"from": self._state.value, "to": target.value},
            )

        previous, self._state = self._state, target
        # Per-frame Streaming <-> Processing flips are too chatty for info
        if {previous, target} == {S.STREAMING, S.PROCESSING}:
            self.logger.debug("Scanner state changed", previous=previous.value, state=target.value)
        else:
            self.logger.info("Scanner state changed", previous=previous.value, state=target.value)

        context = ErrorContext(
            operation="state listener",
            module=__name__,
            function="transition",
            input_data={"from": previous.value, "to": target.value},
        )
        for listener in list(self._listeners):
            safe_execute(listener, previous, target, context=context, logger=self.logger)
