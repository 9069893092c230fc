"""Scanner package: capture loop, state machine and cooldown."""

from .controller import ScannerController
from .cooldown import CooldownMap
from .state import PipelineStateMachine

__all__ = ["ScannerController", "CooldownMap", "PipelineStateMachine"]
