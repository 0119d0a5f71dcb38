from clubcore.engine.state_machine import (
    StateTransition,
    StateMachineConfig,
    StateMachine,
    TransitionNotAllowed,
)

__all__ = [
    "StateTransition",
    "StateMachineConfig",
    "StateMachine",
    "TransitionNotAllowed",
]
