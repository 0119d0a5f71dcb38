"""
clubcore 状态机引擎测试
"""
import pytest

from clubcore.engine import (
    StateMachine, StateMachineConfig, StateTransition, TransitionNotAllowed
)


@pytest.fixture
def door_config():
    return StateMachineConfig(
        name="Door",
        states=["open", "closed", "locked", "broken"],
        transitions=[
            StateTransition.of("open", "closed", "close"),
            StateTransition.of("closed", "open", "open"),
            StateTransition.of("closed", "locked", "lock"),
            StateTransition.of(["open", "closed", "locked"], "broken", "kick"),
        ],
        final_states=frozenset({"broken"}),
    )


class TestStateMachineConfig:
    """配置校验"""

    def test_unknown_state_rejected(self):
        with pytest.raises(ValueError, match="unknown states"):
            StateMachineConfig(
                name="Bad",
                states=["a"],
                transitions=[StateTransition.of("a", "b", "go")],
            )

    def test_transition_out_of_final_state_rejected(self):
        with pytest.raises(ValueError, match="leaves a final state"):
            StateMachineConfig(
                name="Bad",
                states=["a", "b"],
                transitions=[StateTransition.of("b", "a", "back")],
                final_states=frozenset({"b"}),
            )

    def test_of_accepts_single_state(self):
        t = StateTransition.of("a", "b", "go")
        assert t.from_states == frozenset({"a"})


class TestStateMachine:
    """状态转换"""

    def test_fire_moves_state(self, door_config):
        machine = StateMachine(door_config, "open")
        assert machine.fire("close") == "closed"
        assert machine.current_state == "closed"

    def test_fire_not_allowed(self, door_config):
        machine = StateMachine(door_config, "open")
        with pytest.raises(TransitionNotAllowed) as exc:
            machine.fire("lock")
        assert exc.value.current_state == "open"
        assert exc.value.trigger == "lock"
        assert machine.current_state == "open"

    def test_unknown_trigger(self, door_config):
        machine = StateMachine(door_config, "open")
        assert machine.can_fire("fly") is False
        with pytest.raises(TransitionNotAllowed):
            machine.fire("fly")

    def test_final_state_blocks_everything(self, door_config):
        machine = StateMachine(door_config, "broken")
        assert machine.is_final
        assert machine.allowed_triggers() == []
        for trigger in ("open", "close", "lock", "kick"):
            assert not machine.can_fire(trigger)

    def test_multi_source_transition(self, door_config):
        for state in ("open", "closed", "locked"):
            assert StateMachine(door_config, state).target_of("kick") == "broken"

    def test_allowed_triggers(self, door_config):
        machine = StateMachine(door_config, "closed")
        assert set(machine.allowed_triggers()) == {"open", "lock", "kick"}

    def test_history_recorded(self, door_config):
        machine = StateMachine(door_config, "open")
        machine.fire("close")
        machine.fire("lock")
        history = machine.get_history()
        assert [(h.previous_state, h.current_state) for h in history] == [
            ("open", "closed"), ("closed", "locked")
        ]

    def test_unknown_initial_state(self, door_config):
        with pytest.raises(ValueError):
            StateMachine(door_config, "ajar")
