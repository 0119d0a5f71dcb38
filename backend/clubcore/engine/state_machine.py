"""
clubcore/engine/state_machine.py

状态机引擎 - 声明式转换表 + 终态保护
"""
from typing import Dict, List, Optional, FrozenSet
from dataclasses import dataclass, field
from datetime import datetime
import logging

logger = logging.getLogger(__name__)


class TransitionNotAllowed(Exception):
    """当前状态下不存在该触发动作"""

    def __init__(self, machine: str, current_state: str, trigger: str):
        self.machine = machine
        self.current_state = current_state
        self.trigger = trigger
        super().__init__(
            f"{machine}: trigger '{trigger}' not allowed from state '{current_state}'"
        )


@dataclass(frozen=True)
class StateTransition:
    """
    状态转换定义

    Attributes:
        from_states: 允许的源状态集合
        to_state: 目标状态
        trigger: 触发动作
    """

    from_states: FrozenSet[str]
    to_state: str
    trigger: str

    @classmethod
    def of(cls, from_states, to_state: str, trigger: str) -> "StateTransition":
        if isinstance(from_states, str):
            from_states = [from_states]
        return cls(frozenset(from_states), to_state, trigger)


@dataclass
class StateMachineConfig:
    """
    状态机配置

    Attributes:
        name: 状态机名称
        states: 所有状态
        transitions: 转换列表
        final_states: 终态（不允许任何转出）
    """

    name: str
    states: List[str]
    transitions: List[StateTransition]
    final_states: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        known = set(self.states)
        for t in self.transitions:
            unknown = (set(t.from_states) | {t.to_state}) - known
            if unknown:
                raise ValueError(f"{self.name}: unknown states {sorted(unknown)}")
            if t.from_states & self.final_states:
                raise ValueError(f"{self.name}: transition '{t.trigger}' leaves a final state")


@dataclass
class TransitionRecord:
    """一次已执行的转换（审计用）"""

    previous_state: str
    current_state: str
    trigger: str
    timestamp: datetime


class StateMachine:
    """
    状态机

    同一个配置可被多个实体实例共享，每个实例持有自己的当前状态。

    Example:
        >>> machine = StateMachine(config, current_state="confirmada")
        >>> machine.can_fire("cancel")
        True
        >>> machine.fire("cancel")
        'cancelada'
    """

    def __init__(self, config: StateMachineConfig, current_state: str):
        if current_state not in config.states:
            raise ValueError(f"{config.name}: unknown state '{current_state}'")
        self._config = config
        self._current_state = current_state
        self._history: List[TransitionRecord] = []
        self._transition_map: Dict[str, StateTransition] = {t.trigger: t for t in config.transitions}

    @property
    def current_state(self) -> str:
        """获取当前状态"""
        return self._current_state

    @property
    def config(self) -> StateMachineConfig:
        return self._config

    @property
    def is_final(self) -> bool:
        """当前状态是否为终态"""
        return self._current_state in self._config.final_states

    def target_of(self, trigger: str) -> Optional[str]:
        """触发动作在当前状态下的目标状态，不允许时返回 None"""
        transition = self._transition_map.get(trigger)
        if transition is None or self._current_state not in transition.from_states:
            return None
        return transition.to_state

    def can_fire(self, trigger: str) -> bool:
        return self.target_of(trigger) is not None

    def allowed_triggers(self) -> List[str]:
        """当前状态下可用的触发动作"""
        return [t.trigger for t in self._config.transitions if self._current_state in t.from_states]

    def fire(self, trigger: str) -> str:
        """
        执行状态转换

        Returns:
            新状态

        Raises:
            TransitionNotAllowed: 当前状态不允许该触发动作
        """
        target = self.target_of(trigger)
        if target is None:
            raise TransitionNotAllowed(self._config.name, self._current_state, trigger)

        previous_state = self._current_state
        self._current_state = target
        self._history.append(TransitionRecord(
            previous_state=previous_state,
            current_state=target,
            trigger=trigger,
            timestamp=datetime.now(),
        ))
        logger.info(f"{self._config.name} transition: {previous_state} -> {target} (trigger: {trigger})")
        return target

    def get_history(self) -> List[TransitionRecord]:
        """获取转换历史"""
        return list(self._history)


__all__ = [
    "TransitionNotAllowed",
    "StateTransition",
    "StateMachineConfig",
    "TransitionRecord",
    "StateMachine",
]
