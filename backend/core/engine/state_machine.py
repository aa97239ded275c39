"""
core/engine/state_machine.py

状态机引擎 - 支持带守卫条件的状态转换与转换历史
"""
from typing import Dict, List, Any, Optional, Callable, FrozenSet
from dataclasses import dataclass, field
import logging
import time

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateTransition:
    """
    状态转换定义

    Attributes:
        from_state: 源状态
        to_state: 目标状态
        trigger: 触发动作
        condition: 可选的守卫条件，接收上下文字典
    """

    from_state: str
    to_state: str
    trigger: str
    condition: Optional[Callable[[Dict[str, Any]], bool]] = None

    def is_allowed(self, context: Dict[str, Any]) -> bool:
        """检查守卫条件"""
        if self.condition is None:
            return True
        return bool(self.condition(context))


@dataclass
class StateMachineConfig:
    """
    状态机配置

    Attributes:
        name: 状态机名称
        states: 所有状态的列表
        transitions: 转换列表
        initial_state: 初始状态
        terminal_states: 终止状态（不允许任何转换）
    """

    name: str
    states: List[str]
    transitions: List[StateTransition]
    initial_state: str
    terminal_states: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        if self.initial_state not in self.states:
            raise ValueError(f"Unknown initial state '{self.initial_state}' for {self.name}")
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(f"Transition {t.trigger} references unknown state in {self.name}")
            if t.from_state in self.terminal_states:
                raise ValueError(f"Terminal state '{t.from_state}' cannot have outgoing transitions")


@dataclass
class StateMachineSnapshot:
    """
    转换记录 - 用于审计

    Attributes:
        previous_state: 前一状态
        current_state: 转换后状态
        trigger: 触发动作
        timestamp: 转换时间
    """

    previous_state: str
    current_state: str
    trigger: str
    timestamp: float


class StateMachine:
    """
    状态机引擎

    特性：
    - 按 (源状态, 触发动作) 查找转换
    - 守卫条件校验
    - 历史记录（用于审计）

    Example:
        >>> machine = StateMachine(
        ...     config=StateMachineConfig(
        ...         name="Booking",
        ...         states=["pending", "confirmed"],
        ...         transitions=[StateTransition("pending", "confirmed", "confirm_payment")],
        ...         initial_state="pending",
        ...     )
        ... )
        >>> machine.fire("confirm_payment")
        'confirmed'
    """

    def __init__(self, config: StateMachineConfig):
        self._config = config
        self._current_state = config.initial_state
        self._history: List[StateMachineSnapshot] = []
        self._transition_map: Dict[str, Dict[str, StateTransition]] = {}

        # 构建转换映射: from_state -> trigger -> transition
        for t in config.transitions:
            self._transition_map.setdefault(t.from_state, {})[t.trigger] = t

    @property
    def current_state(self) -> str:
        """获取当前状态"""
        return self._current_state

    @property
    def config(self) -> StateMachineConfig:
        """获取状态机配置"""
        return self._config

    def is_terminal(self) -> bool:
        """当前状态是否为终止状态"""
        return self._current_state in self._config.terminal_states

    def triggers(self) -> List[str]:
        """当前状态下定义的触发动作（不评估守卫条件）"""
        return sorted(self._transition_map.get(self._current_state, {}))

    def target_of(self, trigger: str) -> Optional[str]:
        """当前状态下某触发动作的目标状态"""
        transition = self._transition_map.get(self._current_state, {}).get(trigger)
        return transition.to_state if transition else None

    def can_fire(self, trigger: str, context: Optional[Dict[str, Any]] = None) -> bool:
        """
        检查当前状态下触发动作是否被允许

        Args:
            trigger: 触发动作
            context: 守卫条件使用的上下文

        Returns:
            True 如果转换存在且守卫通过
        """
        transition = self._transition_map.get(self._current_state, {}).get(trigger)
        if transition is None:
            return False
        return transition.is_allowed(context or {})

    def can_transition_to(self, target_state: str, trigger: str,
                          context: Optional[Dict[str, Any]] = None) -> bool:
        """检查是否可以通过 trigger 转换到目标状态"""
        if target_state not in self._config.states:
            return False
        return self.target_of(trigger) == target_state and self.can_fire(trigger, context)

    def fire(self, trigger: str, context: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """
        执行状态转换

        Args:
            trigger: 触发动作
            context: 守卫条件使用的上下文

        Returns:
            转换后的状态；转换不被允许时返回 None
        """
        if not self.can_fire(trigger, context):
            logger.warning(
                f"{self._config.name}: trigger '{trigger}' not allowed from {self._current_state}"
            )
            return None

        previous_state = self._current_state
        self._current_state = self._transition_map[previous_state][trigger].to_state
        self._history.append(StateMachineSnapshot(
            previous_state=previous_state,
            current_state=self._current_state,
            trigger=trigger,
            timestamp=time.time(),
        ))

        logger.info(
            f"{self._config.name} transition: {previous_state} -> {self._current_state} (trigger: {trigger})"
        )
        return self._current_state

    def get_history(self) -> List[StateMachineSnapshot]:
        """获取转换历史"""
        return list(self._history)

    def reset(self, state: Optional[str] = None) -> None:
        """
        重置状态机

        Args:
            state: 要重置到的状态，如果为 None 则使用初始状态
        """
        target = state if state is not None else self._config.initial_state
        if target not in self._config.states:
            raise ValueError(f"Unknown state '{target}' for {self._config.name}")
        self._current_state = target
        self._history.clear()


__all__ = [
    "StateTransition",
    "StateMachineConfig",
    "StateMachineSnapshot",
    "StateMachine",
]
