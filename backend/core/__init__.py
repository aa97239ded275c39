"""
core - 与具体领域无关的框架层

- engine: 状态机引擎（状态、触发器、守卫条件、转换历史）

使用方式:
    >>> from core.engine import StateMachine, StateMachineConfig, StateTransition
"""
from core.engine.state_machine import (
    StateTransition,
    StateMachineConfig,
    StateMachineSnapshot,
    StateMachine,
)

__version__ = "1.0.0"

__all__ = [
    "StateTransition",
    "StateMachineConfig",
    "StateMachineSnapshot",
    "StateMachine",
]
