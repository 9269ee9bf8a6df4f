"""
Action registry.

Maps workflow action names to their execute and translate functions and to
the number of parameters each accepts. Actions that need an outside
collaborator (mail, files, other workflows) are registered without an
execute function and raise ActionNotBoundError until a caller binds one.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Dict, Optional, Union

from ..errors import ActionNotBoundError
from ..models import WorkflowModifier
from .action import ExecuteFn, TranslateFn


@dataclass(frozen=True)
class ActionBinding:
    modifier: WorkflowModifier
    execute: Optional[ExecuteFn] = None
    translate: Optional[TranslateFn] = None
    min_params: int = 0
    max_params: Optional[int] = None

    def accepts(self, count: int) -> bool:
        if count < self.min_params:
            return False
        return self.max_params is None or count <= self.max_params

    def arity_text(self) -> str:
        if self.max_params is None:
            return f"at least {self.min_params}"
        if self.min_params == self.max_params:
            return f"exactly {self.min_params}"
        return f"{self.min_params} to {self.max_params}"


def _as_modifier(name: Union[str, WorkflowModifier]) -> WorkflowModifier:
    if isinstance(name, WorkflowModifier):
        return name
    modifier = WorkflowModifier.from_name(name)
    if modifier is None or modifier == WorkflowModifier.NONE:
        raise ValueError(f"Unknown workflow action: {name}")
    return modifier


class ActionRegistry:
    """Thread-safe name to binding table."""

    def __init__(self):
        self._bindings: Dict[WorkflowModifier, ActionBinding] = {}
        self._lock = threading.Lock()

    def register(
        self,
        name: Union[str, WorkflowModifier],
        execute: Optional[ExecuteFn] = None,
        translate: Optional[TranslateFn] = None,
        min_params: Optional[int] = None,
        max_params: Optional[int] = -1,
    ) -> ActionBinding:
        """
        Register or rebind an action.

        Arity arguments left out keep their current values, so binding an
        execute function to a library action does not change how it parses.
        ``max_params=None`` means unbounded.
        """
        modifier = _as_modifier(name)
        with self._lock:
            current = self._bindings.get(modifier, ActionBinding(modifier))
            binding = replace(
                current,
                execute=execute if execute is not None else current.execute,
                translate=translate if translate is not None else current.translate,
                min_params=current.min_params if min_params is None else min_params,
                max_params=current.max_params if max_params == -1 else max_params,
            )
            self._bindings[modifier] = binding
        return binding

    def binding(self, name: Union[str, WorkflowModifier]) -> Optional[ActionBinding]:
        return self._bindings.get(_as_modifier(name))

    def resolve(self, name: Union[str, WorkflowModifier], expression: Optional[str] = None) -> ExecuteFn:
        """Return the execute function or raise ActionNotBoundError."""
        binding = self.binding(name)
        if binding is None or binding.execute is None:
            modifier = _as_modifier(name)
            raise ActionNotBoundError(
                f"No execute function is registered for {modifier.value}", expression
            )
        return binding.execute

    def copy(self) -> "ActionRegistry":
        clone = ActionRegistry()
        with self._lock:
            clone._bindings = dict(self._bindings)
        return clone

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, (str, WorkflowModifier)):
            return False
        modifier = WorkflowModifier.from_name(name) if isinstance(name, str) else name
        return modifier in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)


_default_registry: Optional[ActionRegistry] = None
_default_registry_lock = threading.Lock()


def default_registry() -> ActionRegistry:
    """Registry holding the builtin action library, created on first use."""
    global _default_registry
    if _default_registry is None:
        with _default_registry_lock:
            if _default_registry is None:
                from .builtins import register_builtins
                registry = ActionRegistry()
                register_builtins(registry)
                _default_registry = registry
    return _default_registry
