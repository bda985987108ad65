"""
Canonical workflow types (``stock_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document lifecycle state machines, defined once so
that modules (purchasing) declare their workflows as data.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* ``terminal_states`` have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Transition:
    """A valid state transition.

    ``moves_stock=True`` marks the transition that posts ledger movements.
    """
    from_state: str
    to_state: str
    action: str
    moves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} "
                f"is not a declared state"
            )
        for transition in self.transitions:
            for state in (transition.from_state, transition.to_state):
                if state not in self.states:
                    raise ValueError(
                        f"Workflow {self.name}: transition {transition.action!r} "
                        f"references unknown state {state!r}"
                    )
            if transition.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state "
                    f"{transition.from_state!r} has an outgoing transition"
                )

    def find_transition(self, current_state: str, action: str) -> Transition | None:
        """The transition for ``action`` from ``current_state``, or None."""
        for transition in self.transitions:
            if transition.from_state == current_state and transition.action == action:
                return transition
        return None

    def actions_from(self, current_state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == current_state)

    def stock_transition_from(self, current_state: str) -> Transition | None:
        """The transition out of ``current_state`` that posts ledger movements, if any."""
        for transition in self.transitions:
            if transition.from_state == current_state and transition.moves_stock:
                return transition
        return None
