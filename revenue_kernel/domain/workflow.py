"""
Canonical workflow types (``revenue_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines.  A ``Workflow`` lists its
states and the legal ``Transition`` edges between them; services resolve every
requested action through ``Workflow.resolve`` so that the legal edges are
declared once, not re-implemented as ``if status == ...`` chains.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* (from_state, action) identifies at most one transition.
"""

from __future__ import annotations

from dataclasses import dataclass

from revenue_kernel.exceptions import InvalidTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the owning service does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``moves_funds=True`` marks transitions that call the Balance Engine and
    must therefore run under the balance write gate.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    moves_funds: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; validated on construction.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} not in states"
            )
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} has outgoing transition"
                )
            key = (t.from_state, t.action)
            if key in seen:
                raise ValueError(
                    f"Workflow {self.name}: duplicate transition {t.action} from {t.from_state}"
                )
            seen.add(key)

    def find(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for (from_state, action), or None."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def resolve(self, from_state: str, action: str, subject_id: int | None = None) -> Transition:
        """Return the transition for (from_state, action).

        Raises:
            InvalidTransitionError: if no such transition is declared.
        """
        transition = self.find(from_state, action)
        if transition is None:
            raise InvalidTransitionError(from_state, action, subject_id)
        return transition

    def actions_from(self, state: str) -> tuple[str, ...]:
        """Actions legal from ``state``, in declaration order."""
        return tuple(t.action for t in self.transitions if t.from_state == state)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states
