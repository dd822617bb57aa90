"""Transition tables for contracts and milestones.

Every status change goes through :meth:`StateMachine.advance`, which issues a
single ``UPDATE ... WHERE id = :id AND status IN (:sources)``. A transition
that matches no row either was illegal for the current status or lost a race
against a concurrent request; both roll the transaction back and surface as
:class:`StateError`.
"""
from typing import Dict, Optional

from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import StateError
from ..core.logging import setup_logger

logger = setup_logger("state_machine")

class StateMachine:
    def __init__(self, name: str, transitions: Dict[str, Dict[str, str]]):
        self.name = name
        # event -> {from_status: to_status}
        self.transitions = transitions

    def sources(self, event: str):
        return tuple(self.transitions[event])

    def can(self, event: str, current: str) -> bool:
        return current in self.transitions.get(event, {})

    def target(self, event: str, current: str) -> str:
        if not self.can(event, current):
            raise StateError(f"Cannot {event.replace('_', ' ')} a {self.name} in status '{current}'")
        return self.transitions[event][current]

    async def advance(
        self,
        session: AsyncSession,
        model,
        row_id: int,
        event: str,
        *criteria,
        error: Optional[str] = None,
        **values,
    ) -> None:
        """Apply ``event`` to one row, compare-and-swap style.

        Extra ``criteria`` are ANDed into the WHERE clause and ``values`` are
        written in the same statement, so a guard and its side effect cannot
        be split by another writer.
        """
        mapping = self.transitions[event]
        targets = set(mapping.values())
        if len(targets) == 1:
            new_status = targets.pop()
        else:
            new_status = case(mapping, value=model.status)

        stmt = (
            update(model)
            .where(model.id == row_id, model.status.in_(mapping.keys()), *criteria)
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        if result.rowcount != 1:
            logger.warning(f"Rejected {self.name} transition '{event}' on id={row_id}")
            await session.rollback()
            raise StateError(error or f"Cannot {event.replace('_', ' ')} this {self.name} in its current status")
        logger.info(f"{self.name} {row_id}: {event}")

CONTRACT_FSM = StateMachine("contract", {
    "fund": {"draft": "funded", "funded": "funded", "active": "active"},
    "activate": {"funded": "active"},
    "complete": {"draft": "completed", "funded": "completed", "active": "completed"},
    "cancel": {"draft": "cancelled", "funded": "cancelled", "active": "cancelled"},
    "close": {"completed": "closed"},
})

MILESTONE_FSM = StateMachine("milestone", {
    "submit": {
        "pending": "submitted",
        "funded": "submitted",
        "in_progress": "submitted",
        "submitted": "submitted",
        "changes_requested": "submitted",
    },
    "approve": {"submitted": "completed"},
    "request_changes": {"submitted": "changes_requested"},
    "release": {"completed": "paid"},
})
