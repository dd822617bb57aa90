import pytest
from sqlalchemy import select

from conftest import contract_payload
from gigpanda.core.errors import StateError
from gigpanda.models.contract import Contract, Milestone
from gigpanda.services import contracts
from gigpanda.services.state_machine import CONTRACT_FSM, MILESTONE_FSM

class TestTransitionTables:

    @pytest.mark.parametrize("current,expected", [
        ("draft", "funded"),
        ("funded", "funded"),
        ("active", "active"),
    ])
    def test_fund_targets(self, current, expected):
        assert CONTRACT_FSM.target("fund", current) == expected

    @pytest.mark.parametrize("current", ["completed", "closed", "cancelled"])
    def test_fund_refused_once_finished(self, current):
        assert not CONTRACT_FSM.can("fund", current)
        with pytest.raises(StateError):
            CONTRACT_FSM.target("fund", current)

    def test_activation_only_from_funded(self):
        assert CONTRACT_FSM.sources("activate") == ("funded",)

    @pytest.mark.parametrize("current", ["pending", "funded", "in_progress", "submitted", "changes_requested"])
    def test_milestone_accepts_submissions_until_approved(self, current):
        assert MILESTONE_FSM.target("submit", current) == "submitted"

    @pytest.mark.parametrize("current", ["completed", "paid"])
    def test_milestone_closed_to_submissions(self, current):
        assert not MILESTONE_FSM.can("submit", current)

    def test_release_only_after_completion(self):
        assert MILESTONE_FSM.sources("release") == ("completed",)

    def test_unknown_event(self):
        assert not CONTRACT_FSM.can("teleport", "draft")

class TestAdvance:

    @pytest.fixture
    async def contract(self, session, people, proposal):
        return await contracts.create_contract(session, people.client, proposal.id, contract_payload())

    async def test_applies_transition_and_values(self, session, contract):
        await CONTRACT_FSM.advance(session, Contract, contract.id, "fund", escrow_balance=Contract.escrow_balance + 40)
        await session.commit()

        row = (await session.execute(
            select(Contract.status, Contract.escrow_balance).where(Contract.id == contract.id)
        )).one()
        assert row.status == "funded"
        assert row.escrow_balance == 40

    async def test_illegal_transition_leaves_row_untouched(self, session, contract):
        contract_id = contract.id
        with pytest.raises(StateError):
            await CONTRACT_FSM.advance(session, Contract, contract_id, "activate")

        assert await session.scalar(select(Contract.status).where(Contract.id == contract_id)) == "draft"

    async def test_custom_error_message(self, session, contract):
        with pytest.raises(StateError, match="not yet"):
            await CONTRACT_FSM.advance(session, Contract, contract.id, "close", error="not yet")

    async def test_extra_criteria_guard_the_update(self, session, contract):
        milestone_id = contract.milestones[0].id
        with pytest.raises(StateError):
            await MILESTONE_FSM.advance(
                session, Milestone, milestone_id, "submit", Milestone.contract_id == contract.id + 1
            )
        assert await session.scalar(select(Milestone.status).where(Milestone.id == milestone_id)) == "pending"
