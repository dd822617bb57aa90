"""Contract engine: escrow ledger, milestone review cycle and completion."""
import pytest
from sqlalchemy import select

from conftest import contract_payload
from gigpanda.core.errors import (
    AuthorizationError, ConflictError, NotFoundError, StateError, StorageError, ValidationError,
)
from gigpanda.models.contract import Contract
from gigpanda.models.job import Job
from gigpanda.models.notification import Notification
from gigpanda.models.proposal import Proposal
from gigpanda.models.user import User
from gigpanda.services import contracts
from gigpanda.services.file_storage import Upload

def text_file(name="report.txt", body=b"deliverable"):
    return Upload(filename=name, mimetype="text/plain", data=body)

async def notification_types(session, recipient_id):
    result = await session.execute(
        select(Notification.type).where(Notification.recipient_id == recipient_id).order_by(Notification.id)
    )
    return list(result.scalars().all())

@pytest.fixture
async def contract(session, people, proposal):
    return await contracts.create_contract(session, people.client, proposal.id, contract_payload())

async def approve(session, people, contract, milestone_id, comments="done"):
    await contracts.submit_work(session, people.freelancer, contract.id, milestone_id, [text_file()], comments)
    return await contracts.review_submission(session, people.client, contract.id, milestone_id, "approved")

class TestCreateContract:

    async def test_creates_draft_with_pending_milestones(self, session, people, proposal, contract):
        assert contract.status == "draft"
        assert contract.escrow_balance == 0
        assert contract.total_amount == 300
        assert [m.status for m in contract.milestones] == ["pending", "pending"]
        assert [m.title for m in contract.milestones] == ["Milestone 1", "Milestone 2"]

        assert await session.scalar(select(Proposal.status).where(Proposal.id == proposal.id)) == "accepted"
        assert await session.scalar(select(Job.status).where(Job.id == proposal.job_id)) == "in-progress"
        assert await notification_types(session, people.freelancer.id) == ["CONTRACT_CREATED"]

    async def test_missing_fields_are_listed(self, session, people, proposal):
        with pytest.raises(ValidationError) as exc:
            await contracts.create_contract(session, people.client, proposal.id, {"title": "Only a title"})
        assert set(exc.value.errors) == {"scope", "terms", "milestones"}

    async def test_names_the_first_bad_milestone(self, session, people, proposal):
        payload = contract_payload((100, 200, 300))
        del payload["milestones"][1]["dueDate"]
        payload["milestones"][2]["amount"] = -5
        with pytest.raises(ValidationError) as exc:
            await contracts.create_contract(session, people.client, proposal.id, payload)
        assert "Milestone 1" in exc.value.message
        assert list(exc.value.errors) == ["milestones.1"]

    async def test_non_string_milestone_title(self, session, people, proposal):
        payload = contract_payload()
        payload["milestones"][0]["title"] = 5
        with pytest.raises(ValidationError) as exc:
            await contracts.create_contract(session, people.client, proposal.id, payload)
        assert exc.value.errors == {"milestones.0": "Invalid title"}

    async def test_unknown_proposal(self, session, people):
        with pytest.raises(NotFoundError):
            await contracts.create_contract(session, people.client, 9999, contract_payload())

    async def test_only_job_owner(self, session, people, proposal):
        with pytest.raises(AuthorizationError):
            await contracts.create_contract(session, people.freelancer, proposal.id, contract_payload())

    async def test_second_contract_for_proposal_conflicts(self, session, people, proposal, contract):
        with pytest.raises(ConflictError):
            await contracts.create_contract(session, people.client, proposal.id, contract_payload())

    async def test_total_defaults_to_milestone_sum(self, session, people, proposal):
        payload = contract_payload((40, 60))
        del payload["totalAmount"]
        created = await contracts.create_contract(session, people.client, proposal.id, payload)
        assert created.total_amount == 100

class TestEscrow:

    async def test_funding_accumulates(self, session, people, contract):
        await contracts.fund_escrow(session, people.client, contract.id, 100)
        funded = await contracts.fund_escrow(session, people.client, contract.id, 50)
        assert funded.escrow_balance == 150
        assert funded.status == "funded"

    async def test_funding_an_active_contract_keeps_it_active(self, session, people, contract):
        await contracts.fund_escrow(session, people.client, contract.id, 100)
        await contracts.activate_contract(session, people.client, contract.id)
        funded = await contracts.fund_escrow(session, people.client, contract.id, 25)
        assert funded.status == "active"
        assert funded.escrow_balance == 125

    @pytest.mark.parametrize("amount", [0, -10, "abc", None])
    async def test_rejects_non_positive_amounts(self, session, people, contract, amount):
        with pytest.raises(ValidationError):
            await contracts.fund_escrow(session, people.client, contract.id, amount)

    async def test_completed_contract_cannot_be_funded(self, session, people, proposal):
        contract = await contracts.create_contract(session, people.client, proposal.id, contract_payload((100,)))
        contract_id = contract.id
        milestone_id = contract.milestones[0].id
        await contracts.fund_escrow(session, people.client, contract_id, 100)
        await approve(session, people, contract, milestone_id)
        await contracts.release_payment(session, people.client, contract_id, milestone_id)
        await contracts.complete_contract(session, people.client, contract_id)

        with pytest.raises(StateError):
            await contracts.fund_escrow(session, people.client, contract_id, 10)
        row = (await session.execute(
            select(Contract.status, Contract.escrow_balance).where(Contract.id == contract_id)
        )).one()
        assert (row.status, row.escrow_balance) == ("completed", 0)

    async def test_freelancer_cannot_fund(self, session, people, contract):
        with pytest.raises(AuthorizationError):
            await contracts.fund_escrow(session, people.freelancer, contract.id, 100)

    async def test_activation_requires_funding(self, session, people, contract):
        with pytest.raises(StateError):
            await contracts.activate_contract(session, people.client, contract.id)

    async def test_activation_stamps_start_date(self, session, people, contract):
        await contracts.fund_escrow(session, people.client, contract.id, 300)
        active = await contracts.activate_contract(session, people.client, contract.id)
        assert active.status == "active"
        assert active.start_date is not None
        assert await notification_types(session, people.freelancer.id) == [
            "CONTRACT_CREATED", "CONTRACT_FUNDED", "CONTRACT_ACTIVATED",
        ]

class TestSubmissions:

    async def test_resubmission_archives_previous(self, session, people, contract):
        milestone_id = contract.milestones[0].id
        await contracts.submit_work(session, people.freelancer, contract.id, milestone_id, [text_file()], "first")
        updated, failed = await contracts.submit_work(
            session, people.freelancer, contract.id, milestone_id, [text_file()], "second"
        )
        milestone = updated.milestone(milestone_id)

        assert failed == []
        assert milestone.status == "submitted"
        assert milestone.current_submission.comments == "second"
        assert [s.comments for s in milestone.submission_history] == ["first"]
        assert milestone.submission_history[0].status == "pending"

    async def test_approval_moves_submission_into_history(self, session, people, contract):
        milestone_id = contract.milestones[0].id
        approved = await approve(session, people, contract, milestone_id)
        milestone = approved.milestone(milestone_id)

        assert milestone.status == "completed"
        assert milestone.current_submission is None
        assert milestone.submission_history[0].status == "approved"
        assert milestone.submission_history[0].feedback_at is not None

    async def test_changes_requested_then_resubmitted(self, session, people, contract):
        milestone_id = contract.milestones[0].id
        await contracts.submit_work(session, people.freelancer, contract.id, milestone_id, [text_file()], "v1")
        reviewed = await contracts.review_submission(
            session, people.client, contract.id, milestone_id, "changes_requested", "Needs a footer"
        )
        assert reviewed.milestone(milestone_id).status == "changes_requested"
        assert reviewed.milestone(milestone_id).submission_history[0].client_feedback == "Needs a footer"

        resubmitted, _ = await contracts.submit_work(
            session, people.freelancer, contract.id, milestone_id, [text_file()], "v2"
        )
        milestone = resubmitted.milestone(milestone_id)
        assert milestone.status == "submitted"
        assert milestone.current_submission.comments == "v2"
        assert len(milestone.submission_history) == 1

    async def test_cannot_submit_after_approval(self, session, people, contract):
        milestone_id = contract.milestones[0].id
        await approve(session, people, contract, milestone_id)
        with pytest.raises(StateError):
            await contracts.submit_work(session, people.freelancer, contract.id, milestone_id, [text_file()])

    async def test_review_without_submission(self, session, people, contract):
        with pytest.raises(NotFoundError):
            await contracts.review_submission(
                session, people.client, contract.id, contract.milestones[0].id, "approved"
            )

    async def test_review_rejects_unknown_status(self, session, people, contract):
        with pytest.raises(ValidationError):
            await contracts.review_submission(
                session, people.client, contract.id, contract.milestones[0].id, "maybe"
            )

    async def test_client_cannot_submit(self, session, people, contract):
        with pytest.raises(AuthorizationError):
            await contracts.submit_work(session, people.client, contract.id, contract.milestones[0].id, [])

    async def test_unknown_milestone(self, session, people, contract):
        with pytest.raises(NotFoundError):
            await contracts.submit_work(session, people.freelancer, contract.id, 9999, [text_file()])

    async def test_limits_reject_whole_upload(self, session, people, contract, monkeypatch):
        from gigpanda.config import settings

        monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE", 4)
        with pytest.raises(ValidationError):
            await contracts.submit_work(
                session, people.freelancer, contract.id, contract.milestones[0].id,
                [text_file(body=b"ok"), text_file(body=b"far too large")],
            )

    async def test_rejects_disallowed_mimetype(self, session, people, contract):
        upload = Upload(filename="run.sh", mimetype="application/x-sh", data=b"echo hi")
        with pytest.raises(ValidationError):
            await contracts.submit_work(session, people.freelancer, contract.id, contract.milestones[0].id, [upload])

    async def test_partial_storage_failure_is_reported(self, session, people, contract):
        updated, failed = await contracts.submit_work(
            session, people.freelancer, contract.id, contract.milestones[0].id,
            [text_file("good.txt"), text_file("empty.txt", b"")],
        )
        current = updated.milestones[0].current_submission
        assert failed == ["empty.txt"]
        assert [f["filename"] for f in current.files] == ["good.txt"]

    async def test_total_storage_failure_raises(self, session, people, contract):
        with pytest.raises(StorageError):
            await contracts.submit_work(
                session, people.freelancer, contract.id, contract.milestones[0].id,
                [text_file("empty.txt", b"")],
            )

    async def test_download_searches_history(self, session, people, contract):
        milestone_id = contract.milestones[0].id
        approved = await approve(session, people, contract, milestone_id)
        stored_key = approved.milestone(milestone_id).submission_history[0].files[0]["storageKey"]

        meta, stored = await contracts.download_submission_file(
            session, people.freelancer, contract.id, milestone_id, stored_key
        )
        assert meta["filename"] == "report.txt"
        assert stored.data == b"deliverable"

    async def test_download_unknown_file(self, session, people, contract):
        with pytest.raises(NotFoundError):
            await contracts.download_submission_file(
                session, people.client, contract.id, contract.milestones[0].id, "missing"
            )

class TestPaymentAndCompletion:

    async def test_release_requires_completed_milestone(self, session, people, contract):
        await contracts.fund_escrow(session, people.client, contract.id, 300)
        with pytest.raises(StateError):
            await contracts.release_payment(session, people.client, contract.id, contract.milestones[0].id)

    async def test_release_requires_balance(self, session, people, contract):
        milestone_id = contract.milestones[1].id  # amount 200
        await contracts.fund_escrow(session, people.client, contract.id, 150)
        await approve(session, people, contract, milestone_id)
        with pytest.raises(StateError):
            await contracts.release_payment(session, people.client, contract.id, milestone_id)

        reloaded = await contracts.load_contract(session, contract.id)
        assert reloaded.escrow_balance == 150
        assert reloaded.milestone(milestone_id).status == "completed"

    async def test_release_debits_escrow_and_credits_freelancer(self, session, people, contract):
        milestone_id = contract.milestones[0].id
        await contracts.fund_escrow(session, people.client, contract.id, 300)
        await approve(session, people, contract, milestone_id)
        released = await contracts.release_payment(session, people.client, contract.id, milestone_id)

        assert released.escrow_balance == 200
        assert released.milestone(milestone_id).status == "paid"
        earnings = await session.scalar(select(User.total_earnings).where(User.id == people.freelancer.id))
        assert earnings == 100

    async def test_release_twice_fails(self, session, people, contract):
        milestone_id = contract.milestones[0].id
        await contracts.fund_escrow(session, people.client, contract.id, 300)
        await approve(session, people, contract, milestone_id)
        await contracts.release_payment(session, people.client, contract.id, milestone_id)
        with pytest.raises(StateError):
            await contracts.release_payment(session, people.client, contract.id, milestone_id)

    async def test_complete_requires_every_milestone_paid(self, session, people, contract):
        first, second = [m.id for m in contract.milestones]
        await contracts.fund_escrow(session, people.client, contract.id, 300)
        await approve(session, people, contract, first)
        await contracts.release_payment(session, people.client, contract.id, first)
        with pytest.raises(StateError):
            await contracts.complete_contract(session, people.client, contract.id)

        await approve(session, people, contract, second)
        await contracts.release_payment(session, people.client, contract.id, second)
        completed = await contracts.complete_contract(session, people.client, contract.id)

        assert completed.status == "completed"
        assert completed.end_date is not None
        assert completed.escrow_balance == 0
        assert completed.job.status == "completed"
        orders = await session.scalar(select(User.total_orders).where(User.id == people.freelancer.id))
        assert orders == 1
        assert (await notification_types(session, people.freelancer.id))[-1] == "CONTRACT_COMPLETED"

    async def test_add_milestone_appends_pending(self, session, people, contract):
        updated = await contracts.add_milestone(session, people.client, contract.id, {
            "title": "Extra", "description": "More work", "amount": 50, "dueDate": "2030-02-01",
        })
        assert [m.title for m in updated.milestones][-1] == "Extra"
        assert updated.milestones[-1].status == "pending"

    async def test_add_milestone_rejects_non_string_description(self, session, people, contract):
        with pytest.raises(ValidationError):
            await contracts.add_milestone(session, people.client, contract.id, {
                "title": "Extra", "description": 7, "amount": 50, "dueDate": "2030-02-01",
            })

class TestOutsider:

    async def test_outsider_is_refused_everywhere(self, session, people, contract):
        outsider = people.outsider
        milestone_id = contract.milestones[0].id
        calls = [
            contracts.get_contract(session, outsider, contract.id),
            contracts.fund_escrow(session, outsider, contract.id, 10),
            contracts.activate_contract(session, outsider, contract.id),
            contracts.add_milestone(session, outsider, contract.id, {
                "title": "x", "description": "y", "amount": 1, "dueDate": "2030-01-01",
            }),
            contracts.submit_work(session, outsider, contract.id, milestone_id, [text_file()]),
            contracts.review_submission(session, outsider, contract.id, milestone_id, "approved"),
            contracts.release_payment(session, outsider, contract.id, milestone_id),
            contracts.complete_contract(session, outsider, contract.id),
            contracts.download_submission_file(session, outsider, contract.id, milestone_id, "any"),
        ]
        for call in calls:
            with pytest.raises(AuthorizationError):
                await call

    async def test_my_contracts_lists_both_parties(self, session, people, contract):
        assert [c.id for c in await contracts.get_my_contracts(session, people.client)] == [contract.id]
        assert [c.id for c in await contracts.get_my_contracts(session, people.freelancer)] == [contract.id]
        assert await contracts.get_my_contracts(session, people.outsider) == []
