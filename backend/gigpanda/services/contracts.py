"""Contracts, milestones and the simulated escrow ledger.

The escrow balance only moves inside conditional updates: funding adds to it
together with the ``fund`` transition, and releasing a milestone subtracts from
it only while the balance still covers the amount. Checks against the freshly
loaded rows give the caller a precise error; the conditional updates keep two
concurrent requests from both passing them.
"""
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..core.errors import (
    AuthorizationError, ConflictError, NotFoundError, StateError, StorageError, ValidationError,
)
from ..core.logging import setup_logger
from ..db.database import utcnow
from ..models.contract import Contract, Milestone, Submission
from ..models.job import Job
from ..models.stored_file import StoredFile
from ..models.user import User
from ..utils.validation import milestone_problems, to_datetime, to_number
from .file_storage import ALLOWED_MIMETYPES, FileStore, Upload
from .notifications import commit_and_publish, dispatch
from .proposals import load_proposal
from .state_machine import CONTRACT_FSM, MILESTONE_FSM
from .users import increment_stat

logger = setup_logger("contracts")

async def load_contract(session: AsyncSession, contract_id: int) -> Contract:
    result = await session.execute(
        select(Contract).where(Contract.id == contract_id).execution_options(populate_existing=True)
    )
    contract = result.scalar_one_or_none()
    if contract is None:
        raise NotFoundError("Contract not found")
    return contract

def _require_client(contract: Contract, user: User, action: str) -> None:
    if contract.client_id != user.id:
        raise AuthorizationError(f"Only the client can {action}")

def _require_freelancer(contract: Contract, user: User, action: str) -> None:
    if contract.freelancer_id != user.id:
        raise AuthorizationError(f"Only the freelancer can {action}")

def _find_milestone(contract: Contract, milestone_id: int) -> Milestone:
    milestone = contract.milestone(milestone_id)
    if milestone is None:
        raise NotFoundError("Milestone not found")
    return milestone

def _new_milestone(data: Dict[str, Any], position: int) -> Milestone:
    return Milestone(
        position=position,
        title=data["title"].strip(),
        description=data["description"].strip(),
        amount=to_number(data["amount"]),
        due_date=to_datetime(data["dueDate"]),
        status="pending",
        escrow_funded=False,
    )

def _job_title(contract: Contract) -> str:
    return contract.job.title if contract.job is not None else contract.title

async def create_contract(
    session: AsyncSession, user: User, proposal_id: int, data: Dict[str, Any]
) -> Contract:
    errors = {}
    for field in ("title", "scope", "terms"):
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            errors[field] = f"{field} is required"
    milestones = data.get("milestones")
    if not isinstance(milestones, list):
        errors["milestones"] = "milestones must be a list"
    total = data.get("totalAmount")
    if total is not None and (to_number(total) is None or to_number(total) < 0):
        errors["totalAmount"] = "Total amount must be a non-negative number"
    if errors:
        raise ValidationError("Missing required fields", errors)

    for index, milestone in enumerate(milestones):
        problems = milestone_problems(milestone)
        if problems:
            raise ValidationError(
                f"Milestone {index} must have a title, description, amount and due date",
                {f"milestones.{index}": f"Invalid {', '.join(problems)}"},
            )

    proposal = await load_proposal(session, proposal_id)
    if proposal.job.client_id != user.id:
        raise AuthorizationError("Only the client can create a contract")
    existing = await session.scalar(select(Contract.id).where(Contract.proposal_id == proposal.id))
    if existing is not None:
        raise ConflictError("A contract already exists for this proposal")

    if total is None:
        total = sum(to_number(m["amount"]) for m in milestones)

    contract = Contract(
        job_id=proposal.job_id,
        proposal_id=proposal.id,
        client_id=user.id,
        freelancer_id=proposal.freelancer_id,
        title=data["title"].strip(),
        scope=data["scope"].strip(),
        terms=data["terms"].strip(),
        total_amount=to_number(total),
        status="draft",
        escrow_balance=0,
        client_signed_at=utcnow(),
        milestones=[_new_milestone(m, position) for position, m in enumerate(milestones)],
    )
    session.add(contract)
    proposal.status = "accepted"
    proposal.job.status = "in-progress"
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("A contract already exists for this proposal")

    await dispatch(
        session,
        recipient_id=contract.freelancer_id,
        sender_id=user.id,
        type="CONTRACT_CREATED",
        job_id=contract.job_id,
        proposal_id=proposal.id,
        message=f"A contract was created for \"{proposal.job.title}\"",
    )
    await commit_and_publish(session)
    logger.info(f"Contract {contract.id} created from proposal {proposal.id}")
    return await load_contract(session, contract.id)

async def get_contract(session: AsyncSession, user: User, contract_id: int) -> Contract:
    contract = await load_contract(session, contract_id)
    if not contract.is_party(user.id):
        raise AuthorizationError("Access denied")
    return contract

async def get_my_contracts(session: AsyncSession, user: User) -> List[Contract]:
    result = await session.execute(
        select(Contract)
        .where(or_(Contract.client_id == user.id, Contract.freelancer_id == user.id))
        .order_by(Contract.created_at.desc(), Contract.id.desc())
    )
    return result.scalars().all()

async def fund_escrow(session: AsyncSession, user: User, contract_id: int, amount: Any) -> Contract:
    value = to_number(amount)
    if value is None or value <= 0:
        raise ValidationError("Amount must be a positive number", {"amount": "Amount must be a positive number"})

    contract = await load_contract(session, contract_id)
    _require_client(contract, user, "fund the escrow")
    CONTRACT_FSM.target("fund", contract.status)

    await CONTRACT_FSM.advance(
        session, Contract, contract.id, "fund",
        escrow_balance=Contract.escrow_balance + value,
    )
    await dispatch(
        session,
        recipient_id=contract.freelancer_id,
        sender_id=user.id,
        type="CONTRACT_FUNDED",
        job_id=contract.job_id,
        message=f"The client added {value:.2f} to the escrow of \"{contract.title}\"",
    )
    await commit_and_publish(session)
    return await load_contract(session, contract.id)

async def activate_contract(session: AsyncSession, user: User, contract_id: int) -> Contract:
    contract = await load_contract(session, contract_id)
    _require_client(contract, user, "activate the contract")
    if not CONTRACT_FSM.can("activate", contract.status):
        raise StateError("Contract must be funded before activation")

    await CONTRACT_FSM.advance(
        session, Contract, contract.id, "activate",
        error="Contract must be funded before activation",
        start_date=utcnow(),
    )
    await dispatch(
        session,
        recipient_id=contract.freelancer_id,
        sender_id=user.id,
        type="CONTRACT_ACTIVATED",
        job_id=contract.job_id,
        message=f"Contract \"{contract.title}\" is now active",
    )
    await commit_and_publish(session)
    return await load_contract(session, contract.id)

async def add_milestone(session: AsyncSession, user: User, contract_id: int, data: Dict[str, Any]) -> Contract:
    problems = milestone_problems(data)
    if problems:
        raise ValidationError(
            "Milestone must have a title, description, amount and due date",
            {field: f"{field} is required" for field in problems},
        )
    contract = await load_contract(session, contract_id)
    _require_client(contract, user, "add milestones")

    position = max((m.position for m in contract.milestones), default=-1) + 1
    contract.milestones.append(_new_milestone(data, position))
    await session.commit()
    logger.info(f"Milestone added to contract {contract.id} at position {position}")
    return await load_contract(session, contract.id)

def _check_uploads(uploads: List[Upload]) -> None:
    if len(uploads) > settings.MAX_UPLOAD_FILES:
        raise ValidationError(f"Too many files. Maximum is {settings.MAX_UPLOAD_FILES} files")
    for upload in uploads:
        if len(upload.data) > settings.MAX_UPLOAD_SIZE:
            raise ValidationError(
                f"File too large. Maximum size is {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB",
                {"files": upload.filename},
            )
        if upload.mimetype not in ALLOWED_MIMETYPES:
            raise ValidationError(
                "Invalid file type. Allowed types: PDF, DOC, DOCX, JPG, PNG, GIF, MP4, TXT",
                {"files": upload.filename},
            )

async def submit_work(
    session: AsyncSession,
    user: User,
    contract_id: int,
    milestone_id: int,
    uploads: Optional[List[Upload]] = None,
    comments: Optional[str] = None,
) -> Tuple[Contract, List[str]]:
    """Submit deliverables for a milestone.

    Returns the reloaded contract and the names of files that could not be
    stored. An upload in which every file fails raises :class:`StorageError`.
    """
    uploads = uploads or []
    contract = await load_contract(session, contract_id)
    _require_freelancer(contract, user, "submit work")
    milestone = _find_milestone(contract, milestone_id)
    if not MILESTONE_FSM.can("submit", milestone.status):
        raise StateError(f"Cannot submit work for a milestone that is {milestone.status}")
    _check_uploads(uploads)

    store = FileStore(session)
    saved, failed = [], []
    for upload in uploads:
        try:
            saved.append(await store.save(upload.filename, upload.mimetype, upload.data))
        except StorageError as e:
            logger.warning(f"Could not store {upload.filename}: {e.message}")
            failed.append(upload.filename)
    if uploads and not saved:
        raise StorageError("Failed to save any files")

    # the previous submission stays as it was and moves into history
    await session.execute(
        update(Submission)
        .where(Submission.milestone_id == milestone.id, Submission.is_current.is_(True))
        .values(is_current=False)
        .execution_options(synchronize_session=False)
    )
    milestone.submissions.append(Submission(
        is_current=True,
        files=saved,
        comments=comments or "",
        submitted_at=utcnow(),
        status="pending",
        client_feedback="",
    ))
    await MILESTONE_FSM.advance(session, Milestone, milestone.id, "submit", Milestone.contract_id == contract.id)

    await dispatch(
        session,
        recipient_id=contract.client_id,
        sender_id=user.id,
        type="MILESTONE_SUBMITTED",
        job_id=contract.job_id,
        message=f"New submission received for milestone \"{milestone.title}\" in project \"{_job_title(contract)}\"",
    )
    await commit_and_publish(session)
    logger.info(f"Work submitted for milestone {milestone.id} ({len(saved)} files, {len(failed)} failed)")
    return await load_contract(session, contract.id), failed

async def review_submission(
    session: AsyncSession,
    user: User,
    contract_id: int,
    milestone_id: int,
    status: str,
    feedback: Optional[str] = None,
) -> Contract:
    if status not in ("approved", "changes_requested"):
        raise ValidationError(
            "Status must be approved or changes_requested",
            {"status": "Status must be approved or changes_requested"},
        )
    contract = await load_contract(session, contract_id)
    _require_client(contract, user, "review submissions")
    milestone = _find_milestone(contract, milestone_id)
    current = milestone.current_submission
    if current is None:
        raise NotFoundError("No submission found to review")

    event = "approve" if status == "approved" else "request_changes"
    MILESTONE_FSM.target(event, milestone.status)

    archived = await session.execute(
        update(Submission)
        .where(Submission.id == current.id, Submission.is_current.is_(True))
        .values(
            status=status,
            client_feedback=feedback or current.client_feedback or "",
            feedback_at=utcnow(),
            is_current=False,
        )
        .execution_options(synchronize_session=False)
    )
    if archived.rowcount != 1:
        await session.rollback()
        raise StateError("This submission was already reviewed")
    await MILESTONE_FSM.advance(session, Milestone, milestone.id, event, Milestone.contract_id == contract.id)

    if status == "approved":
        notification_type = "MILESTONE_APPROVED"
        text = f"Your submission for milestone \"{milestone.title}\" in project \"{_job_title(contract)}\" has been approved"
    else:
        notification_type = "MILESTONE_CHANGES_REQUESTED"
        text = f"Changes requested for milestone \"{milestone.title}\" in project \"{_job_title(contract)}\""
    await dispatch(
        session,
        recipient_id=contract.freelancer_id,
        sender_id=user.id,
        type=notification_type,
        job_id=contract.job_id,
        message=text,
    )
    await commit_and_publish(session)
    return await load_contract(session, contract.id)

async def release_payment(session: AsyncSession, user: User, contract_id: int, milestone_id: int) -> Contract:
    contract = await load_contract(session, contract_id)
    _require_client(contract, user, "release payments")
    milestone = _find_milestone(contract, milestone_id)
    if not MILESTONE_FSM.can("release", milestone.status):
        raise StateError("Milestone must be completed before payment can be released")
    if contract.escrow_balance < milestone.amount:
        raise StateError("Insufficient escrow balance")

    await MILESTONE_FSM.advance(
        session, Milestone, milestone.id, "release", Milestone.contract_id == contract.id,
        error="Milestone must be completed before payment can be released",
    )
    debited = await session.execute(
        update(Contract)
        .where(Contract.id == contract.id, Contract.escrow_balance >= milestone.amount)
        .values(escrow_balance=Contract.escrow_balance - milestone.amount)
        .execution_options(synchronize_session=False)
    )
    if debited.rowcount != 1:
        await session.rollback()
        raise StateError("Insufficient escrow balance")
    await increment_stat(session, contract.freelancer_id, "totalEarnings", milestone.amount)

    await dispatch(
        session,
        recipient_id=contract.freelancer_id,
        sender_id=user.id,
        type="PAYMENT_RELEASED",
        job_id=contract.job_id,
        message=f"Payment of {milestone.amount:.2f} released for milestone \"{milestone.title}\"",
    )
    await commit_and_publish(session)
    logger.info(f"Released {milestone.amount} for milestone {milestone.id} of contract {contract.id}")
    return await load_contract(session, contract.id)

async def complete_contract(session: AsyncSession, user: User, contract_id: int) -> Contract:
    contract = await load_contract(session, contract_id)
    _require_client(contract, user, "complete the contract")
    if any(m.status != "paid" for m in contract.milestones):
        raise StateError("All milestones must be paid before completing the contract")
    CONTRACT_FSM.target("complete", contract.status)

    unpaid = (
        select(Milestone.id)
        .where(Milestone.contract_id == Contract.id, Milestone.status != "paid")
        .correlate(Contract)
        .exists()
    )
    await CONTRACT_FSM.advance(
        session, Contract, contract.id, "complete", ~unpaid,
        error="All milestones must be paid before completing the contract",
        end_date=utcnow(),
    )
    await session.execute(
        update(Job)
        .where(Job.id == contract.job_id)
        .values(status="completed")
        .execution_options(synchronize_session=False)
    )
    await increment_stat(session, contract.freelancer_id, "totalOrders", 1)

    await dispatch(
        session,
        recipient_id=contract.freelancer_id,
        sender_id=user.id,
        type="CONTRACT_COMPLETED",
        job_id=contract.job_id,
        message=f"Contract \"{contract.title}\" has been completed",
    )
    await commit_and_publish(session)
    return await load_contract(session, contract.id)

async def download_submission_file(
    session: AsyncSession, user: User, contract_id: int, milestone_id: int, storage_key: str
) -> Tuple[dict, StoredFile]:
    contract = await load_contract(session, contract_id)
    if not contract.is_party(user.id):
        raise AuthorizationError("Access denied")
    milestone = _find_milestone(contract, milestone_id)

    candidates = [milestone.current_submission] + milestone.submission_history
    meta = None
    for submission in candidates:
        if submission is not None:
            meta = submission.find_file(storage_key)
            if meta is not None:
                break
    if meta is None:
        raise NotFoundError("File not found")

    stored = await FileStore(session).get(storage_key)
    if stored is None:
        raise NotFoundError("File content not found")
    return meta, stored
