from typing import Any, Dict, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Body, Depends, File, Form, UploadFile
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from ...db.database import get_db
from ...models.user import User
from ...schemas.contract import FundRequest, ReviewRequest, contract_out
from ...services import contracts as contract_service
from ...services.file_storage import Upload
from ...utils.crypto import CryptoUtil
from ..deps import get_current_user, set_auth_cookie

router = APIRouter()

@router.post("/proposal/{proposal_id}", status_code=201)
async def create_contract(
    proposal_id: int,
    data: Dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    contract = await contract_service.create_contract(db, user, proposal_id, data)
    return {"success": True, "message": "Contract created successfully", "contract": contract_out(contract)}

@router.get("/my/contracts")
async def my_contracts(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    contracts = await contract_service.get_my_contracts(db, user)
    return {"success": True, "contracts": [contract_out(c) for c in contracts]}

@router.get("/{contract_id}")
async def get_contract(contract_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    contract = await contract_service.get_contract(db, user, contract_id)
    return {"success": True, "contract": contract_out(contract)}

@router.get("/{contract_id}/milestones/{milestone_id}/files/{file_ref}/download")
async def download_file(
    contract_id: int,
    milestone_id: int,
    file_ref: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    meta, stored = await contract_service.download_submission_file(db, user, contract_id, milestone_id, file_ref)
    filename = meta.get("filename") or stored.filename
    response = Response(
        content=stored.data,
        media_type=meta.get("mimetype") or stored.mimetype,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )
    # a returned Response bypasses the one get_current_user renewed the session on
    set_auth_cookie(response, CryptoUtil().issue_token(user.id))
    return response

@router.post("/{contract_id}/fund")
async def fund(
    contract_id: int,
    data: FundRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    contract = await contract_service.fund_escrow(db, user, contract_id, data.amount)
    return {"success": True, "message": "Escrow funded successfully", "contract": contract_out(contract)}

@router.post("/{contract_id}/activate")
async def activate(contract_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    contract = await contract_service.activate_contract(db, user, contract_id)
    return {"success": True, "message": "Contract activated successfully", "contract": contract_out(contract)}

@router.post("/{contract_id}/milestones")
async def add_milestone(
    contract_id: int,
    data: Dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    contract = await contract_service.add_milestone(db, user, contract_id, data)
    return {"success": True, "message": "Milestone added successfully", "contract": contract_out(contract)}

@router.post("/{contract_id}/milestones/{milestone_id}/submit")
async def submit_work(
    contract_id: int,
    milestone_id: int,
    files: Optional[List[UploadFile]] = File(None),
    comments: Optional[str] = Form(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    uploads = []
    for f in files or []:
        uploads.append(Upload(
            filename=f.filename or "upload",
            mimetype=f.content_type or "application/octet-stream",
            data=await f.read(),
        ))
    contract, failed = await contract_service.submit_work(db, user, contract_id, milestone_id, uploads, comments)

    body = {"success": True, "message": "Work submitted successfully", "contract": contract_out(contract)}
    if failed:
        body["warnings"] = {"failedFiles": failed, "message": "Some files failed to upload"}
    return body

@router.post("/{contract_id}/milestones/{milestone_id}/review")
async def review(
    contract_id: int,
    milestone_id: int,
    data: ReviewRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    contract = await contract_service.review_submission(db, user, contract_id, milestone_id, data.status, data.feedback)
    return {"success": True, "message": "Submission reviewed successfully", "contract": contract_out(contract)}

@router.post("/{contract_id}/milestones/{milestone_id}/release")
async def release(
    contract_id: int,
    milestone_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    contract = await contract_service.release_payment(db, user, contract_id, milestone_id)
    return {"success": True, "message": "Payment released successfully", "contract": contract_out(contract)}

@router.post("/{contract_id}/complete")
async def complete(contract_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    contract = await contract_service.complete_contract(db, user, contract_id)
    return {"success": True, "message": "Contract completed successfully", "contract": contract_out(contract)}
