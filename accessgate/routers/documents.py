from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select

from accessgate.models.hr import Document
from accessgate.schemas.hr import DocumentOut
from accessgate.security.context import UserContext
from accessgate.security.dependencies import get_access_services, require_minimum_level, require_record_access
from accessgate.security.services import AccessServices

router = APIRouter(tags=["documents"])


@router.get("/documents", response_model=list[DocumentOut])
async def list_documents(
    ctx: UserContext = Depends(require_minimum_level(1)),
    access: AccessServices = Depends(get_access_services),
) -> list[Document]:
    return await access.evaluator.filter(ctx.id, "documents", select(Document).order_by(Document.id), ctx=ctx)


@router.get("/documents/{record_id}", response_model=DocumentOut)
async def get_document(
    record_id: int,
    ctx: UserContext = Depends(require_record_access("documents", "read")),
    access: AccessServices = Depends(get_access_services),
) -> Document:
    async with access.session_factory() as session:
        document = await session.get(Document, record_id)
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return document
