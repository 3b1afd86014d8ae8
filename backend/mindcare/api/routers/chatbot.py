import math
import time
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from mindcare.db import get_db
from mindcare.logging import get_logger
from mindcare.models import User, ChatMessage
from mindcare.schemas import ChatSendReq, ChatSendResp, ChatHistory, ChatSessions, ChatMessageOut
from mindcare.services import chatbot
from mindcare.services.auth_service import get_current_patient

router = APIRouter(prefix="/chatbot", tags=["chatbot"])
logger = get_logger(__name__)


def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}"


@router.post("/send", response_model=ChatSendResp)
async def send_message(
    req: ChatSendReq,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_patient)
):
    session_id = req.session_id or new_session_id()
    reply = chatbot.generate_response(req.message)

    db.add(ChatMessage(
        user_id=current_user.id, session_id=session_id,
        message_type="user", message=req.message, intent=reply.intent,
    ))
    ai_message = ChatMessage(
        user_id=current_user.id, session_id=session_id,
        message_type="ai", message=reply.text, intent=reply.intent,
    )
    db.add(ai_message)
    await db.commit()

    if reply.intent == chatbot.CRISIS:
        logger.warning("chatbot_crisis_detected", user_id=current_user.id, session_id=session_id)
    return ChatSendResp(ai_message=ChatMessageOut.model_validate(ai_message), session_id=session_id)


@router.get("/history", response_model=ChatHistory)
async def history(
    session_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_patient)
):
    where = [ChatMessage.user_id == current_user.id]
    if session_id:
        where.append(ChatMessage.session_id == session_id)

    total = (await db.execute(select(func.count(ChatMessage.id)).where(*where))).scalar() or 0
    res = await db.execute(
        select(ChatMessage).where(*where)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .offset((page - 1) * limit).limit(limit)
    )
    # newest page first, each page in chronological order
    messages = list(reversed(res.scalars().all()))
    return {
        "messages": messages,
        "total_pages": math.ceil(total / limit) if total else 0,
        "current_page": page,
        "total": total,
    }


@router.get("/sessions", response_model=ChatSessions)
async def sessions(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_patient)
):
    last_ids = (
        select(func.max(ChatMessage.id).label("id"))
        .where(ChatMessage.user_id == current_user.id)
        .group_by(ChatMessage.session_id)
        .subquery()
    )
    res = await db.execute(
        select(ChatMessage)
        .join(last_ids, ChatMessage.id == last_ids.c.id)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
    )
    return {
        "sessions": [
            {"session_id": m.session_id, "last_message": m.message, "last_timestamp": m.created_at}
            for m in res.scalars().all()
        ]
    }
