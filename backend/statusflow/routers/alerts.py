"""Alert history and notification channel endpoints."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..exceptions import InvalidAlertTransitionError
from ..schemas.alert import AlertHistoryResponse, ChannelTestResponse
from ..services.alerter import alerter_service
from ..services.notifier import notification_dispatcher
from ..store import Store
from .dependencies import get_current_user_id

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.put("/history/{history_id}/acknowledge", response_model=AlertHistoryResponse)
async def acknowledge_alert(
    history_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Acknowledge a triggered alert."""
    store = Store(db)
    try:
        history = await alerter_service.acknowledge_alert(store, history_id, user_id)
    except InvalidAlertTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if history is None:
        raise HTTPException(status_code=404, detail="Alert not found")

    await store.commit()
    return history


@router.put("/history/{history_id}/resolve", response_model=AlertHistoryResponse)
async def resolve_alert(
    history_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Resolve a triggered or acknowledged alert."""
    store = Store(db)
    try:
        history = await alerter_service.resolve_alert(store, history_id, user_id)
    except InvalidAlertTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if history is None:
        raise HTTPException(status_code=404, detail="Alert not found")

    await store.commit()
    return history


@router.post("/channels/{channel_id}/test", response_model=ChannelTestResponse)
async def test_channel(
    channel_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Send a test notification through a channel."""
    store = Store(db)
    channel = await store.find_channel(channel_id, user_id)
    if channel is None:
        raise HTTPException(status_code=404, detail="Channel not found")

    try:
        await notification_dispatcher.test_channel(channel)
    except Exception as e:
        # Keep the failed test outcome on the channel
        await store.commit()
        raise HTTPException(status_code=502, detail=f"Test notification failed: {e}")

    await store.commit()
    return ChannelTestResponse(success=True, message="Test notification sent successfully")
