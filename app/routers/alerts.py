# app/routers/alerts.py
"""Reconciliation anomalies — list + resolve endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from datetime import datetime
from app.database import get_db
from app.models.alert import Alert
from app.schemas.alert import AlertOut
from typing import Optional

router = APIRouter()


@router.get("/alerts", response_model=list[AlertOut], summary="All anomalies — filterable by type and spot")
def get_all_alerts(
    alert_type: Optional[str] = None,
    spot_id: Optional[int] = None,
    is_resolved: Optional[int] = None,
    limit: int = 50,
    db: Session = Depends(get_db)
):
    """Newest first. alert_type: unqueued_parking | orphan_exit | ambiguous_assignment."""
    q = db.query(Alert)
    if alert_type:
        q = q.filter(Alert.alert_type == alert_type)
    if spot_id is not None:
        q = q.filter(Alert.spot_id == spot_id)
    if is_resolved is not None:
        q = q.filter(Alert.is_resolved == is_resolved)
    return q.order_by(Alert.triggered_at.desc(), Alert.id.desc()).limit(limit).all()


@router.put("/alerts/{alert_id}/resolve", summary="Mark an anomaly as handled")
def resolve_alert(alert_id: int, db: Session = Depends(get_db)):
    alert = db.query(Alert).filter(Alert.id == alert_id).first()
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    alert.is_resolved = 1
    alert.resolved_at = datetime.utcnow()
    db.commit()
    return {"id": alert_id, "status": "resolved"}
