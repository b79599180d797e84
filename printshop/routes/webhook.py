import json

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from printshop.config import settings
from printshop.services.payments import handle_webhook
from printshop.services.razorpay import verify_webhook_signature
from printshop.utils.database import get_db
from printshop.utils.errors import ValidationError
from printshop.utils.response import send_success

router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.post("/razorpay")
async def razorpay_webhook(request: Request, db: Session = Depends(get_db)):
    signature = request.headers.get("x-razorpay-signature")
    if not signature:
        raise ValidationError("Missing signature")

    # the signature covers the raw bytes, so the body is read before parsing
    body = await request.body()
    if not verify_webhook_signature(body, signature, settings.razorpay_webhook_secret):
        raise ValidationError("Invalid signature")

    try:
        event = json.loads(body)
    except ValueError:
        raise ValidationError("Invalid JSON payload")
    if not isinstance(event, dict):
        raise ValidationError("Invalid JSON payload")

    await run_in_threadpool(handle_webhook, db, event)
    return send_success({"received": True}, "Webhook processed")
