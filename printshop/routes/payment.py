from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from printshop.models import User
from printshop.schemas import PaymentVerifyBody, RazorpayOrderBody
from printshop.services.payments import start_online_payment, verify_online_payment
from printshop.services.razorpay import RazorpayClient, get_razorpay
from printshop.utils.database import get_db
from printshop.utils.response import send_success
from printshop.utils.security import get_current_user

router = APIRouter(prefix="/payment", tags=["payment"])


@router.post("/create-order")
def create_razorpay_order(body: RazorpayOrderBody, user: User = Depends(get_current_user),
                          db: Session = Depends(get_db),
                          gateway: Optional[RazorpayClient] = Depends(get_razorpay)):
    data = start_online_payment(db, gateway, user, body.order_id, body.amount)
    return send_success(data, "Razorpay order created successfully")


@router.post("/verify")
def verify_payment(body: PaymentVerifyBody, user: User = Depends(get_current_user),
                   db: Session = Depends(get_db),
                   gateway: Optional[RazorpayClient] = Depends(get_razorpay)):
    data = verify_online_payment(
        db, gateway, user, body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature
    )
    return send_success(data, "Payment verified successfully")
