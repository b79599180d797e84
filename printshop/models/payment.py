"""
Payment model
"""
from sqlalchemy import Column, Integer, String, DateTime, DECIMAL, ForeignKey, Enum
from sqlalchemy.orm import relationship
from printshop.utils.database import Base, utcnow
from printshop.models.order import PaymentMethod, PaymentStatus


class Payment(Base):
    __tablename__ = "payments"

    payment_id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.order_id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False, index=True)
    amount = Column(DECIMAL(10, 2), nullable=False)
    method = Column(Enum(PaymentMethod), nullable=False)
    status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    razorpay_order_id = Column(String(100), index=True)
    razorpay_payment_id = Column(String(100), unique=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="payments")
    order = relationship("Order", back_populates="payments")

    def __repr__(self):
        return f"<Payment(id={self.payment_id}, amount={self.amount}, method={self.method}, status={self.status})>"
