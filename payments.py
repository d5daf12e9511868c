"""
Payment log: record a payment, list all payments.
"""

import logging

from fastapi import APIRouter, Depends
from pymongo.database import Database

from database import PAYMENT, create_document, get_db, get_documents, serialize
from errors import operation
from schemas import Payment, PaymentRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/add", status_code=201)
def save_payment(req: PaymentRequest, db: Database = Depends(get_db)):
    payment = Payment.model_validate(req.model_dump())
    with operation("Server Error"):
        payment_id = create_document(db, PAYMENT, payment)
    logger.info("Payment %s saved (%s, %.2f)", payment_id, payment.payment_status, payment.amount)
    return {
        "success": True,
        "message": "Payment saved successfully",
        "data": {"id": payment_id, **payment.to_document()},
    }


@router.get("/all")
def get_all_payments(db: Database = Depends(get_db)):
    with operation("Error fetching payments"):
        docs = get_documents(db, PAYMENT, sort=[("createdAt", -1)])
    return {"success": True, "payments": [serialize(d) for d in docs]}
