# checkout_engine/api/routers/payments.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from checkout_engine.api.deps import get_payment_client
from checkout_engine.data.database import get_db
from checkout_engine.domain.schemas import PaymentEventIn, PaymentEventOut
from checkout_engine.services.checkout_service import CheckoutService
from checkout_engine.services.payment_client import PaymentClient

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/events", response_model=PaymentEventOut)
def payment_event(
    payload: PaymentEventIn,
    db: Session = Depends(get_db),
    payment_client: PaymentClient = Depends(get_payment_client),
):
    """
    Wynik sesji płatności (podpis zdarzenia weryfikowany wcześniej).
    succeeded = commit rezerwacji, failed / expired = zwolnienie.
    Powtórzone zdarzenie zwraca already_processed.
    """
    svc = CheckoutService(db, payment_client)
    return svc.handle_payment_event(payload.session_id, payload.status)
