"""Mobile-money payment records. Written as pending; settlement happens elsewhere."""
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

from drivetest.data_source import DataSource
from drivetest.errors import PaymentValidationError
from engine import PAYMENT_METHODS

logger = logging.getLogger(__name__)


def record_payment(
    source: DataSource,
    user_id: str,
    amount,
    payment_method: str,
    transaction_ref: str,
    subscription_id: Optional[str] = None,
) -> Dict:
    """
    Insert a pending payment row.

    Raises:
        PaymentValidationError: unknown method, non-positive amount or empty reference
        PersistenceError: the insert failed
    """
    if payment_method not in PAYMENT_METHODS:
        raise PaymentValidationError(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}")
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise PaymentValidationError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite() or value <= 0:
        raise PaymentValidationError("Amount must be positive")
    if not (transaction_ref or "").strip():
        raise PaymentValidationError("Transaction reference is required")

    row = {
        "user_id": str(user_id),
        "subscription_id": subscription_id,
        "amount": float(value.quantize(Decimal("0.01"))),
        "payment_method": payment_method,
        "transaction_ref": transaction_ref.strip(),
        "status": "pending",
    }
    payment = source.insert_payment(row)
    logger.info(f"Recorded pending {payment_method} payment {row['transaction_ref']} for user {user_id}")
    return payment
