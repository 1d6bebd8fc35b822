import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, Integer, String

from payment_intents.database import Base


class IntentState(str, enum.Enum):
    CREATED = "Created"
    SUCCEEDED = "Succeeded"
    CANCELED = "Canceled"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {IntentState.SUCCEEDED, IntentState.CANCELED, IntentState.FAILED}
)


def utcnow():
    return datetime.now(timezone.utc)


class PaymentIntent(Base):
    __tablename__ = "payment_intents"

    id = Column(String, primary_key=True)          # Stripe PaymentIntent ID
    amount = Column(Integer, nullable=False)       # minor units, immutable
    currency = Column(String, nullable=False)
    state = Column(Enum(IntentState, native_enum=False, length=16), nullable=False)
    client_secret = Column(String)
    last_event_id = Column(String)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def __repr__(self):
        return f"<PaymentIntent {self.id} {self.state.value} amount={self.amount}>"
