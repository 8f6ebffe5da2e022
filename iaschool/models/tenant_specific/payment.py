from sqlalchemy import Column, String, Numeric, Text, ForeignKey, Enum, Index, CheckConstraint
from sqlalchemy.orm import relationship
import enum

from ..base import Base, TenantMixin
from ..types import GUID, UTCDateTime
from ...core.workflow import TransitionTable


class ChargeStatus(str, enum.Enum):
    PENDIENTE = "PENDIENTE"
    PAGADO = "PAGADO"
    VENCIDO = "VENCIDO"
    PARCIAL = "PARCIAL"
    CANCELADO = "CANCELADO"


class ChargeType(str, enum.Enum):
    COLEGIATURA = "COLEGIATURA"
    INSCRIPCION = "INSCRIPCION"
    MATERIAL = "MATERIAL"
    UNIFORME = "UNIFORME"
    EVENTO = "EVENTO"
    OTRO = "OTRO"


class PaymentMethod(str, enum.Enum):
    EFECTIVO = "EFECTIVO"
    TRANSFERENCIA = "TRANSFERENCIA"
    TARJETA = "TARJETA"
    SPEI = "SPEI"
    OTRO = "OTRO"


OPEN_CHARGE_STATUSES = (ChargeStatus.PENDIENTE, ChargeStatus.VENCIDO, ChargeStatus.PARCIAL)

CHARGE_TRANSITIONS = TransitionTable("Charge", {
    ChargeStatus.PENDIENTE: [
        ChargeStatus.PARCIAL, ChargeStatus.PAGADO, ChargeStatus.VENCIDO, ChargeStatus.CANCELADO,
    ],
    ChargeStatus.VENCIDO: [ChargeStatus.PARCIAL, ChargeStatus.PAGADO, ChargeStatus.CANCELADO],
    ChargeStatus.PARCIAL: [ChargeStatus.PAGADO, ChargeStatus.VENCIDO, ChargeStatus.CANCELADO],
})


class Charge(TenantMixin, Base):
    __tablename__ = "charges"

    student_id = Column(GUID(), ForeignKey("students.id"), nullable=False, index=True)
    concept = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(Enum(ChargeType, name="charge_type"), nullable=False, default=ChargeType.COLEGIATURA)

    # Amounts
    original_amount = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(10, 2), nullable=False, default=0)
    amount = Column(Numeric(10, 2), nullable=False)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)

    due_date = Column(UTCDateTime(), nullable=False, index=True)
    status = Column(Enum(ChargeStatus, name="charge_status"), nullable=False, default=ChargeStatus.PENDIENTE, index=True)
    paid_at = Column(UTCDateTime(), nullable=True)
    created_by = Column(GUID(), ForeignKey("users.id"), nullable=True)

    student = relationship("Student", lazy="selectin")
    payments = relationship("Payment", back_populates="charge", order_by="Payment.paid_at", lazy="selectin")

    __table_args__ = (
        CheckConstraint('amount >= 0', name='check_charge_amount_non_negative'),
        Index('idx_charge_school_status', 'school_id', 'status'),
    )

    @property
    def balance(self):
        return max(self.amount - self.amount_paid, 0)


class Payment(TenantMixin, Base):
    __tablename__ = "payments"

    charge_id = Column(GUID(), ForeignKey("charges.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(Enum(PaymentMethod, name="payment_method"), nullable=False, default=PaymentMethod.EFECTIVO)
    reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    receipt_number = Column(String(30), nullable=False, unique=True)
    received_by = Column(GUID(), ForeignKey("users.id"), nullable=True)
    paid_at = Column(UTCDateTime(), nullable=False)

    charge = relationship("Charge", back_populates="payments")

    __table_args__ = (
        CheckConstraint('amount > 0', name='check_payment_amount_positive'),
    )
