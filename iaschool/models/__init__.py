# iaschool/models/__init__.py
"""Import all models here so Alembic and create_all see the full metadata."""
from .base import Base

# Shared models
from .shared.school import School

# Tenant-specific models
from .tenant_specific.user import User, Group, Student, UserRole, AdminSubRole
from .tenant_specific.tutor import StudentTutor
from .tenant_specific.referral import ReferralProgram, Referral, ReferralReward
from .tenant_specific.enrollment import Enrollment
from .tenant_specific.payment import Charge, Payment
from .tenant_specific.scholarship import Scholarship, StudentScholarship
from .tenant_specific.store import StoreCategory, StoreProduct, CartItem, StoreOrder, StoreOrderItem
from .tenant_specific.document import Document, DocumentSignature
from .tenant_specific.appointment import Appointment
from .tenant_specific.event import Event, EventAttendee
from .tenant_specific.crm import CrmSegment, EmailTemplate, Campaign, CampaignRecipient
from .tenant_specific.gallery import Album, Photo, PhotoTag
from .tenant_specific.messaging import Conversation, ConversationParticipant, Message

__all__ = [
    "Base",
    "School",
    "User", "Group", "Student", "UserRole", "AdminSubRole",
    "StudentTutor",
    "ReferralProgram", "Referral", "ReferralReward",
    "Enrollment",
    "Charge", "Payment",
    "Scholarship", "StudentScholarship",
    "StoreCategory", "StoreProduct", "CartItem", "StoreOrder", "StoreOrderItem",
    "Document", "DocumentSignature",
    "Appointment",
    "Event", "EventAttendee",
    "CrmSegment", "EmailTemplate", "Campaign", "CampaignRecipient",
    "Album", "Photo", "PhotoTag",
    "Conversation", "ConversationParticipant", "Message",
]
