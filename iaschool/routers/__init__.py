from . import (
    health, auth, public, appointments, calendar, gallery,
    messages, payments, store, documents, uploads
)
from .school_authority import referrals as authority_referrals
from .school_authority import scholarships, tutors, enrollments, crm
from .parent_portal import referrals as parent_referrals

__all__ = [
    "health", "auth", "public", "appointments", "calendar", "gallery",
    "messages", "payments", "store", "documents", "uploads",
    "authority_referrals", "scholarships", "tutors", "enrollments", "crm",
    "parent_referrals",
]
