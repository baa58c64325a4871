from portal.models.base import Base, engine, AsyncSessionFactory
from portal.models.models import (
    User,
    Program,
    Athlete,
    ParentAthlete,
    Enrollment,
    Transaction,
    UserRole,
    EnrollmentStatus,
    TransactionStatus,
)

__all__ = [
    "Base",
    "engine",
    "AsyncSessionFactory",
    "User",
    "Program",
    "Athlete",
    "ParentAthlete",
    "Enrollment",
    "Transaction",
    "UserRole",
    "EnrollmentStatus",
    "TransactionStatus",
]
