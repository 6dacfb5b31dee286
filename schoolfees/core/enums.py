from enum import Enum


class Term(str, Enum):
    term_1 = "term_1"
    term_2 = "term_2"
    term_3 = "term_3"


class LearnerStatus(str, Enum):
    active = "active"
    transferred = "transferred"
    alumni = "alumni"


class FeeStatus(str, Enum):
    paid = "paid"
    partial = "partial"
    pending = "pending"


class InvoiceStatus(str, Enum):
    pending = "pending"
    partial = "partial"
    paid = "paid"
    cancelled = "cancelled"


class DiscountType(str, Enum):
    staff_parent = "staff_parent"
    sibling = "sibling"
