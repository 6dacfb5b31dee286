from schoolfees.core.models.grade import Grade, Stream
from schoolfees.core.models.learner import Learner
from schoolfees.core.models.fee_structure import FeeStructure
from schoolfees.core.models.fee_payment import FeePayment
from schoolfees.core.models.student_invoice import StudentInvoice
from schoolfees.core.models.fee_transaction import FeeTransaction
from schoolfees.core.models.discount_setting import DiscountSetting

__all__ = [
    "Grade",
    "Stream",
    "Learner",
    "FeeStructure",
    "FeePayment",
    "StudentInvoice",
    "FeeTransaction",
    "DiscountSetting",
]
