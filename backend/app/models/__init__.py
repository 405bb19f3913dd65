from app.models.account import Customer, Supplier  # noqa: F401
from app.models.ledger import CustomerTransaction, SupplierTransaction, TransactionType  # noqa: F401
from app.models.user import User  # noqa: F401
