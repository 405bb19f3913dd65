from app.api.v1.routes.accounts import AccountSchemas, build_account_router
from app.schemas.account import CustomerCreate, CustomerList, CustomerOut, CustomerPostingOut, CustomerUpdate
from app.services.ledger import CUSTOMER_LEDGER

router = build_account_router(
    CUSTOMER_LEDGER,
    AccountSchemas(
        create=CustomerCreate,
        update=CustomerUpdate,
        out=CustomerOut,
        page=CustomerList,
        posting=CustomerPostingOut,
    ),
)
