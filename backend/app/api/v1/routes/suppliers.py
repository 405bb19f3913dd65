from app.api.v1.routes.accounts import AccountSchemas, build_account_router
from app.schemas.account import SupplierCreate, SupplierList, SupplierOut, SupplierPostingOut, SupplierUpdate
from app.services.ledger import SUPPLIER_LEDGER

router = build_account_router(
    SUPPLIER_LEDGER,
    AccountSchemas(
        create=SupplierCreate,
        update=SupplierUpdate,
        out=SupplierOut,
        page=SupplierList,
        posting=SupplierPostingOut,
    ),
)
