from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schoolfees.api.v1.discounts.router import router as discounts_router
from schoolfees.api.v1.fee_balances.router import router as fee_balances_router
from schoolfees.api.v1.fees.router import router as fees_router
from schoolfees.api.v1.invoices.router import router as invoices_router
from schoolfees.core.config import settings
from schoolfees.core.logging_config import configure_logging


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="School Fees Backend")

    # CORS: allow the single-page frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(fees_router)
    app.include_router(invoices_router)
    app.include_router(fee_balances_router)
    app.include_router(discounts_router)

    return app


app = create_app()
