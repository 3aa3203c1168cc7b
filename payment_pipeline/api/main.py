"""
FastAPI application - Main entry point

    uvicorn payment_pipeline.api.main:app --port 8080
"""

from dotenv import load_dotenv

load_dotenv()

import asyncio
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from payment_pipeline.api.endpoints.stripe_webhook import router as stripe_webhook_router
from payment_pipeline.database.transactions import InMemoryTransactionStore
from payment_pipeline.flows.checkout_saga import CheckoutSaga
from payment_pipeline.flows.contact_resolution import ContactResolver
from payment_pipeline.flows.contract_dispatch import ContractDispatcher
from payment_pipeline.flows.invoicing import InvoiceIssuer
from payment_pipeline.flows.recording import TransactionRecorder
from payment_pipeline.integrations.contracts.errors import PersistenceUnavailable
from payment_pipeline.integrations.contracts.interfaces import TransactionStore
from payment_pipeline.utils.config_loader import PipelineConfig, load_pipeline_config

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

def _should_use_real_integrations(config: PipelineConfig) -> bool:
    if config.integrations_mode == "real":
        return True
    if config.integrations_mode == "mock":
        return False
    return config.has_real_credentials


def build_transaction_store(config: PipelineConfig) -> TransactionStore:
    # Use the real database when DATABASE_URL is set, else the in-memory stub
    if config.store.database_url:
        from payment_pipeline.database.transactions_real import SqlTransactionStore

        return SqlTransactionStore(connection_string=config.store.database_url)
    logger.warning("DATABASE_URL is not set; transactions are kept in memory only")
    return InMemoryTransactionStore()


def build_checkout_saga(config: PipelineConfig, store: TransactionStore) -> CheckoutSaga:
    if _should_use_real_integrations(config):
        from payment_pipeline.integrations.clients.real_http.pandadoc import PandaDocClient
        from payment_pipeline.integrations.clients.real_http.stripe_customers import StripeCustomersClient
        from payment_pipeline.integrations.clients.real_http.xero import XeroClient

        payments = StripeCustomersClient(
            api_key=config.stripe.secret_key,
            timeout_seconds=config.stripe.timeout_seconds,
        )
        accounting = XeroClient(
            client_id=config.xero.client_id,
            client_secret=config.xero.client_secret,
            tenant_id=config.xero.tenant_id,
            base_url=config.xero.base_url,
            token_url=config.xero.token_url,
            scopes=config.xero.scopes,
            timeout_seconds=config.xero.timeout_seconds,
        )
        documents = PandaDocClient(
            api_key=config.pandadoc.api_key,
            base_url=config.pandadoc.base_url,
            draft_poll_attempts=config.pandadoc.draft_poll_attempts,
            draft_poll_interval_seconds=config.pandadoc.draft_poll_interval_seconds,
            timeout_seconds=config.pandadoc.timeout_seconds,
        )
        logger.info("Using REAL Stripe / Xero / PandaDoc clients")
    else:
        from payment_pipeline.integrations.clients.mocks import (
            MockPandaDocClient,
            MockStripeCustomersClient,
            MockXeroClient,
        )

        payments = MockStripeCustomersClient()
        accounting = MockXeroClient()
        documents = MockPandaDocClient()
        templates = config.pandadoc.templates
        if not (templates.basic and templates.premium and templates.enterprise):
            filled = templates.model_copy(
                update={
                    "basic": templates.basic or "mock-template-basic",
                    "premium": templates.premium or "mock-template-premium",
                    "enterprise": templates.enterprise or "mock-template-enterprise",
                }
            )
            config = config.model_copy(
                update={"pandadoc": config.pandadoc.model_copy(update={"templates": filled})}
            )
        logger.info("Using MOCK Stripe / Xero / PandaDoc clients")

    return CheckoutSaga(
        payments=payments,
        contacts=ContactResolver(accounting),
        invoices=InvoiceIssuer(accounting, config.invoice),
        contracts=ContractDispatcher(documents, config.pandadoc),
        recorder=TransactionRecorder(
            store,
            max_attempts=config.store.persistence_max_attempts,
            backoff_seconds=config.store.persistence_backoff_seconds,
        ),
        step_timeout_seconds=config.step_timeout_seconds,
    )


def create_app(
    config: Optional[PipelineConfig] = None,
    store: Optional[TransactionStore] = None,
    saga: Optional[CheckoutSaga] = None,
) -> FastAPI:
    config = config or load_pipeline_config()
    store = store or build_transaction_store(config)
    saga = saga or build_checkout_saga(config, store)

    application = FastAPI(
        title="Vision Lake Payment Pipeline",
        description="Stripe checkout → Xero invoice → PandaDoc contract → transaction ledger",
        version="1.0.0",
    )
    application.state.config = config
    application.state.store = store
    application.state.saga = saga

    application.include_router(stripe_webhook_router)

    @application.get("/health", tags=["Health"])
    async def health():
        store_ok = await asyncio.to_thread(store.ping)
        body = {"status": "ok" if store_ok else "degraded", "store": "connected" if store_ok else "unreachable"}
        return JSONResponse(status_code=200 if store_ok else 503, content=body)

    @application.on_event("startup")
    async def startup_event():
        """Initialize on startup"""
        try:
            store.create_tables()
        except PersistenceUnavailable as e:
            logger.error("Could not prepare transaction store: %s", e)
        logger.info("Payment pipeline running on port %s", config.port)

    return application


app = create_app()
