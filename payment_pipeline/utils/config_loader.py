"""
Configuration loader for the payment pipeline.

Non-secret defaults live in config/pipeline_config.yml; credentials, template
ids and the port come from the environment (a local .env is honoured).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "pipeline_config.yml"


class StripeConfig(BaseModel):
    """Payment processor credentials"""

    secret_key: str = ""
    webhook_secret: str = ""
    timeout_seconds: float = Field(default=20.0, gt=0)


class XeroConfig(BaseModel):
    """Accounting system credentials and endpoints"""

    client_id: str = ""
    client_secret: str = ""
    tenant_id: str = ""
    base_url: str = "https://api.xero.com/api.xro/2.0"
    token_url: str = "https://identity.xero.com/connect/token"
    scopes: str = "accounting.transactions accounting.contacts"
    timeout_seconds: float = Field(default=20.0, gt=0)


class TemplateConfig(BaseModel):
    """Contract template per pricing tier"""

    basic: str = ""
    premium: str = ""
    enterprise: str = ""


class PandaDocConfig(BaseModel):
    """Document-signing system credentials and send options"""

    api_key: str = ""
    base_url: str = "https://api.pandadoc.com/public/v1"
    templates: TemplateConfig = Field(default_factory=TemplateConfig)
    document_name_prefix: str = "Vision Lake Contract"
    send_message: str = "Please review and sign your Vision Lake subscription contract"
    draft_poll_attempts: int = Field(default=10, ge=1, le=60)
    draft_poll_interval_seconds: float = Field(default=1.0, ge=0.0)
    timeout_seconds: float = Field(default=20.0, gt=0)


class InvoiceConfig(BaseModel):
    """Invoice line item defaults"""

    description: str = "Vision Lake Subscription"
    account_code: str = "200"


class StoreConfig(BaseModel):
    """Durable transaction store"""

    database_url: Optional[str] = None
    persistence_max_attempts: int = Field(default=5, ge=1, le=20)
    persistence_backoff_seconds: float = Field(default=0.5, ge=0.0)


class PipelineConfig(BaseModel):
    """Complete pipeline configuration"""

    integrations_mode: Literal["auto", "mock", "real"] = "auto"
    port: int = Field(default=8080, ge=1, le=65535)
    step_timeout_seconds: float = Field(default=30.0, gt=0)
    stripe: StripeConfig = Field(default_factory=StripeConfig)
    xero: XeroConfig = Field(default_factory=XeroConfig)
    pandadoc: PandaDocConfig = Field(default_factory=PandaDocConfig)
    invoice: InvoiceConfig = Field(default_factory=InvoiceConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @property
    def has_real_credentials(self) -> bool:
        return bool(self.stripe.secret_key and self.xero.client_id and self.pandadoc.api_key)


# environment variable -> (section, key); section None means top level
_ENV_OVERRIDES: Dict[str, tuple] = {
    "INTEGRATIONS_MODE": (None, "integrations_mode"),
    "PORT": (None, "port"),
    "STRIPE_SECRET_KEY": ("stripe", "secret_key"),
    "STRIPE_WEBHOOK_SECRET": ("stripe", "webhook_secret"),
    "XERO_CLIENT_ID": ("xero", "client_id"),
    "XERO_CLIENT_SECRET": ("xero", "client_secret"),
    "XERO_TENANT_ID": ("xero", "tenant_id"),
    "PANDADOC_API_KEY": ("pandadoc", "api_key"),
    "PANDADOC_TEMPLATE_BASIC": ("pandadoc.templates", "basic"),
    "PANDADOC_TEMPLATE_PREMIUM": ("pandadoc.templates", "premium"),
    "PANDADOC_TEMPLATE_ENTERPRISE": ("pandadoc.templates", "enterprise"),
    "DATABASE_URL": ("store", "database_url"),
}


def load_pipeline_config(
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> PipelineConfig:
    """
    Load and validate pipeline configuration

    Args:
        config_path: YAML file with defaults. Defaults to config/pipeline_config.yml;
            a missing default file is fine, a missing explicit file is not.
        env: Environment mapping. Defaults to os.environ after loading .env.

    Returns:
        Validated PipelineConfig object

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        ValidationError: If config doesn't match schema
    """
    data: Dict[str, Any] = {}
    path = config_path or DEFAULT_CONFIG_PATH
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    elif config_path is not None:
        raise FileNotFoundError(f"Config file not found: {config_path}")

    if env is None:
        load_dotenv()
        env = os.environ

    for var, (section, key) in _ENV_OVERRIDES.items():
        value = (env.get(var) or "").strip()
        if not value:
            continue
        target = data
        for part in (section.split(".") if section else []):
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[key] = value.lower() if var == "INTEGRATIONS_MODE" else value

    try:
        config = PipelineConfig(**data)
        logger.info("Loaded pipeline config (mode=%s, port=%s)", config.integrations_mode, config.port)
        return config
    except ValidationError as e:
        logger.error(f"Pipeline config validation failed: {e}")
        raise
