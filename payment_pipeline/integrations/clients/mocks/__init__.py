"""
Mock integration clients.

These clients return fake (but realistic) responses without calling any external API.
They are used when:
- Stripe / Xero / PandaDoc credentials are not configured
- We want to test the checkout saga end-to-end without external dependencies

Important:
- Mock clients must follow the SAME interface as real HTTP clients
  (integrations/contracts/interfaces.py).
- Failures are injected by assigning PipelineError instances, so tests exercise
  the same taxonomy the real clients raise.

Switching to real:
Set INTEGRATIONS_MODE=real (or configure credentials) and payment_pipeline/api/main.py
wires clients/real_http/* instead.
"""

from .pandadoc import MockPandaDocClient
from .stripe import MockStripeCustomersClient
from .xero import MockXeroClient

__all__ = ["MockPandaDocClient", "MockStripeCustomersClient", "MockXeroClient"]
