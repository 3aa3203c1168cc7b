"""
Real HTTP integration clients.

These clients communicate with the real external systems:
- Stripe customer lookup (stripe SDK)
- Xero contacts and invoices (httpx)
- PandaDoc template documents and signature requests (httpx)

Important:
- Must implement the same interfaces as the mock clients
- Must return data shaped according to payment_pipeline/integrations/contracts/*
- Must raise UpstreamUnavailable / UpstreamRejected, never raw transport errors

Switching:
The selection of mock vs real clients happens in payment_pipeline/api/main.py only.
"""
