"""
Contracts (data models).

This folder defines the shapes exchanged with external integrations:
- the inbound payment event and money helpers
- customer / contact / invoice / contract models
- the transaction record written to the durable store
- the failure taxonomy every client raises

Both mock and real HTTP clients return these models, so the checkout saga
never handles raw provider payloads.
"""
