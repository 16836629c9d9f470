"""
Services Module

Domain core and the collaborators it talks to. Collaborators have a Mock
or in-memory implementation for development and a real one for
production, chosen by ENV_MODE.

Modules:
    - catalog / cart: menu projection, variant gate and cart ledger
    - sessions: per-customer and per-terminal state
    - settlement: checkout, change and cash-session reconciliation
    - receipts: order message and receipt rendering
    - storage: order, menu and cash-session persistence
    - messaging: WhatsApp delivery
    - excel_manager: file-locked Excel order ledger
"""
