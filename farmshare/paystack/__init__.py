"""
Module 'paystack' (feature-first): point d'entrée public.
Réunit client HTTP, vérification bancaire, transferts, transactions, webhooks et services.
"""

from .client import PaystackError, is_configured
from .models import BankVerificationResult
from .verification import verify_bank_account, get_supported_banks, health_check
from .transfers import (
    create_transfer_recipient,
    initiate_transfer,
    verify_transfer,
    fetch_transfer_recipients,
    get_banks,
    resolve_account,
    generate_transfer_reference,
)
from .transactions import initialize_payment, verify_payment
from .webhook import verify_signature, event_id
from .service import verify_and_save_bank_account, payout_vendor, refresh_payout_status, handle_webhook

__all__ = [
    # client
    "PaystackError",
    "is_configured",
    # verification
    "BankVerificationResult",
    "verify_bank_account",
    "get_supported_banks",
    "health_check",
    # transfers
    "create_transfer_recipient",
    "initiate_transfer",
    "verify_transfer",
    "fetch_transfer_recipients",
    "get_banks",
    "resolve_account",
    "generate_transfer_reference",
    # transactions
    "initialize_payment",
    "verify_payment",
    # webhooks
    "verify_signature",
    "event_id",
    # services
    "verify_and_save_bank_account",
    "payout_vendor",
    "refresh_payout_status",
    "handle_webhook",
]
