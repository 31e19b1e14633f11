import pytest
from fastapi import HTTPException

from farmshare.paystack import service as paystack_service
from farmshare.paystack import repository
from farmshare.paystack import transfers
from farmshare.paystack import verification
from farmshare.paystack.client import PaystackError
from farmshare.paystack.models import BankVerificationResult


VENDOR = {
    "id": "vendor-1",
    "email": "vendor@example.com",
    "name": "Vendor",
    "role": "VENDOR",
    "bank_verified": True,
    "bank_account_id": "0123456789",
    "bank_code": "058",
    "bank_account_name": "ADA OBI",
}


@pytest.fixture
def store(monkeypatch):
    state = {"users": [], "payouts": {}}

    def _insert(payload):
        state["payouts"][payload["reference"]] = dict(payload)
        return payload

    def _update(reference, data):
        state["payouts"][reference].update(data)
        return state["payouts"][reference]

    monkeypatch.setattr(paystack_service, "update_user", lambda user_id, data: state["users"].append((user_id, data)))
    monkeypatch.setattr(repository, "insert_payout", _insert)
    monkeypatch.setattr(repository, "update_payout", _update)
    monkeypatch.setattr(repository, "get_payout", lambda reference: state["payouts"].get(reference))
    return state


def test_verify_and_save_bank_account(monkeypatch, store):
    result = BankVerificationResult(success=True, account_name="ADA OBI", account_number="0123456789", bank_code="058")
    monkeypatch.setattr(verification, "verify_bank_account", lambda a, b: result)
    assert paystack_service.verify_and_save_bank_account({"id": "u1"}, "0123456789", "058") is result
    user_id, data = store["users"][0]
    assert user_id == "u1"
    assert data["bank_verified"] is True
    assert data["bank_account_name"] == "ADA OBI"
    assert data["paystack_recipient_code"] is None


def test_failed_verification_saves_nothing(monkeypatch, store):
    result = BankVerificationResult(success=False, error="Invalid account")
    monkeypatch.setattr(verification, "verify_bank_account", lambda a, b: result)
    assert paystack_service.verify_and_save_bank_account({"id": "u1"}, "0123456789", "058").success is False
    assert store["users"] == []


def test_payout_vendor_not_found(monkeypatch, store):
    monkeypatch.setattr(paystack_service, "get_user_by_id", lambda user_id: None)
    with pytest.raises(HTTPException) as exc:
        paystack_service.payout_vendor("ghost", 100)
    assert exc.value.status_code == 404


def test_payout_vendor_requires_bank_details(monkeypatch, store):
    monkeypatch.setattr(paystack_service, "get_user_by_id", lambda user_id: {**VENDOR, "bank_verified": False})
    with pytest.raises(HTTPException) as exc:
        paystack_service.payout_vendor("vendor-1", 100)
    assert exc.value.status_code == 400
    assert exc.value.detail == "Vendor bank details not configured"


def test_payout_vendor_creates_recipient_once_and_records_payout(monkeypatch, store):
    recipients = []
    monkeypatch.setattr(paystack_service, "get_user_by_id", lambda user_id: dict(VENDOR))
    monkeypatch.setattr(
        transfers,
        "create_transfer_recipient",
        lambda type, name, account, bank: recipients.append((type, name, account, bank)) or {"recipient_code": "RCP_1"},
    )
    monkeypatch.setattr(
        transfers,
        "initiate_transfer",
        lambda amount, recipient, reason=None, reference=None: {"status": "pending", "transfer_code": "TRF_1", "reference": reference},
    )

    res = paystack_service.payout_vendor("vendor-1", 1234.5, pool_id="pool-42")
    payout = res["payout"]
    assert recipients == [("nuban", "ADA OBI", "0123456789", "058")]
    assert ("vendor-1", {"paystack_recipient_code": "RCP_1"}) in store["users"]
    assert payout["amount_kobo"] == 123450
    assert payout["reference"].startswith("fs_pool-42_vendor-1_")
    assert payout["transfer_code"] == "TRF_1"
    assert payout["recipient_code"] == "RCP_1"
    assert payout["reason"] == "FarmShare Escrow Release"


def test_payout_vendor_reuses_recipient_code(monkeypatch, store):
    monkeypatch.setattr(paystack_service, "get_user_by_id", lambda user_id: {**VENDOR, "paystack_recipient_code": "RCP_9"})
    monkeypatch.setattr(transfers, "create_transfer_recipient", lambda *a: pytest.fail("recipient must be reused"))
    monkeypatch.setattr(transfers, "initiate_transfer", lambda amount, recipient, reason=None, reference=None: {"status": "success"})
    res = paystack_service.payout_vendor("vendor-1", 10)
    assert res["payout"]["recipient_code"] == "RCP_9"
    assert res["payout"]["status"] == "success"


def test_payout_vendor_provider_failure_marks_payout_failed(monkeypatch, store):
    monkeypatch.setattr(paystack_service, "get_user_by_id", lambda user_id: {**VENDOR, "paystack_recipient_code": "RCP_9"})

    def _fail(*a, **kw):
        raise PaystackError("Failed to initiate transfer: Insufficient balance")

    monkeypatch.setattr(transfers, "initiate_transfer", _fail)
    with pytest.raises(HTTPException) as exc:
        paystack_service.payout_vendor("vendor-1", 10)
    assert exc.value.status_code == 502
    (payout,) = store["payouts"].values()
    assert payout["status"] == "failed"
    assert payout["failure_reason"] == "Failed to initiate transfer: Insufficient balance"


def test_refresh_payout_status(monkeypatch, store):
    store["payouts"]["fs_ref"] = {"reference": "fs_ref", "status": "pending"}
    monkeypatch.setattr(transfers, "verify_transfer", lambda reference: {"status": "success"})
    res = paystack_service.refresh_payout_status("fs_ref")
    assert res["payout"]["status"] == "success"

    with pytest.raises(HTTPException) as exc:
        paystack_service.refresh_payout_status("missing")
    assert exc.value.status_code == 404


def test_list_vendor_payouts(monkeypatch):
    rows = [{"reference": "fs_b", "vendor_id": "vendor-1"}, {"reference": "fs_a", "vendor_id": "vendor-1"}]
    monkeypatch.setattr(paystack_service, "get_user_by_id", lambda user_id: VENDOR if user_id == "vendor-1" else None)
    monkeypatch.setattr(repository, "list_vendor_payouts", lambda vendor_id: rows if vendor_id == "vendor-1" else [])
    assert paystack_service.list_vendor_payouts("vendor-1") == {"payouts": rows}

    with pytest.raises(HTTPException) as exc:
        paystack_service.list_vendor_payouts("ghost")
    assert exc.value.status_code == 404
