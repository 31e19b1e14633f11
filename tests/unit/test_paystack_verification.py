import httpx
import pytest
from fastapi import HTTPException

from farmshare.paystack import client as paystack_client
from farmshare.paystack import verification
from farmshare.paystack.models import verification_http_status


def _response(status_code, payload=None):
    return httpx.Response(status_code, json=payload or {}, request=httpx.Request("GET", "https://api.paystack.test"))


@pytest.fixture
def paystack_responses(monkeypatch, paystack_key):
    """File de réponses (ou exceptions) renvoyées par client.request, dans l’ordre."""
    queue = []
    calls = []

    def _request(method, path, params=None, json=None, timeout=None):
        calls.append((method, path, params, timeout))
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr(paystack_client, "request", _request)
    return queue, calls


RESOLVED = {"status": True, "data": {"account_name": "ADA OBI", "account_number": "0123456789"}}


def test_verify_bank_account_success(paystack_responses):
    queue, calls = paystack_responses
    queue.append(_response(200, RESOLVED))
    result = verification.verify_bank_account(" 0123456789 ", "058")
    assert result.success is True
    assert result.account_name == "ADA OBI"
    assert result.account_number == "0123456789"
    assert result.message == "Bank account verified successfully"
    assert calls[0][:3] == ("GET", "/bank/resolve", {"account_number": "0123456789", "bank_code": "058"})
    assert calls[0][3] == verification.VERIFY_TIMEOUT


@pytest.mark.parametrize("account,bank,detail", [
    ("", "058", "Account number and bank code are required"),
    ("12345", "058", "Invalid account number format. Must be 10 digits."),
    ("0123456789", "5a", "Invalid bank code format"),
])
def test_verify_bank_account_rejects_bad_input(paystack_responses, account, bank, detail):
    with pytest.raises(HTTPException) as exc:
        verification.verify_bank_account(account, bank)
    assert exc.value.status_code == 400
    assert exc.value.detail == detail


def test_verify_bank_account_without_key(monkeypatch):
    monkeypatch.setattr(paystack_client, "PAYSTACK_SECRET_KEY", "")
    result = verification.verify_bank_account("0123456789", "058")
    assert result.success is False
    assert result.error == "Paystack API key not configured"
    assert verification_http_status(result) == 503


def test_retries_transient_errors_then_succeeds(paystack_responses):
    queue, calls = paystack_responses
    queue.extend([httpx.ConnectError("reset"), _response(503), _response(200, RESOLVED)])
    result = verification.verify_bank_account("0123456789", "058")
    assert result.success is True
    assert len(calls) == 3


def test_retry_backoff_is_linear(paystack_responses, monkeypatch):
    queue, calls = paystack_responses
    waits = []
    monkeypatch.setattr(verification, "RETRY_DELAY_SECONDS", 1.0)
    monkeypatch.setattr(verification.time, "sleep", lambda s: waits.append(s))
    queue.extend([_response(500)] * 4)
    result = verification.verify_bank_account("0123456789", "058")
    assert waits == [1.0, 2.0, 3.0]
    assert len(calls) == 1 + verification.MAX_RETRIES
    assert result.error == "Service unavailable"
    assert verification_http_status(result) == 503


def test_client_errors_are_not_retried(paystack_responses):
    queue, calls = paystack_responses
    queue.append(_response(422, {"status": False, "message": "Could not resolve account name"}))
    result = verification.verify_bank_account("0123456789", "058")
    assert len(calls) == 1
    assert result.error == "Invalid account"
    assert result.message == "Account number not found or invalid for the selected bank"
    assert verification_http_status(result) == 422


def test_timeout_after_retries(paystack_responses):
    queue, calls = paystack_responses
    queue.extend([httpx.ReadTimeout("slow")] * 4)
    result = verification.verify_bank_account("0123456789", "058")
    assert len(calls) == 4
    assert result.error == "Request timeout"
    assert verification_http_status(result) == 504


def test_unexpected_payload(paystack_responses):
    queue, _ = paystack_responses
    queue.append(_response(200, {"status": True, "data": {}}))
    result = verification.verify_bank_account("0123456789", "058")
    assert result.error == "Invalid response from Paystack"
    assert verification_http_status(result) == 502


@pytest.mark.parametrize("status,error", [
    (400, "Bad request"),
    (401, "Authentication failed"),
    (429, "Rate limit exceeded"),
    (502, "Service unavailable"),
])
def test_classify_http_error(status, error):
    assert verification.classify_http_error(status, None).error == error


def test_supported_banks_deduplicated(paystack_responses):
    queue, calls = paystack_responses
    queue.append(_response(200, {"status": True, "data": [
        {"name": "GTBank", "code": "058"},
        {"name": "Access", "code": "044"},
        {"name": "GTBank duplicate", "code": "058"},
    ]}))
    banks = verification.get_supported_banks()
    assert [b["name"] for b in banks] == ["GTBank", "Access"]
    assert calls[0][2] == {"country": "nigeria"}


def test_supported_banks_empty_after_retries(paystack_responses):
    queue, calls = paystack_responses
    queue.extend([_response(500)] * 3)
    assert verification.get_supported_banks() == []
    assert len(calls) == 1 + verification.BANKS_MAX_RETRIES


def test_health_check(paystack_responses, monkeypatch):
    queue, _ = paystack_responses
    queue.append(_response(200, {"status": True, "data": [{"code": "058"}]}))
    assert verification.health_check() is True
    monkeypatch.setattr(paystack_client, "PAYSTACK_SECRET_KEY", "")
    assert verification.health_check() is False
