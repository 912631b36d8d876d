import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from devhire_sync.main import app
from devhire_sync.core.errors import NetworkError, ServerRejection
from devhire_sync.models.schemas import EntityType, WithdrawalStatus
from devhire_sync.services.status_ledger import StatusLedger
from devhire_sync.services.workflows import WorkflowService

client = TestClient(app)

AUTH_HEADERS = {"Authorization": "Bearer test-token"}

@pytest.fixture
def mock_backend_client():
    mock_client = MagicMock()
    mock_client.create_withdrawal.return_value = {
        "id": 5, "amount": "250.00", "adminFee": "25.00", "status": "pending",
    }
    mock_client.list_earnings.return_value = [{"id": 12, "withdrawalId": 5, "status": "pending"}]
    mock_client.update_earning_status.return_value = {"id": 12, "status": "processed"}
    return mock_client

@pytest.fixture
def ledger():
    return StatusLedger()

@pytest.fixture
def mock_service_factory(monkeypatch, mock_backend_client, ledger):
    service = WorkflowService(mock_backend_client, ledger)
    factory = MagicMock(return_value=service)
    monkeypatch.setattr("devhire_sync.routers.withdrawals.get_workflow_service", factory)
    return factory

def test_preview_withdrawal(mock_service_factory):
    response = client.post("/withdrawals/preview", json={"amount": 100})

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["amount"]) == Decimal("100.00")
    assert Decimal(data["feeRate"]) == Decimal("0.10")
    assert Decimal(data["feeAmount"]) == Decimal("10.00")
    assert Decimal(data["netAmount"]) == Decimal("90.00")

def test_preview_rounds_half_up(mock_service_factory):
    response = client.post("/withdrawals/preview", json={"amount": "0.15"})
    assert response.status_code == 200
    assert Decimal(response.json()["feeAmount"]) == Decimal("0.02")

@pytest.mark.parametrize("amount", [0, -20, "abc", None])
def test_preview_invalid_amount(mock_service_factory, amount):
    response = client.post("/withdrawals/preview", json={"amount": amount})
    assert response.status_code == 400
    assert "Invalid amount" in response.json()["detail"]

def test_request_withdrawal_success(mock_service_factory, mock_backend_client, ledger):
    response = client.post(
        "/withdrawals",
        json={"amount": 250, "paymentMethod": "bank"},
        headers=AUTH_HEADERS,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["id"] == 5
    assert data["status"] == "pending"
    assert Decimal(data["requestedAmount"]) == Decimal("250.00")
    assert Decimal(data["feeAmount"]) == Decimal("25.00")
    assert Decimal(data["netAmount"]) == Decimal("225.00")
    mock_service_factory.assert_called_once_with("test-token")
    assert ledger.get(EntityType.WITHDRAWAL, 5) == WithdrawalStatus.PENDING

def test_request_withdrawal_requires_token(mock_service_factory, mock_backend_client):
    response = client.post("/withdrawals", json={"amount": 250, "paymentMethod": "bank"})
    assert response.status_code == 401
    mock_backend_client.create_withdrawal.assert_not_called()

def test_request_withdrawal_unknown_payment_method(mock_service_factory, mock_backend_client):
    response = client.post("/withdrawals", json={"amount": 250, "paymentMethod": "crypto"}, headers=AUTH_HEADERS)
    assert response.status_code == 422
    mock_backend_client.create_withdrawal.assert_not_called()

def test_request_withdrawal_invalid_amount_not_sent(mock_service_factory, mock_backend_client):
    response = client.post("/withdrawals", json={"amount": -1, "paymentMethod": "paypal"}, headers=AUTH_HEADERS)
    assert response.status_code == 400
    mock_backend_client.create_withdrawal.assert_not_called()

def test_request_withdrawal_backend_rejects(mock_service_factory, mock_backend_client, ledger):
    mock_backend_client.create_withdrawal.side_effect = ServerRejection(400, "Insufficient balance")

    response = client.post("/withdrawals", json={"amount": 250, "paymentMethod": "bank"}, headers=AUTH_HEADERS)

    assert response.status_code == 400
    assert response.json()["detail"] == "Insufficient balance"
    assert len(ledger) == 0

def test_request_withdrawal_backend_unreachable(mock_service_factory, mock_backend_client):
    mock_backend_client.create_withdrawal.side_effect = NetworkError("Could not reach backend")
    response = client.post("/withdrawals", json={"amount": 250, "paymentMethod": "bank"}, headers=AUTH_HEADERS)
    assert response.status_code == 503

def test_process_withdrawal_resolves_earning(mock_service_factory, mock_backend_client, ledger):
    client.post("/withdrawals", json={"amount": 250, "paymentMethod": "bank"}, headers=AUTH_HEADERS)

    response = client.put("/withdrawals/5/process", headers=AUTH_HEADERS)

    assert response.status_code == 200
    assert response.json()["status"] == "processed"
    mock_backend_client.update_earning_status.assert_called_once_with(12, "processed")
    assert ledger.get(EntityType.WITHDRAWAL, 5) == WithdrawalStatus.PROCESSED

def test_process_withdrawal_with_earning_id_in_body(mock_service_factory, mock_backend_client):
    response = client.put("/withdrawals/9/process", json={"earningId": 31}, headers=AUTH_HEADERS)

    assert response.status_code == 200
    assert response.json()["earningId"] == 31
    mock_backend_client.list_earnings.assert_not_called()
    mock_backend_client.update_earning_status.assert_called_once_with(31, "processed")

def test_process_withdrawal_without_earning_record(mock_service_factory, mock_backend_client, ledger):
    mock_backend_client.list_earnings.return_value = []

    response = client.put("/withdrawals/9/process", headers=AUTH_HEADERS)

    assert response.status_code == 404
    assert "No admin earning record" in response.json()["detail"]
    mock_backend_client.update_earning_status.assert_not_called()
    assert len(ledger) == 0
