from datetime import datetime, timedelta, timezone
from decimal import Decimal
import uuid

import pytest
from httpx import AsyncClient
from jose import jwt

from schoolfees.auth.dependencies import get_current_user
from schoolfees.core.config import settings
from schoolfees.main import app


def _token(role: str) -> str:
    claims = {
        "sub": str(uuid.uuid4()),
        "aud": "authenticated",
        "email": f"{role}@example.com",
        "app_metadata": {"role": role},
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@pytest.mark.asyncio
async def test_create_and_list_fee_structures(client: AsyncClient, grade) -> None:
    payload = {"grade_id": str(grade.id), "academic_year": "2025", "term": "term_1", "amount": "15000.00"}
    response = await client.post("/api/v1/fees/structures", json=payload)
    assert response.status_code == 201
    data = response.json()
    assert data["term"] == "term_1"
    assert Decimal(data["amount"]) == Decimal("15000")

    listed = await client.get("/api/v1/fees/structures", params={"academic_year": "2025", "term": "term_1"})
    assert listed.status_code == 200
    assert [s["id"] for s in listed.json()] == [data["id"]]

    other_term = await client.get("/api/v1/fees/structures", params={"term": "term_2"})
    assert other_term.json() == []


@pytest.mark.asyncio
async def test_duplicate_fee_structure_conflicts(client: AsyncClient, grade) -> None:
    payload = {"grade_id": str(grade.id), "academic_year": "2025", "term": "term_2", "amount": "9000"}
    assert (await client.post("/api/v1/fees/structures", json=payload)).status_code == 201
    again = await client.post("/api/v1/fees/structures", json={**payload, "amount": "9500"})
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_fee_structure_validation(client: AsyncClient, grade) -> None:
    unknown_grade = {"grade_id": str(uuid.uuid4()), "academic_year": "2025", "term": "term_1", "amount": "100"}
    assert (await client.post("/api/v1/fees/structures", json=unknown_grade)).status_code == 400

    negative = {"grade_id": str(grade.id), "academic_year": "2025", "term": "term_1", "amount": "-5"}
    assert (await client.post("/api/v1/fees/structures", json=negative)).status_code == 422

    bad_term = {"grade_id": str(grade.id), "academic_year": "2025", "term": "term_4", "amount": "100"}
    assert (await client.post("/api/v1/fees/structures", json=bad_term)).status_code == 422


@pytest.mark.asyncio
async def test_payment_updates_learner_balance(client: AsyncClient, grade, add_learner, add_structure) -> None:
    structure = await add_structure(grade.id, "5000")
    learner = await add_learner("Amani", grade_id=grade.id)

    response = await client.post(
        "/api/v1/fees/payments",
        json={
            "learner_id": str(learner.id),
            "fee_structure_id": str(structure.id),
            "amount_paid": "2000",
            "payment_method": "cash",
            "receipt_number": " RCT-0001 ",
        },
    )
    assert response.status_code == 201
    payment = response.json()
    assert payment["payment_method"] == "CASH"
    assert payment["receipt_number"] == "RCT-0001"

    balance = await client.get(
        f"/api/v1/fee-balances/learners/{learner.id}", params={"academic_year": "2025", "term": "term_1"}
    )
    assert balance.status_code == 200
    data = balance.json()
    assert Decimal(data["balance"]) == Decimal("3000")
    assert data["status"] == "partial"

    history = await client.get(f"/api/v1/fees/payments/{learner.id}", params={"academic_year": "2025"})
    assert history.status_code == 200
    assert [(h["id"], h["term"]) for h in history.json()] == [(payment["id"], "term_1")]


@pytest.mark.asyncio
async def test_payment_requires_existing_rows(client: AsyncClient, grade, add_learner, add_structure) -> None:
    structure = await add_structure(grade.id, "5000")
    learner = await add_learner("Amani", grade_id=grade.id)
    base = {"amount_paid": "100", "payment_method": "CASH"}

    unknown_learner = {**base, "learner_id": str(uuid.uuid4()), "fee_structure_id": str(structure.id)}
    assert (await client.post("/api/v1/fees/payments", json=unknown_learner)).status_code == 404

    unknown_structure = {**base, "learner_id": str(learner.id), "fee_structure_id": str(uuid.uuid4())}
    assert (await client.post("/api/v1/fees/payments", json=unknown_structure)).status_code == 404

    zero = {**base, "amount_paid": "0", "learner_id": str(learner.id), "fee_structure_id": str(structure.id)}
    assert (await client.post("/api/v1/fees/payments", json=zero)).status_code == 422


@pytest.mark.asyncio
async def test_fee_balance_report_endpoint(client: AsyncClient, grade, add_learner, add_structure) -> None:
    await add_structure(grade.id, "4000")
    await add_learner("Amani", grade_id=grade.id)
    await add_learner("Baraka", grade_id=grade.id)

    response = await client.get(
        "/api/v1/fee-balances", params={"academic_year": "2025", "term": "term_1", "grade_id": str(grade.id)}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["term"] == "term_1"
    assert [i["status"] for i in data["items"]] == ["pending", "pending"]
    assert data["summary"]["learner_count"] == 2
    assert Decimal(data["summary"]["total_outstanding"]) == Decimal("8000")


@pytest.mark.asyncio
async def test_fee_balance_rejects_blank_year(client: AsyncClient) -> None:
    response = await client.get("/api/v1/fee-balances", params={"academic_year": "  ", "term": "term_1"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_learner_balance_is_404(client: AsyncClient) -> None:
    response = await client.get(
        f"/api/v1/fee-balances/learners/{uuid.uuid4()}", params={"academic_year": "2025", "term": "term_1"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(client: AsyncClient) -> None:
    app.dependency_overrides.pop(get_current_user)
    response = await client.get("/api/v1/fees/structures")
    assert response.status_code == 401

    bad = await client.get("/api/v1/fees/structures", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad.status_code == 401


@pytest.mark.asyncio
async def test_teacher_token_can_read_but_not_write(client: AsyncClient, grade) -> None:
    app.dependency_overrides.pop(get_current_user)
    headers = {"Authorization": f"Bearer {_token('teacher')}"}

    listed = await client.get("/api/v1/fees/structures", headers=headers)
    assert listed.status_code == 200

    payload = {"grade_id": str(grade.id), "academic_year": "2025", "term": "term_1", "amount": "100"}
    created = await client.post("/api/v1/fees/structures", json=payload, headers=headers)
    assert created.status_code == 403
    assert created.json()["detail"] == "Role 'teacher' may not create fees"

    settings_update = {"settings": [{"discount_type": "sibling", "percentage": "10"}]}
    assert (await client.put("/api/v1/discounts/settings", json=settings_update, headers=headers)).status_code == 403
    assert (await client.get("/api/v1/discounts/settings", headers=headers)).status_code == 200


@pytest.mark.asyncio
async def test_accountant_token_can_write(client: AsyncClient, grade) -> None:
    app.dependency_overrides.pop(get_current_user)
    headers = {"Authorization": f"Bearer {_token('accountant')}"}
    payload = {"grade_id": str(grade.id), "academic_year": "2025", "term": "term_3", "amount": "100"}
    created = await client.post("/api/v1/fees/structures", json=payload, headers=headers)
    assert created.status_code == 201
