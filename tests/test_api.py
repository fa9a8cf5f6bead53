"""HTTP surface tests — auth, RBAC, problem details and the leave endpoints.

Every test that seeds through ``db`` commits before touching ``client``.
"""

from __future__ import annotations

import uuid
from datetime import date, timedelta

import pytest
from sqlalchemy import select

from leave_engine.common.constants import LeaveType
from leave_engine.leave.models import LeaveBalance
from tests.conftest import _seed_employee, bearer, create_access_token, next_weekday

BASE = "/api/v1/leave"


def _body(leave_type: str = "vacation", start=None, end=None, reason=None) -> dict:
    start = start or next_weekday(0)
    end = end or start
    return {
        "leave_type": leave_type,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "reason": reason,
    }


def _assert_problem(resp, status: int, error_type: str) -> dict:
    assert resp.status_code == status
    assert resp.headers["content-type"].startswith("application/problem+json")
    data = resp.json()
    assert data["status"] == status
    assert data["type"].endswith(f"/{error_type}")
    return data


# ═════════════════════════════════════════════════════════════════════
# 1. System & authentication
# ═════════════════════════════════════════════════════════════════════


class TestSystem:

    async def test_health(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    async def test_rate_limit_exceeded(self, client):
        """Default limit of 60/minute applies to every route."""
        codes = [(await client.get("/api/v1/health")).status_code for _ in range(61)]
        assert codes[:60] == [200] * 60
        assert codes[60] == 429


class TestAuthentication:

    async def test_missing_token(self, client):
        resp = await client.get(f"{BASE}/requests/mine")
        assert resp.status_code == 401

    async def test_malformed_header(self, client):
        resp = await client.get(
            f"{BASE}/requests/mine", headers={"Authorization": "Token abc"},
        )
        assert resp.status_code == 401

    async def test_expired_token(self, client, test_employee):
        token = create_access_token(test_employee.id, expired=True)
        resp = await client.get(
            f"{BASE}/requests/mine", headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 401
        assert "expired" in resp.json()["detail"].lower()

    async def test_wrong_token_type(self, client, test_employee):
        token = create_access_token(test_employee.id, token_type="refresh")
        resp = await client.get(
            f"{BASE}/requests/mine", headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 401

    async def test_unknown_employee(self, client):
        resp = await client.get(f"{BASE}/requests/mine", headers=bearer(uuid.uuid4()))
        assert resp.status_code == 401

    async def test_inactive_employee(self, client, db):
        emp = await _seed_employee(db, is_active=False)
        await db.commit()

        resp = await client.get(f"{BASE}/requests/mine", headers=bearer(emp.id))
        assert resp.status_code == 401

    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/requests"),
            ("get", f"/requests/{uuid.uuid4()}/overlaps"),
            ("get", f"/balances/{uuid.uuid4()}"),
        ],
    )
    async def test_admin_routes_forbidden_for_users(self, client, auth_headers, method, path):
        resp = await getattr(client, method)(f"{BASE}{path}", headers=auth_headers)
        _assert_problem(resp, 403, "forbidden")

    async def test_respond_forbidden_for_users(self, client, auth_headers):
        resp = await client.patch(
            f"{BASE}/requests/{uuid.uuid4()}/respond",
            json={"decision": "approved"},
            headers=auth_headers,
        )
        _assert_problem(resp, 403, "forbidden")


# ═════════════════════════════════════════════════════════════════════
# 2. Requests
# ═════════════════════════════════════════════════════════════════════


class TestCreateEndpoint:

    async def test_create_returns_201(self, client, auth_headers, test_employee):
        resp = await client.post(
            f"{BASE}/requests", json=_body(reason="Family trip"), headers=auth_headers,
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "pending"
        assert data["employee_id"] == str(test_employee.id)
        assert data["employee"]["email"] == "test.user@example.com"
        assert data["approver"] is None
        assert data["reason"] == "Family trip"

    async def test_invalid_range_problem(self, client, auth_headers):
        start = next_weekday(3)
        resp = await client.post(
            f"{BASE}/requests",
            json=_body(start=start, end=start - timedelta(days=2)),
            headers=auth_headers,
        )
        _assert_problem(resp, 422, "invalid-range")

    async def test_advance_notice_problem(self, client, auth_headers):
        resp = await client.post(
            f"{BASE}/requests", json=_body(start=date.today()), headers=auth_headers,
        )
        _assert_problem(resp, 422, "advance-notice")

    async def test_birthday_without_birth_date(self, client, auth_headers):
        resp = await client.post(
            f"{BASE}/requests", json=_body("birthday"), headers=auth_headers,
        )
        _assert_problem(resp, 422, "birthday-leave-mismatch")

    async def test_insufficient_balance_problem(self, client, auth_headers, admin_headers, test_employee):
        monday = next_weekday(0)
        patch = await client.patch(
            f"{BASE}/balances/{test_employee.id}",
            json={"leave_type": "medical", "total_days": 1, "year": monday.year},
            headers=admin_headers,
        )
        assert patch.status_code == 200

        resp = await client.post(
            f"{BASE}/requests",
            json=_body("medical", monday, monday + timedelta(days=1)),
            headers=auth_headers,
        )
        data = _assert_problem(resp, 422, "insufficient-balance")
        assert data["errors"]["remaining"] == ["1"]
        assert data["errors"]["requested"] == ["2"]

    async def test_overlap_problem(self, client, auth_headers):
        monday = next_weekday(0)
        first = await client.post(
            f"{BASE}/requests",
            json=_body(start=monday, end=monday + timedelta(days=4)),
            headers=auth_headers,
        )
        assert first.status_code == 201

        resp = await client.post(
            f"{BASE}/requests",
            json=_body("special", monday + timedelta(days=2)),
            headers=auth_headers,
        )
        _assert_problem(resp, 409, "overlap-conflict")

    async def test_unknown_leave_type_rejected(self, client, auth_headers):
        resp = await client.post(
            f"{BASE}/requests", json=_body("sabbatical"), headers=auth_headers,
        )
        data = _assert_problem(resp, 422, "validation-error")
        assert "leave_type" in data["errors"]


class TestRespondEndpoint:

    async def _create(self, client, headers, **kwargs) -> str:
        resp = await client.post(f"{BASE}/requests", json=_body(**kwargs), headers=headers)
        assert resp.status_code == 201
        return resp.json()["id"]

    async def test_approve(self, client, db, auth_headers, admin_headers, admin_employee, test_employee):
        monday = next_weekday(0)
        req_id = await self._create(
            client, auth_headers,
            leave_type="medical", start=monday, end=monday + timedelta(days=2),
        )

        resp = await client.patch(
            f"{BASE}/requests/{req_id}/respond",
            json={"decision": "approved", "message": "OK"},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "approved"
        assert data["approver"]["id"] == str(admin_employee.id)
        assert data["response_message"] == "OK"

        used = (
            await db.execute(
                select(LeaveBalance.used_days).where(
                    LeaveBalance.employee_id == test_employee.id,
                    LeaveBalance.leave_type == LeaveType.medical,
                )
            )
        ).scalar_one()
        await db.commit()
        assert used == 3

    async def test_second_response_conflicts(self, client, auth_headers, admin_headers):
        req_id = await self._create(client, auth_headers)
        url = f"{BASE}/requests/{req_id}/respond"

        first = await client.patch(url, json={"decision": "rejected"}, headers=admin_headers)
        assert first.status_code == 200
        assert first.json()["status"] == "rejected"

        again = await client.patch(url, json={"decision": "approved"}, headers=admin_headers)
        _assert_problem(again, 409, "already-processed")

    async def test_invalid_decision(self, client, auth_headers, admin_headers):
        req_id = await self._create(client, auth_headers)
        resp = await client.patch(
            f"{BASE}/requests/{req_id}/respond",
            json={"decision": "maybe"},
            headers=admin_headers,
        )
        _assert_problem(resp, 422, "validation-error")

    async def test_unknown_request(self, client, admin_headers):
        resp = await client.patch(
            f"{BASE}/requests/{uuid.uuid4()}/respond",
            json={"decision": "approved"},
            headers=admin_headers,
        )
        _assert_problem(resp, 404, "not-found")


class TestCancelEndpoint:

    async def test_cancel_pending(self, client, auth_headers):
        created = await client.post(f"{BASE}/requests", json=_body(), headers=auth_headers)
        req_id = created.json()["id"]

        resp = await client.delete(f"{BASE}/requests/{req_id}", headers=auth_headers)
        assert resp.status_code == 204
        assert resp.content == b""

        gone = await client.get(f"{BASE}/requests/{req_id}", headers=auth_headers)
        _assert_problem(gone, 404, "not-found")

    async def test_cancel_someone_elses(self, client, db, auth_headers):
        other = await _seed_employee(db)
        await db.commit()
        created = await client.post(f"{BASE}/requests", json=_body(), headers=bearer(other.id))

        resp = await client.delete(
            f"{BASE}/requests/{created.json()['id']}", headers=auth_headers,
        )
        _assert_problem(resp, 403, "forbidden")

    async def test_cancel_approved(self, client, auth_headers, admin_headers):
        created = await client.post(f"{BASE}/requests", json=_body(), headers=auth_headers)
        req_id = created.json()["id"]
        await client.patch(
            f"{BASE}/requests/{req_id}/respond",
            json={"decision": "approved"},
            headers=admin_headers,
        )

        resp = await client.delete(f"{BASE}/requests/{req_id}", headers=auth_headers)
        _assert_problem(resp, 409, "not-cancellable")


class TestListEndpoints:

    async def test_my_requests_paginated(self, client, auth_headers):
        for week in (1, 2, 3):
            resp = await client.post(
                f"{BASE}/requests",
                json=_body(start=next_weekday(0, weeks_ahead=week)),
                headers=auth_headers,
            )
            assert resp.status_code == 201

        resp = await client.get(
            f"{BASE}/requests/mine", params={"page": 2, "page_size": 2}, headers=auth_headers,
        )

        assert resp.status_code == 200
        data = resp.json()
        assert len(data["data"]) == 1
        assert data["meta"]["total"] == 3
        assert data["meta"]["has_prev"] is True
        assert data["meta"]["has_next"] is False

    async def test_admin_list_filters_by_status(self, client, auth_headers, admin_headers):
        ids = []
        for week in (1, 2):
            resp = await client.post(
                f"{BASE}/requests",
                json=_body(start=next_weekday(0, weeks_ahead=week)),
                headers=auth_headers,
            )
            ids.append(resp.json()["id"])
        await client.patch(
            f"{BASE}/requests/{ids[0]}/respond",
            json={"decision": "approved"},
            headers=admin_headers,
        )

        resp = await client.get(
            f"{BASE}/requests", params={"status": "pending"}, headers=admin_headers,
        )

        assert resp.status_code == 200
        assert [r["id"] for r in resp.json()["data"]] == [ids[1]]

    async def test_department_overlaps(self, client, db, auth_headers, admin_headers, test_department):
        colleague = await _seed_employee(db, department_id=test_department.id)
        await db.commit()
        monday = next_weekday(0)
        mine = await client.post(
            f"{BASE}/requests",
            json=_body(start=monday, end=monday + timedelta(days=4)),
            headers=auth_headers,
        )
        theirs = await client.post(
            f"{BASE}/requests", json=_body(start=monday + timedelta(days=1)),
            headers=bearer(colleague.id),
        )

        resp = await client.get(
            f"{BASE}/requests/{mine.json()['id']}/overlaps", headers=admin_headers,
        )

        assert resp.status_code == 200
        assert [r["id"] for r in resp.json()] == [theirs.json()["id"]]


# ═════════════════════════════════════════════════════════════════════
# 3. Balances & calendar
# ═════════════════════════════════════════════════════════════════════


class TestBalanceEndpoints:

    async def test_my_balances(self, client, auth_headers):
        resp = await client.get(
            f"{BASE}/balances/mine", params={"year": 2025}, headers=auth_headers,
        )

        assert resp.status_code == 200
        rows = {r["leave_type"]: r for r in resp.json()}
        assert set(rows) == {t.value for t in LeaveType}
        assert rows["vacation"]["remaining_days"] == 21
        assert rows["birthday"]["total_days"] == 1

    async def test_year_out_of_range(self, client, auth_headers):
        resp = await client.get(
            f"{BASE}/balances/mine", params={"year": 1999}, headers=auth_headers,
        )
        _assert_problem(resp, 422, "validation-error")

    async def test_admin_reads_and_overrides(self, client, admin_headers, test_employee):
        url = f"{BASE}/balances/{test_employee.id}"

        patched = await client.patch(
            url,
            json={"leave_type": "special", "total_days": 10, "used_days": 4, "year": 2025},
            headers=admin_headers,
        )
        assert patched.status_code == 200
        assert patched.json()["remaining_days"] == 6

        resp = await client.get(url, params={"year": 2025}, headers=admin_headers)
        special = next(r for r in resp.json() if r["leave_type"] == "special")
        assert (special["total_days"], special["used_days"]) == (10, 4)

    async def test_override_rejects_negative(self, client, admin_headers, test_employee):
        resp = await client.patch(
            f"{BASE}/balances/{test_employee.id}",
            json={"leave_type": "special", "total_days": -1},
            headers=admin_headers,
        )
        _assert_problem(resp, 422, "validation-error")

    async def test_unknown_employee(self, client, admin_headers):
        resp = await client.get(f"{BASE}/balances/{uuid.uuid4()}", headers=admin_headers)
        _assert_problem(resp, 404, "not-found")


class TestCalendarEndpoint:

    async def test_approved_days_for_month(self, client, auth_headers, admin_headers):
        monday = next_weekday(0)
        created = await client.post(
            f"{BASE}/requests",
            json=_body(start=monday - timedelta(days=2), end=monday),
            headers=auth_headers,
        )
        await client.patch(
            f"{BASE}/requests/{created.json()['id']}/respond",
            json={"decision": "approved"},
            headers=admin_headers,
        )

        resp = await client.get(
            f"{BASE}/calendar/approved",
            params={"month_year": monday.strftime("%Y-%m")},
            headers=auth_headers,
        )

        assert resp.status_code == 200
        entries = resp.json()
        assert len(entries) == 1
        assert entries[0]["dates"] == [monday.isoformat()]
        assert entries[0]["employee_name"] == "Test User"

    async def test_malformed_month(self, client, auth_headers):
        resp = await client.get(
            f"{BASE}/calendar/approved", params={"month_year": "2025-13"}, headers=auth_headers,
        )
        data = _assert_problem(resp, 422, "validation-error")
        assert "month_year" in data["errors"]

    async def test_month_required(self, client, auth_headers):
        resp = await client.get(f"{BASE}/calendar/approved", headers=auth_headers)
        _assert_problem(resp, 422, "validation-error")
