from datetime import timedelta

import pytest
from httpx import AsyncClient

from tests.conftest import business_headers, local_dt, parse_dt, upcoming_weekday

DAY = upcoming_weekday(1)  # a Tuesday


def booking_payload(client, service, hour, minute=0, **extra):
    return {
        "client_id": client.id,
        "service_id": service.id,
        "start_at": local_dt(DAY, hour, minute).isoformat(),
        **extra,
    }


@pytest.mark.integration
class TestBookingAPICreate:
    """Test booking creation API endpoints."""

    @pytest.mark.asyncio
    async def test_create_booking_success(
        self, client: AsyncClient, sample_business, sample_service, sample_employee, sample_client
    ):
        response = await client.post(
            "/api/v1/bookings/",
            json=booking_payload(
                sample_client,
                sample_service,
                10,
                employee_id=sample_employee.id,
                client_notes="First visit",
            ),
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "CONFIRMED"
        assert data["employee_id"] == sample_employee.id
        assert data["price"] == "50.00"
        assert parse_dt(data["start_at"]) == local_dt(DAY, 10)
        assert parse_dt(data["end_at"]) == local_dt(DAY, 10, 30)
        assert data["client_notes"] == "First visit"

    @pytest.mark.asyncio
    async def test_naive_start_is_business_local(
        self, client: AsyncClient, sample_business, sample_service, sample_client
    ):
        response = await client.post(
            "/api/v1/bookings/",
            json={
                "client_id": sample_client.id,
                "service_id": sample_service.id,
                "start_at": f"{DAY.isoformat()}T10:00:00",
            },
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 201
        assert parse_dt(response.json()["start_at"]) == local_dt(DAY, 10)

    @pytest.mark.asyncio
    async def test_double_booking_conflict(
        self, client: AsyncClient, sample_business, sample_service, sample_client
    ):
        headers = business_headers(sample_business.id)
        payload = booking_payload(sample_client, sample_service, 10)

        first = await client.post("/api/v1/bookings/", json=payload, headers=headers)
        second = await client.post("/api/v1/bookings/", json=payload, headers=headers)

        assert first.status_code == 201
        assert second.status_code == 409
        detail = second.json()["detail"]
        assert detail["conflicts"][0]["conflict_type"] == "existing_booking"
        assert detail["alternative_slots"]

    @pytest.mark.asyncio
    async def test_outside_working_hours(
        self, client: AsyncClient, sample_business, sample_service, sample_client
    ):
        response = await client.post(
            "/api/v1/bookings/",
            json=booking_payload(sample_client, sample_service, 18),
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 400
        conflicts = response.json()["detail"]["conflicts"]
        assert conflicts[0]["conflict_type"] == "outside_working_hours"

    @pytest.mark.asyncio
    async def test_service_and_court_together(
        self, client: AsyncClient, sample_business, sample_service, sample_client
    ):
        response = await client.post(
            "/api/v1/bookings/",
            json=booking_payload(sample_client, sample_service, 10, court_id=1),
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_service_of_other_business(
        self, client: AsyncClient, other_business, sample_service, sample_client
    ):
        response = await client.post(
            "/api/v1/bookings/",
            json=booking_payload(sample_client, sample_service, 10),
            headers=business_headers(other_business.id),
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_missing_business_header(
        self, client: AsyncClient, sample_service, sample_client
    ):
        response = await client.post(
            "/api/v1/bookings/", json=booking_payload(sample_client, sample_service, 10)
        )

        assert response.status_code == 400


@pytest.mark.integration
class TestBookingAPIRead:
    @pytest.mark.asyncio
    async def test_get_and_list(
        self, client: AsyncClient, sample_business, sample_service, sample_client
    ):
        headers = business_headers(sample_business.id)
        ids = []
        for hour in (9, 10, 11):
            response = await client.post(
                "/api/v1/bookings/",
                json=booking_payload(sample_client, sample_service, hour),
                headers=headers,
            )
            ids.append(response.json()["id"])

        response = await client.get(f"/api/v1/bookings/{ids[0]}", headers=headers)
        assert response.status_code == 200
        assert response.json()["id"] == ids[0]

        response = await client.get(
            "/api/v1/bookings/", params={"page": 1, "page_size": 2}, headers=headers
        )
        data = response.json()
        assert data["total_count"] == 3
        assert data["total_pages"] == 2
        assert [b["id"] for b in data["bookings"]] == [ids[2], ids[1]]

        response = await client.get(
            "/api/v1/bookings/", params={"status": "CANCELLED"}, headers=headers
        )
        assert response.json()["total_count"] == 0

    @pytest.mark.asyncio
    async def test_booking_of_other_business_not_found(
        self, client: AsyncClient, sample_business, other_business, sample_service, sample_client
    ):
        created = await client.post(
            "/api/v1/bookings/",
            json=booking_payload(sample_client, sample_service, 10),
            headers=business_headers(sample_business.id),
        )

        response = await client.get(
            f"/api/v1/bookings/{created.json()['id']}",
            headers=business_headers(other_business.id),
        )

        assert response.status_code == 404


@pytest.mark.integration
class TestBookingAPIChanges:
    """Reschedule, status transitions, cancellation and deletion."""

    async def create(self, client, business, service, customer, hour=10):
        response = await client.post(
            "/api/v1/bookings/",
            json=booking_payload(customer, service, hour),
            headers=business_headers(business.id),
        )
        assert response.status_code == 201
        return response.json()

    @pytest.mark.asyncio
    async def test_reschedule(
        self, client: AsyncClient, sample_business, sample_service, sample_client
    ):
        booking = await self.create(client, sample_business, sample_service, sample_client)

        response = await client.post(
            f"/api/v1/bookings/{booking['id']}/reschedule",
            json={"new_start_at": local_dt(DAY, 15).isoformat()},
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 200
        data = response.json()
        assert parse_dt(data["start_at"]) == local_dt(DAY, 15)
        assert parse_dt(data["rescheduled_from"]) == local_dt(DAY, 10)
        assert data["reschedule_count"] == 1

    @pytest.mark.asyncio
    async def test_patch_onto_taken_slot(
        self, client: AsyncClient, sample_business, sample_service, sample_client
    ):
        await self.create(client, sample_business, sample_service, sample_client, hour=15)
        booking = await self.create(client, sample_business, sample_service, sample_client)

        response = await client.patch(
            f"/api/v1/bookings/{booking['id']}",
            json={"start_at": local_dt(DAY, 15).isoformat()},
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_status_transitions(
        self, client: AsyncClient, sample_business, sample_service, sample_client
    ):
        booking = await self.create(client, sample_business, sample_service, sample_client)
        headers = business_headers(sample_business.id)

        completed = await client.post(
            f"/api/v1/bookings/{booking['id']}/status",
            json={"new_status": "COMPLETED"},
            headers=headers,
        )
        assert completed.status_code == 200
        assert completed.json()["status"] == "COMPLETED"
        assert completed.json()["previous_status"] == "CONFIRMED"

        invalid = await client.post(
            f"/api/v1/bookings/{booking['id']}/status",
            json={"new_status": "CONFIRMED"},
            headers=headers,
        )
        assert invalid.status_code == 400

    @pytest.mark.asyncio
    async def test_client_cancellation(
        self, client: AsyncClient, sample_business, sample_service, sample_client
    ):
        booking = await self.create(client, sample_business, sample_service, sample_client)
        headers = business_headers(sample_business.id)

        policy = await client.get(
            f"/api/v1/bookings/{booking['id']}/cancellation-policy", headers=headers
        )
        assert policy.status_code == 200
        assert policy.json()["can_cancel"] is True
        assert parse_dt(policy.json()["cancellation_deadline"]) == local_dt(
            DAY, 10
        ) - timedelta(hours=23)

        response = await client.post(
            f"/api/v1/bookings/{booking['id']}/cancel",
            json={"reason": "Sick"},
            headers=headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "CANCELLED"
        assert data["cancelled_by"] == "CLIENT"
        assert data["cancellation_reason"] == "Sick"

        again = await client.post(
            f"/api/v1/bookings/{booking['id']}/cancel", json={}, headers=headers
        )
        assert again.status_code == 400

    @pytest.mark.asyncio
    async def test_delete_cancels(
        self, client: AsyncClient, sample_business, sample_service, sample_client
    ):
        booking = await self.create(client, sample_business, sample_service, sample_client)
        headers = business_headers(sample_business.id)

        response = await client.delete(f"/api/v1/bookings/{booking['id']}", headers=headers)

        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"
        assert response.json()["cancelled_by"] == "BUSINESS"

        rebooked = await client.post(
            "/api/v1/bookings/",
            json=booking_payload(sample_client, sample_service, 10),
            headers=headers,
        )
        assert rebooked.status_code == 201


@pytest.mark.integration
class TestBookingAPIHolds:
    @pytest.mark.asyncio
    async def test_hold_then_book(
        self, client: AsyncClient, sample_business, sample_service, sample_client
    ):
        headers = business_headers(sample_business.id)
        hold = {
            "session_id": "checkout-a",
            "service_id": sample_service.id,
            "start_at": local_dt(DAY, 10).isoformat(),
        }

        held = await client.post("/api/v1/bookings/holds", json=hold, headers=headers)
        assert held.status_code == 201
        assert held.json()["held"] is True

        blocked = await client.post(
            "/api/v1/bookings/",
            json=booking_payload(sample_client, sample_service, 10, session_id="checkout-b"),
            headers=headers,
        )
        assert blocked.status_code == 409
        assert blocked.json()["detail"]["conflicts"][0]["conflict_type"] == "slot_held"

        booked = await client.post(
            "/api/v1/bookings/",
            json=booking_payload(sample_client, sample_service, 10, session_id="checkout-a"),
            headers=headers,
        )
        assert booked.status_code == 201

    @pytest.mark.asyncio
    async def test_release(
        self, client: AsyncClient, sample_business, sample_service
    ):
        headers = business_headers(sample_business.id)
        hold = {
            "session_id": "checkout-a",
            "service_id": sample_service.id,
            "start_at": local_dt(DAY, 10).isoformat(),
        }
        await client.post("/api/v1/bookings/holds", json=hold, headers=headers)

        response = await client.post("/api/v1/bookings/holds/release", json=hold, headers=headers)

        assert response.status_code == 200
        assert response.json()["released"] == 2

        second = await client.post(
            "/api/v1/bookings/holds", json={**hold, "session_id": "checkout-b"}, headers=headers
        )
        assert second.status_code == 201
