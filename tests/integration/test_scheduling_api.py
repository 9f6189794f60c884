from datetime import timedelta

import pytest
from httpx import AsyncClient

from tests.conftest import business_headers, local_dt, parse_dt, upcoming_weekday

DAY = upcoming_weekday(1)  # a Tuesday


@pytest.mark.integration
class TestAvailabilityAPI:
    """Day availability for services, employees and courts."""

    @pytest.mark.asyncio
    async def test_service_availability(
        self, client: AsyncClient, sample_business, sample_service
    ):
        response = await client.get(
            "/api/v1/scheduling/availability",
            params={"day": DAY.isoformat(), "service_id": sample_service.id},
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["is_open"] is True
        assert data["timezone"] == "Europe/Bucharest"
        assert data["slot_duration_minutes"] == 30
        assert len(data["slots"]) == 14
        assert data["slots"][0]["local_time"] == "09:00"
        assert parse_dt(data["slots"][0]["start_at"]) == local_dt(DAY, 9)
        assert all(slot["status"] == "available" for slot in data["slots"])

    @pytest.mark.asyncio
    async def test_booked_slot_reported(
        self, client: AsyncClient, sample_business, sample_service, sample_client
    ):
        headers = business_headers(sample_business.id)
        await client.post(
            "/api/v1/bookings/",
            json={
                "client_id": sample_client.id,
                "service_id": sample_service.id,
                "start_at": local_dt(DAY, 10).isoformat(),
            },
            headers=headers,
        )

        response = await client.get(
            "/api/v1/scheduling/availability",
            params={
                "day": DAY.isoformat(),
                "service_id": sample_service.id,
                "include_unavailable": "true",
            },
            headers=headers,
        )

        statuses = {slot["local_time"]: slot["status"] for slot in response.json()["slots"]}
        assert statuses["10:00"] == "booked"
        assert statuses["10:30"] == "available"

    @pytest.mark.asyncio
    async def test_target_required(self, client: AsyncClient, sample_business):
        response = await client.get(
            "/api/v1/scheduling/availability",
            params={"day": DAY.isoformat()},
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_court_availability(
        self, client: AsyncClient, sport_business, sample_court
    ):
        response = await client.get(
            f"/api/v1/scheduling/courts/{sample_court.id}/availability",
            params={"day": DAY.isoformat()},
            headers=business_headers(sport_business.id),
        )

        assert response.status_code == 200
        slots = response.json()["slots"]
        assert len(slots) == 14
        assert slots[0]["local_time"] == "08:00"
        assert slots[0]["price"] == "40.00"
        assert slots[-1]["time_slot"] == "NIGHT"

    @pytest.mark.asyncio
    async def test_court_at_salon(
        self, client: AsyncClient, sample_business, sample_court
    ):
        response = await client.get(
            f"/api/v1/scheduling/courts/{sample_court.id}/availability",
            params={"day": DAY.isoformat()},
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 400


@pytest.mark.integration
class TestAvailableDaysAPI:
    @pytest.mark.asyncio
    async def test_available_days(
        self, client: AsyncClient, sample_business, sample_service
    ):
        monday = DAY - timedelta(days=1)
        response = await client.get(
            "/api/v1/scheduling/available-days",
            params={
                "start_date": monday.isoformat(),
                "end_date": (monday + timedelta(days=6)).isoformat(),
                "service_id": sample_service.id,
            },
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 200
        assert response.json()["available_days"] == [
            (monday + timedelta(days=i)).isoformat() for i in range(5)
        ]

    @pytest.mark.asyncio
    async def test_range_too_long(
        self, client: AsyncClient, sample_business, sample_service
    ):
        response = await client.get(
            "/api/v1/scheduling/available-days",
            params={
                "start_date": DAY.isoformat(),
                "end_date": (DAY + timedelta(days=90)).isoformat(),
                "service_id": sample_service.id,
            },
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 400


@pytest.mark.integration
class TestValidateAPI:
    @pytest.mark.asyncio
    async def test_valid_request(
        self, client: AsyncClient, sample_business, sample_service
    ):
        response = await client.post(
            "/api/v1/scheduling/validate",
            json={"service_id": sample_service.id, "start_at": local_dt(DAY, 10).isoformat()},
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is True
        assert data["price"] == "50.00"
        assert parse_dt(data["end_at"]) == local_dt(DAY, 10, 30)

    @pytest.mark.asyncio
    async def test_conflicts_and_alternatives(
        self, client: AsyncClient, sample_business, sample_service
    ):
        response = await client.post(
            "/api/v1/scheduling/validate",
            json={"service_id": sample_service.id, "start_at": local_dt(DAY, 12).isoformat()},
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is False
        assert [c["conflict_type"] for c in data["conflicts"]] == ["outside_working_hours"]
        local_times = [slot["local_time"] for slot in data["alternative_slots"]]
        assert "11:30" in local_times
        assert "13:00" in local_times
        assert len(local_times) == 5
