import pytest
from httpx import AsyncClient

from tests.conftest import business_headers, upcoming_weekday

WEEKLY_HOURS = {
    "monday": {
        "enabled": True,
        "slots": [{"start": "09:00", "end": "12:00"}, {"start": "13:00", "end": "18:00"}],
    },
    "saturday": {"enabled": True, "slots": [{"start": "10:00", "end": "14:00"}]},
}


@pytest.mark.integration
class TestBusinessAPI:
    """Business registration, tenancy and settings."""

    @pytest.mark.asyncio
    async def test_create_business(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/business/",
            json={
                "name": "Bella Salon",
                "business_type": "BEAUTY",
                "timezone": "Europe/Bucharest",
                "public_holiday_country": "ro",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Bella Salon"
        assert data["public_holiday_country"] == "RO"
        assert data["is_active"] is True
        assert data["resolved_slot_duration_minutes"] == 60

    @pytest.mark.asyncio
    async def test_create_business_invalid_timezone(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/business/", json={"name": "Bella Salon", "timezone": "Nowhere/City"}
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_current_business(
        self, client: AsyncClient, sample_business, sample_service
    ):
        response = await client.get(
            "/api/v1/business/", headers=business_headers(sample_business.id)
        )

        assert response.status_code == 200
        assert response.json()["id"] == sample_business.id
        assert response.json()["resolved_slot_duration_minutes"] == 30

    @pytest.mark.asyncio
    async def test_header_problems(self, client: AsyncClient, db, sample_business):
        missing = await client.get("/api/v1/business/")
        invalid = await client.get("/api/v1/business/", headers={"X-Business-ID": "abc"})
        unknown = await client.get("/api/v1/business/", headers=business_headers(9999))

        assert missing.status_code == 400
        assert invalid.status_code == 400
        assert unknown.status_code == 404

        sample_business.is_active = False
        await db.commit()
        inactive = await client.get(
            "/api/v1/business/", headers=business_headers(sample_business.id)
        )
        assert inactive.status_code == 403

    @pytest.mark.asyncio
    async def test_update_policy(self, client: AsyncClient, sample_business):
        headers = business_headers(sample_business.id)

        response = await client.patch(
            "/api/v1/business/",
            json={"policy": {"min_lead_minutes": 30, "cancellation_limit_hours": 12}},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["policy"]["min_lead_minutes"] == 30

        rejected = await client.patch(
            "/api/v1/business/", json={"policy": {"buffer": 5}}, headers=headers
        )
        assert rejected.status_code == 422

    @pytest.mark.asyncio
    async def test_slot_duration(self, client: AsyncClient, sample_business, sample_service):
        headers = business_headers(sample_business.id)

        response = await client.put(
            "/api/v1/business/slot-duration", json={"slot_duration_minutes": 45}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["resolved_slot_duration_minutes"] == 45

        reset = await client.put(
            "/api/v1/business/slot-duration", json={"slot_duration_minutes": None}, headers=headers
        )
        assert reset.json()["resolved_slot_duration_minutes"] == 30

        invalid = await client.put(
            "/api/v1/business/slot-duration", json={"slot_duration_minutes": 20}, headers=headers
        )
        assert invalid.status_code == 422


@pytest.mark.integration
class TestWorkingHoursAPI:
    @pytest.mark.asyncio
    async def test_replace_weekly_hours(self, client: AsyncClient, sample_business):
        headers = business_headers(sample_business.id)

        response = await client.put(
            "/api/v1/business/working-hours", json=WEEKLY_HOURS, headers=headers
        )
        assert response.status_code == 200

        response = await client.get("/api/v1/business/working-hours", headers=headers)
        data = response.json()
        assert data["monday"]["enabled"] is True
        assert data["monday"]["slots"] == WEEKLY_HOURS["monday"]["slots"]
        assert data["saturday"]["slots"] == [{"start": "10:00", "end": "14:00"}]
        assert data["tuesday"] == {"enabled": False, "slots": []}

    @pytest.mark.asyncio
    async def test_overlapping_hours_rejected(self, client: AsyncClient, sample_business):
        response = await client.put(
            "/api/v1/business/working-hours",
            json={
                "monday": {
                    "enabled": True,
                    "slots": [
                        {"start": "09:00", "end": "13:00"},
                        {"start": "12:00", "end": "18:00"},
                    ],
                }
            },
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_new_hours_drive_availability(
        self, client: AsyncClient, sample_business, sample_service
    ):
        headers = business_headers(sample_business.id)
        await client.put("/api/v1/business/working-hours", json=WEEKLY_HOURS, headers=headers)

        saturday = upcoming_weekday(5)
        response = await client.get(
            "/api/v1/scheduling/availability",
            params={"day": saturday.isoformat(), "service_id": sample_service.id},
            headers=headers,
        )

        slots = response.json()["slots"]
        assert slots[0]["local_time"] == "10:00"
        assert len(slots) == 8


@pytest.mark.integration
class TestClosuresAPI:
    @pytest.mark.asyncio
    async def test_closure_lifecycle(self, client: AsyncClient, sample_business, sample_service):
        headers = business_headers(sample_business.id)
        day = upcoming_weekday(1)

        created = await client.post(
            "/api/v1/business/closures",
            json={"start_date": day.isoformat(), "end_date": day.isoformat(), "reason": "Holiday"},
            headers=headers,
        )
        assert created.status_code == 201
        closure_id = created.json()["id"]

        overlapping = await client.post(
            "/api/v1/business/closures",
            json={"start_date": day.isoformat(), "end_date": day.isoformat()},
            headers=headers,
        )
        assert overlapping.status_code == 409

        availability = await client.get(
            "/api/v1/scheduling/availability",
            params={"day": day.isoformat(), "service_id": sample_service.id},
            headers=headers,
        )
        assert availability.json()["is_open"] is False
        assert availability.json()["slots"] == []

        listed = await client.get("/api/v1/business/closures", headers=headers)
        assert [c["id"] for c in listed.json()] == [closure_id]

        deleted = await client.delete(f"/api/v1/business/closures/{closure_id}", headers=headers)
        assert deleted.status_code == 204

        missing = await client.delete(f"/api/v1/business/closures/{closure_id}", headers=headers)
        assert missing.status_code == 404
