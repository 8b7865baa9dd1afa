"""API tests for the floor, the reservation book and public availability"""

from datetime import date, time

import pytest

from app.models.reservation import ReservationStatus

TODAY = date(2026, 10, 16)


class TestPublicAvailability:
    @pytest.mark.asyncio
    async def test_tables(self, client, test_restaurant, test_tables):
        response = await client.get(f"/restaurants/{test_restaurant.id}/tables")
        assert response.status_code == 200
        assert [t["number"] for t in response.json()["data"]] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_available_tables(self, client, test_restaurant, test_tables, make_reservation):
        await make_reservation(test_tables[1], date(2026, 10, 20), time(19, 0))

        response = await client.get(
            f"/restaurants/{test_restaurant.id}/tables/available",
            params={"date": "2026-10-20", "time": "19:00", "guests": 2},
        )

        assert response.status_code == 200
        assert [t["number"] for t in response.json()["data"]] == [1, 3]

    @pytest.mark.asyncio
    async def test_bad_time_format(self, client, test_restaurant, test_tables):
        response = await client.get(
            f"/restaurants/{test_restaurant.id}/tables/available",
            params={"date": "2026-10-20", "time": "7pm", "guests": 2},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid time format, expected HH:MM"

    @pytest.mark.asyncio
    async def test_timeslots(self, client, test_restaurant, test_tables, make_reservation):
        await make_reservation(test_tables[2], date(2026, 10, 20), time(19, 0), guest_count=6)

        response = await client.get(
            f"/restaurants/{test_restaurant.id}/timeslots",
            params={"date": "2026-10-20", "guests": 6},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["party_size"] == 6
        slots = {slot["time"]: slot["available"] for slot in data["slots"]}
        assert slots["19:00"] is False
        assert slots["19:30"] is True

    @pytest.mark.asyncio
    async def test_unknown_restaurant(self, client):
        response = await client.get("/restaurants/00000000-0000-0000-0000-000000000000/tables")
        assert response.status_code == 404


class TestFloor:
    @pytest.mark.asyncio
    async def test_list_includes_inactive(self, test_db, staff_client, test_tables):
        test_tables[2].is_active = False
        await test_db.commit()

        response = await staff_client.get("/admin/mesas")
        assert response.status_code == 200
        assert len(response.json()["data"]) == 3

    @pytest.mark.asyncio
    async def test_live_status(self, staff_client, test_tables, make_reservation):
        await make_reservation(test_tables[0], TODAY, time(17, 15), status=ReservationStatus.SEATED.value)
        await make_reservation(test_tables[1], TODAY, time(18, 20))

        response = await staff_client.get("/admin/mesas/estado")

        assert response.status_code == 200
        rows = {row["number"]: row for row in response.json()["data"]}
        assert rows[1]["logical_status"] == "OCCUPIED"
        assert rows[1]["remaining_minutes"] == 45
        assert rows[2]["logical_status"] == "RESERVED"
        assert rows[3]["logical_status"] == "FREE"

    @pytest.mark.asyncio
    async def test_create_update_delete(self, staff_client, test_restaurant, test_tables):
        created = await staff_client.post("/admin/mesas", json={"number": 4, "capacity": 8, "zone": "terrace", "isVip": True})
        assert created.status_code == 201
        table = created.json()["data"]
        assert table["restaurant_id"] == str(test_restaurant.id)
        assert table["is_vip"] is True
        assert table["status"] == "available"

        updated = await staff_client.patch(f"/admin/mesas/{table['id']}", json={"capacity": 10, "isActive": False})
        assert updated.status_code == 200
        assert updated.json()["data"]["capacity"] == 10
        assert updated.json()["data"]["is_active"] is False

        deleted = await staff_client.delete(f"/admin/mesas/{table['id']}")
        assert deleted.status_code == 200
        assert deleted.json() == {"success": True, "data": None, "message": "Table deleted"}

    @pytest.mark.asyncio
    async def test_invalid_capacity(self, staff_client, test_tables):
        response = await staff_client.patch(f"/admin/mesas/{test_tables[0].id}", json={"capacity": 0})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_cannot_delete_table_with_live_booking(self, staff_client, test_tables, make_reservation):
        await make_reservation(test_tables[0], date(2026, 10, 20), time(19, 0))

        response = await staff_client.delete(f"/admin/mesas/{test_tables[0].id}")
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_marking_available_completes_the_party(self, staff_client, publisher, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(17, 0), status=ReservationStatus.SEATED.value)

        response = await staff_client.patch(f"/admin/mesas/{test_tables[0].id}", json={"status": "available"})

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "available"
        assert reservation.status == ReservationStatus.COMPLETED.value
        assert publisher.types == ["reservation.completed"]

    @pytest.mark.asyncio
    async def test_rejected_edit_keeps_the_party_seated(self, staff_client, publisher, test_db, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(17, 0), status=ReservationStatus.SEATED.value)
        test_tables[0].status = "occupied"
        await test_db.commit()

        response = await staff_client.patch(
            f"/admin/mesas/{test_tables[0].id}", json={"status": "available", "capacity": 0}
        )

        assert response.status_code == 400
        assert reservation.status == ReservationStatus.SEATED.value
        assert test_tables[0].status == "occupied"
        assert publisher.events == []

    @pytest.mark.asyncio
    async def test_release_and_edit_together(self, staff_client, test_tables, make_reservation):
        reservation = await make_reservation(test_tables[0], TODAY, time(17, 0), status=ReservationStatus.SEATED.value)

        response = await staff_client.patch(
            f"/admin/mesas/{test_tables[0].id}", json={"status": "available", "capacity": 8}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "available"
        assert data["capacity"] == 8
        assert reservation.status == ReservationStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_block_table(self, staff_client, test_tables):
        response = await staff_client.patch(f"/admin/mesas/{test_tables[0].id}", json={"status": "blocked"})
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "blocked"

        estado = await staff_client.get("/admin/mesas/estado")
        rows = {row["number"]: row for row in estado.json()["data"]}
        assert rows[1]["logical_status"] == "OUT_OF_SERVICE"

    @pytest.mark.asyncio
    async def test_walk_in(self, staff_client, test_tables):
        response = await staff_client.post(
            f"/admin/mesas/{test_tables[1].id}/walk-in",
            json={"partySize": 3, "name": "Ana", "phone": "+15550002222"},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["source"] == "walk_in"
        assert data["status"] == "seated"
        assert data["user_id"] is None
        assert "Ana" in data["internal_notes"]

        again = await staff_client.post(f"/admin/mesas/{test_tables[1].id}/walk-in", json={"partySize": 2})
        assert again.status_code == 409


class TestReservationBook:
    @pytest.mark.asyncio
    async def test_today(self, staff_client, test_tables, make_reservation):
        await make_reservation(test_tables[0], TODAY, time(19, 0))
        await make_reservation(test_tables[1], TODAY, time(20, 0), status=ReservationStatus.PENDING.value)
        await make_reservation(test_tables[0], date(2026, 10, 17), time(19, 0))

        response = await staff_client.get("/admin/reservas", params={"fecha": "hoy"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 2
        assert [item["time"] for item in data["items"]] == ["19:00:00", "20:00:00"]

        tomorrow = await staff_client.get("/admin/reservas", params={"fecha": "manana"})
        assert tomorrow.json()["data"]["total"] == 1

    @pytest.mark.asyncio
    async def test_filters_and_paging(self, staff_client, test_tables, make_reservation):
        await make_reservation(test_tables[0], TODAY, time(19, 0))
        await make_reservation(test_tables[1], TODAY, time(20, 0), status=ReservationStatus.PENDING.value)

        pending = await staff_client.get("/admin/reservas", params={"fecha": "2026-10-16", "status": "pending"})
        assert pending.json()["data"]["total"] == 1

        page = await staff_client.get("/admin/reservas", params={"limit": 1, "offset": 1})
        data = page.json()["data"]
        assert data["total"] == 2
        assert len(data["items"]) == 1
        assert data["offset"] == 1

        bad = await staff_client.get("/admin/reservas", params={"status": "lost"})
        assert bad.status_code == 400


class TestRestaurantContext:
    @pytest.mark.asyncio
    async def test_customers_are_rejected(self, customer_client):
        response = await customer_client.get("/admin/mesas")
        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Insufficient permissions"}

    @pytest.mark.asyncio
    async def test_staff_cannot_pick_another_restaurant(self, staff_client):
        response = await staff_client.get(
            "/admin/mesas", params={"restaurantId": "00000000-0000-0000-0000-000000000000"}
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_super_admin_must_pick_a_restaurant(self, admin_client, test_restaurant, test_tables):
        missing = await admin_client.get("/admin/mesas")
        assert missing.status_code == 400
        assert missing.json()["error"] == "restaurantId is required"

        response = await admin_client.get("/admin/mesas", params={"restaurantId": str(test_restaurant.id)})
        assert response.status_code == 200
        assert len(response.json()["data"]) == 3
