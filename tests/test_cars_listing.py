"""
tests/test_cars_listing.py -- Integration tests for GET /v1/cars.

Every test gets an empty inventory (fresh_api_client) so counts and page
arithmetic are exact.

Coverage:
  - Defaults: page 1, pageSize 10, pageCount = ceil(count / 10)
  - Explicit pages, pages past the end, empty inventory
  - Negative page rejected with ValidationError
  - size and availableAt filters
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from conftest import create_car, rent_car

DAY = datetime(2026, 3, 1, tzinfo=timezone.utc)



class TestListCars:
    def test_list_defaults(self, fresh_api_client) -> None:
        """No query params -> page 1, pageSize 10, pageCount = ceil(count / 10)."""
        for i in range(12):
            create_car(fresh_api_client, name=f"Car {i}")

        resp = fresh_api_client.client.get("/v1/cars")
        assert resp.status_code == 200
        data = resp.json()
        assert data["meta"]["pagination"] == {"page": 1, "pageCount": 2, "pageSize": 10, "count": 12}
        assert len(data["cars"]) == 10
        assert data["cars"][0]["name"] == "Car 0"

    def test_list_second_page(self, fresh_api_client) -> None:
        for i in range(12):
            create_car(fresh_api_client, name=f"Car {i}")

        data = fresh_api_client.client.get("/v1/cars", params={"page": 2}).json()
        assert [c["name"] for c in data["cars"]] == ["Car 10", "Car 11"]
        assert data["meta"]["pagination"]["page"] == 2

    def test_list_page_past_the_end(self, fresh_api_client) -> None:
        for i in range(12):
            create_car(fresh_api_client, name=f"Car {i}")

        data = fresh_api_client.client.get("/v1/cars", params={"page": 2, "pageSize": 20}).json()
        assert data["cars"] == []
        assert data["meta"]["pagination"] == {"page": 2, "pageCount": 1, "pageSize": 20, "count": 12}

    def test_list_empty_inventory(self, fresh_api_client) -> None:
        data = fresh_api_client.client.get("/v1/cars").json()
        assert data["cars"] == []
        assert data["meta"]["pagination"] == {"page": 1, "pageCount": 0, "pageSize": 10, "count": 0}

    def test_list_negative_page_rejected(self, fresh_api_client) -> None:
        resp = fresh_api_client.client.get("/v1/cars", params={"page": -1})
        assert resp.status_code == 422
        assert resp.json()["error"]["name"] == "ValidationError"

    def test_list_filter_by_size(self, fresh_api_client) -> None:
        create_car(fresh_api_client, name="Tiny", size="SMALL")
        create_car(fresh_api_client, name="Bus", size="LARGE")

        data = fresh_api_client.client.get("/v1/cars", params={"size": "LARGE"}).json()
        assert [c["name"] for c in data["cars"]] == ["Bus"]
        assert data["meta"]["pagination"]["count"] == 1

    def test_list_filter_by_available_at(self, fresh_api_client) -> None:
        booked = create_car(fresh_api_client, name="Booked")
        create_car(fresh_api_client, name="NeverBooked")
        assert rent_car(fresh_api_client, booked["id"], DAY, DAY + timedelta(days=3)).status_code == 201

        inside = fresh_api_client.client.get("/v1/cars", params={"availableAt": (DAY + timedelta(days=1)).isoformat()})
        assert [c["name"] for c in inside.json()["cars"]] == ["Booked"]

        after = fresh_api_client.client.get("/v1/cars", params={"availableAt": (DAY + timedelta(days=4)).isoformat()})
        assert after.json()["cars"] == []

    def test_list_is_public(self, fresh_api_client) -> None:
        resp = fresh_api_client.client.get("/v1/cars", headers={})
        assert resp.status_code == 200
