"""
CRUD surfaces around the trip engine: vehicles, tires, maintenance, users,
odometer adjustments.
"""
from models import MaintenanceRecord, MaintenanceTarget, Tire, TireStatus


class TestTrucks:

    def test_create_and_duplicate_plate(self, client, admin_headers):
        body = {"plate_number": " ab-123 ", "brand": "Scania", "model": "R450", "km": 1200}
        first = client.post("/api/trucks/", json=body, headers=admin_headers)
        assert first.status_code == 201
        assert first.json()["plate_number"] == "AB-123"
        assert first.json()["status"] == "available"

        second = client.post("/api/trucks/", json=body, headers=admin_headers)
        assert second.status_code == 409
        assert second.json()["error"] == "duplicate_key"

    def test_list_with_search(self, client, admin_headers, truck):
        body = client.get("/api/trucks/", params={"search": "volvo"}, headers=admin_headers).json()
        assert body["total"] == 1
        assert body["items"][0]["plate_number"] == "TR-100"

    def test_status_endpoint(self, client, admin_headers, truck):
        response = client.patch(f"/api/trucks/{truck.id}/status", json={"status": "maintenance"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "maintenance"

    def test_on_trip_cannot_be_set_by_hand(self, client, admin_headers, truck):
        response = client.patch(f"/api/trucks/{truck.id}/status", json={"status": "on_trip"}, headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["error"] == "invalid_state"

    def test_delete_releases_tires(self, client, db, admin_headers, truck, truck_tires):
        response = client.delete(f"/api/trucks/{truck.id}", headers=admin_headers)
        assert response.status_code == 200
        db.expire_all()
        tire = db.get(Tire, truck_tires[0].id)
        assert tire.truck_id is None
        assert tire.status == TireStatus.STOCK

    def test_delete_with_trips_refused(self, client, admin_headers, trip):
        assert client.delete(f"/api/trucks/{trip.truck_id}", headers=admin_headers).status_code == 409


class TestTrailers:

    def test_crud(self, client, admin_headers):
        created = client.post("/api/trailers/", json={"plate_number": "TL-9", "type": "flatbed"}, headers=admin_headers)
        assert created.status_code == 201
        trailer_id = created.json()["id"]

        updated = client.put(f"/api/trailers/{trailer_id}", json={"max_load": 18000}, headers=admin_headers)
        assert updated.json()["max_load"] == 18000

        assert client.delete(f"/api/trailers/{trailer_id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/trailers/{trailer_id}", headers=admin_headers).status_code == 404


class TestTires:

    def test_create_assigned_tire_is_mounted(self, client, admin_headers, truck):
        body = {"truck_id": truck.id, "brand": "Goodyear", "model": "KMAX", "size": "315/70 R22.5",
                "position": "front-left"}
        response = client.post("/api/tires/", json=body, headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["status"] == "mounted"
        assert response.json()["position"] == "front-left"

    def test_unknown_host_rejected(self, client, admin_headers):
        body = {"truck_id": 999, "brand": "Goodyear", "model": "KMAX", "size": "315/70 R22.5"}
        response = client.post("/api/tires/", json=body, headers=admin_headers)
        assert response.status_code == 400

    def test_both_filters_rejected(self, client, admin_headers):
        response = client.get("/api/tires/", params={"truck": 1, "trailer": 1}, headers=admin_headers)
        assert response.status_code == 400

    def test_filter_by_trailer(self, client, admin_headers, trailer, trailer_tire, truck_tires):
        response = client.get("/api/tires/", params={"trailer": trailer.id}, headers=admin_headers)
        assert [t["id"] for t in response.json()] == [trailer_tire.id]

    def test_available_and_unassign(self, client, admin_headers, truck_tires):
        assert client.get("/api/tires/available", headers=admin_headers).json() == []

        response = client.put(
            f"/api/tires/{truck_tires[0].id}", json={"truck_id": None, "status": "stock"}, headers=admin_headers
        )
        assert response.status_code == 200
        available = client.get("/api/tires/available", headers=admin_headers).json()
        assert [t["id"] for t in available] == [truck_tires[0].id]

    def test_unassigned_tire_cannot_be_mounted(self, client, admin_headers, truck_tires):
        response = client.put(f"/api/tires/{truck_tires[0].id}", json={"truck_id": None}, headers=admin_headers)
        assert response.status_code == 400


class TestMaintenance:

    def _rule(self, client, headers, target="truck"):
        response = client.post(
            "/api/maintenance-rules/",
            json={"target": target, "interval_type": "km", "interval_value": 15000, "description": "Service"},
            headers=headers,
        )
        assert response.status_code == 201
        return response.json()

    def test_record_updates_and_vehicle_view(self, client, admin_headers, truck, truck_tires):
        rule = self._rule(client, admin_headers)
        created = client.post(
            "/api/maintenance-records/",
            json={"target_type": "truck", "target_id": truck.id, "rule_id": rule["id"],
                  "km_at_maintenance": 100, "performed_at": "2030-03-02T08:00:00"},
            headers=admin_headers,
        )
        assert created.status_code == 201
        record_id = created.json()["id"]

        client.put(f"/api/maintenance-records/{record_id}", json={"km_at_maintenance": 150}, headers=admin_headers)
        assert client.get(f"/api/trucks/{truck.id}", headers=admin_headers).json()["km"] == 10150

        client.put(f"/api/maintenance-records/{record_id}", json={"km_at_maintenance": 50}, headers=admin_headers)
        assert client.get(f"/api/trucks/{truck.id}", headers=admin_headers).json()["km"] == 10150

        view = client.get("/api/maintenance-records/vehicle", params={"truck": truck.id}, headers=admin_headers).json()
        assert [r["id"] for r in view["vehicle_records"]] == [record_id]
        assert len(view["tire_records"]) == 2

        due = client.get(
            "/api/maintenance-records/due", params={"target_type": "truck", "target_id": truck.id}, headers=admin_headers
        ).json()
        assert due[0]["next_due_km"] == 10150 + 15000

    def test_duplicate_record_returns_409(self, client, admin_headers, truck):
        rule = self._rule(client, admin_headers)
        body = {"target_type": "truck", "target_id": truck.id, "rule_id": rule["id"],
                "performed_at": "2030-03-02T08:00:00"}
        assert client.post("/api/maintenance-records/", json=body, headers=admin_headers).status_code == 201
        duplicate = client.post("/api/maintenance-records/", json=body, headers=admin_headers)
        assert duplicate.status_code == 409
        assert duplicate.json()["error"] == "duplicate_key"

    def test_duplicate_rule_returns_409(self, client, admin_headers):
        self._rule(client, admin_headers)
        response = client.post(
            "/api/maintenance-rules/",
            json={"target": "truck", "interval_type": "km", "interval_value": 15000},
            headers=admin_headers,
        )
        assert response.status_code == 409

    def test_vehicle_view_needs_one_vehicle(self, client, admin_headers):
        assert client.get("/api/maintenance-records/vehicle", headers=admin_headers).status_code == 400


class TestUsers:

    def test_create_returns_generated_password(self, client, admin_headers):
        response = client.post(
            "/api/users/", json={"name": "New Driver", "email": "New@Fleet.test"}, headers=admin_headers
        )
        assert response.status_code == 201
        body = response.json()
        assert body["user"]["email"] == "new@fleet.test"
        assert body["user"]["must_change_password"] is True

        login = client.post("/api/auth/login", json={"email": "new@fleet.test", "password": body["password"]})
        assert login.status_code == 200

    def test_duplicate_email(self, client, admin_headers, driver):
        response = client.post("/api/users/", json={"name": "Copy", "email": "dana@fleet.test"}, headers=admin_headers)
        assert response.status_code == 409

    def test_drivers_list(self, client, admin_headers, driver, other_driver):
        names = [u["name"] for u in client.get("/api/users/drivers", headers=admin_headers).json()]
        assert names == ["Dana Driver", "Omar Other"]

    def test_filter_by_role(self, client, admin_headers, driver):
        body = client.get("/api/users/", params={"role": "admin"}, headers=admin_headers).json()
        assert body["total"] == 1

    def test_driver_with_trips_cannot_be_deleted(self, client, admin_headers, trip):
        assert client.delete(f"/api/users/{trip.driver_id}", headers=admin_headers).status_code == 409


class TestOdometer:

    def test_adjust_trailer(self, client, admin_headers, trailer, trailer_tire):
        response = client.post(
            "/api/odometer/adjust",
            json={"target_type": "trailer", "target_id": trailer.id, "delta": 250, "reason": "Hub meter reset"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["km"] == 5250
        tires = client.get("/api/tires/", params={"trailer": trailer.id}, headers=admin_headers).json()
        assert tires[0]["km"] == 1250

    def test_non_positive_delta_rejected(self, client, admin_headers, truck):
        response = client.post(
            "/api/odometer/adjust",
            json={"target_type": "truck", "target_id": truck.id, "delta": 0},
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_missing_target(self, client, admin_headers):
        response = client.post(
            "/api/odometer/adjust",
            json={"target_type": "tire", "target_id": 999, "delta": 5},
            headers=admin_headers,
        )
        assert response.status_code == 404


class TestDeleteDropsMaintenanceHistory:

    def _log(self, client, headers, target_type, target_id):
        rule = client.post(
            "/api/maintenance-rules/",
            json={"target": target_type, "interval_type": "days", "interval_value": 30},
            headers=headers,
        ).json()
        record = client.post(
            "/api/maintenance-records/",
            json={"target_type": target_type, "target_id": target_id, "rule_id": rule["id"],
                  "performed_at": "2030-03-02T08:00:00"},
            headers=headers,
        )
        assert record.status_code == 201

    def _history(self, db, target_type, target_id):
        return db.query(MaintenanceRecord).filter(
            MaintenanceRecord.target_type == MaintenanceTarget(target_type),
            MaintenanceRecord.target_id == target_id,
        ).count()

    def test_tire(self, client, db, admin_headers, truck, truck_tires):
        tire_id = truck_tires[-1].id
        self._log(client, admin_headers, "tire", tire_id)

        assert client.delete(f"/api/tires/{tire_id}", headers=admin_headers).status_code == 200
        assert self._history(db, "tire", tire_id) == 0

        replacement = client.post(
            "/api/tires/", json={"brand": "Michelin", "model": "X Multi", "size": "315/80 R22.5"},
            headers=admin_headers,
        ).json()
        detail = client.get(f"/api/tires/{replacement['id']}", params={"maintenance": "true"}, headers=admin_headers)
        assert detail.json()["maintenances"] == []

    def test_truck(self, client, db, admin_headers, truck):
        self._log(client, admin_headers, "truck", truck.id)
        assert client.delete(f"/api/trucks/{truck.id}", headers=admin_headers).status_code == 200
        assert self._history(db, "truck", truck.id) == 0

    def test_trailer(self, client, db, admin_headers, trailer):
        self._log(client, admin_headers, "trailer", trailer.id)
        assert client.delete(f"/api/trailers/{trailer.id}", headers=admin_headers).status_code == 200
        assert self._history(db, "trailer", trailer.id) == 0

    def test_released_tires_keep_their_history(self, client, db, admin_headers, truck, truck_tires):
        self._log(client, admin_headers, "tire", truck_tires[0].id)
        assert client.delete(f"/api/trucks/{truck.id}", headers=admin_headers).status_code == 200
        assert self._history(db, "tire", truck_tires[0].id) == 1
