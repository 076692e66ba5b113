"""
Тесты API endpoints Rail Planner
"""

import json

import pytest
from fastapi.testclient import TestClient

from rail_planner.api.main import app
from rail_planner.api.modules.routes import get_workshop

API_BASE = "/api"


@pytest.fixture
def client(workshop):
    app.dependency_overrides[get_workshop] = lambda: workshop
    yield TestClient(app)
    app.dependency_overrides.clear()


def add_rail(client, length, width=12, thickness=5, **extra):
    response = client.post(f"{API_BASE}/rails", json={"length": length, "width": width,
                                                      "thickness": thickness, **extra})
    assert response.status_code == 200
    return response.json()


def create_plan_with_pieces(client):
    plan = client.post(f"{API_BASE}/plans", json={"name": "Шкаф А"}).json()
    for length, quantity, purpose in [(500, 2, "Главная шина"), (250, 1, "Перемычка")]:
        response = client.post(f"{API_BASE}/plans/{plan['id']}/pieces", json={
            "length": length, "quantity": quantity, "purpose": purpose, "width": 12, "thickness": 5
        })
        assert response.status_code == 200
    return plan


def test_root_and_connection(client):
    assert client.get("/").json()["status"] == "running"
    assert client.get(f"{API_BASE}/test-connection").json()["status"] == "success"


def test_rails_crud(client):
    rail = add_rail(client, 2000, notes="Поставка")

    assert [r["id"] for r in client.get(f"{API_BASE}/rails").json()] == [rail["id"]]
    assert client.get(f"{API_BASE}/rails/{rail['id']}").json()["notes"] == "Поставка"

    updated = client.put(f"{API_BASE}/rails/{rail['id']}", json={"length": 1800}).json()
    assert updated["length"] == 1800
    assert updated["notes"] == "Поставка"

    stats = client.get(f"{API_BASE}/rails/stats").json()
    assert stats["total_rails"] == 1
    assert stats["total_length"] == 1800

    assert client.delete(f"{API_BASE}/rails/{rail['id']}").status_code == 200
    assert client.get(f"{API_BASE}/rails/{rail['id']}").status_code == 404
    assert client.delete(f"{API_BASE}/rails/{rail['id']}").status_code == 404


def test_invalid_rail_rejected(client):
    response = client.post(f"{API_BASE}/rails", json={"length": 0, "width": 12, "thickness": 5})
    assert response.status_code == 400

    response = client.post(f"{API_BASE}/rails", json={"width": 12, "thickness": 5})
    assert response.status_code == 422


def test_cut_rail(client):
    rail = add_rail(client, 1000)

    assert client.post(f"{API_BASE}/rails/{rail['id']}/cut", json={"cut_length": 1200}).status_code == 400
    assert client.post(f"{API_BASE}/rails/missing/cut", json={"cut_length": 100}).status_code == 404

    response = client.post(f"{API_BASE}/rails/{rail['id']}/cut", json={"cut_length": 400, "purpose": "PE"})
    remainder = response.json()["remainder"]
    assert remainder["length"] == 600
    assert remainder["original_rail_id"] == rail["id"]


def test_inventory_import_export(client):
    add_rail(client, 2000)
    exported = client.get(f"{API_BASE}/rails/export").json()
    assert [r["length"] for r in json.loads(exported["content"])] == [2000]

    response = client.post(f"{API_BASE}/rails/import", json=exported)
    assert response.json()["imported"] == 1
    assert len(client.get(f"{API_BASE}/rails").json()) == 2

    assert client.post(f"{API_BASE}/rails/import", json={"content": "{}"}).status_code == 400

    assert client.delete(f"{API_BASE}/rails").status_code == 200
    assert client.get(f"{API_BASE}/rails").json() == []


def test_initial_stock(client):
    added = client.post(f"{API_BASE}/rails/initial-stock").json()["added"]

    assert client.get(f"{API_BASE}/rails/stats").json()["total_rails"] == added


def test_plans(client):
    plan = create_plan_with_pieces(client)
    plan_id = plan["id"]

    stored = client.get(f"{API_BASE}/plans/{plan_id}").json()
    assert [p["length"] for p in stored["required_pieces"]] == [500, 250]
    piece_id = stored["required_pieces"][1]["id"]

    piece = client.put(f"{API_BASE}/plans/{plan_id}/pieces/{piece_id}",
                       json={"width": 20, "quantity": 3}).json()
    assert piece["rail_type"]["width"] == 20
    assert piece["rail_type"]["thickness"] == 5
    assert piece["quantity"] == 3
    assert client.put(f"{API_BASE}/plans/{plan_id}/pieces/{piece_id}",
                      json={"length": -1}).status_code == 400

    assert client.delete(f"{API_BASE}/plans/{plan_id}/pieces/{piece_id}").status_code == 200
    assert client.delete(f"{API_BASE}/plans/{plan_id}/pieces/{piece_id}").status_code == 404

    renamed = client.put(f"{API_BASE}/plans/{plan_id}", json={"name": "Шкаф Б"}).json()
    assert renamed["name"] == "Шкаф Б"

    duplicate = client.post(f"{API_BASE}/plans/{plan_id}/duplicate").json()
    assert duplicate["name"] == "Шкаф Б (Copy)"

    content = client.get(f"{API_BASE}/plans/{plan_id}/export").json()["content"]
    imported = client.post(f"{API_BASE}/plans/import", json={"content": content}).json()
    assert imported["name"] == "Шкаф Б"
    assert imported["id"] != plan_id

    assert len(client.get(f"{API_BASE}/plans").json()) == 3
    assert client.delete(f"{API_BASE}/plans/{plan_id}").status_code == 200
    assert client.get(f"{API_BASE}/plans/{plan_id}").status_code == 404


def test_plan_validation(client):
    assert client.post(f"{API_BASE}/plans", json={"name": "  "}).status_code == 400
    assert client.post(f"{API_BASE}/plans/import", json={"content": "[]"}).status_code == 400
    assert client.post(f"{API_BASE}/plans/missing/pieces", json={
        "length": 100, "purpose": "x", "width": 12, "thickness": 5
    }).status_code == 404


def test_example_plan_material_preview(client):
    plan = client.post(f"{API_BASE}/plans/example").json()
    assert plan["name"] == "Distribution Cabinet Type A"

    preview = client.get(f"{API_BASE}/plans/{plan['id']}/material-plan").json()
    assert len(preview["suggestions"]) == 31
    assert preview["new_rails_needed"] > 0
    assert 0 <= preview["optimization_score"] <= 100
    assert preview["shortfalls"] == []
    assert set(preview["by_type"]) == {"30×10mm", "20×5mm", "12×5mm", "10×3mm"}
    assert client.get(f"{API_BASE}/rails").json() == []


def test_work_order_lifecycle(client, led_client):
    full = add_rail(client, 2000)
    offcut = add_rail(client, 300, is_remainder=True)
    plan = create_plan_with_pieces(client)

    response = client.post(f"{API_BASE}/work-orders", json={"plan_id": plan["id"], "notes": "Смена 1"})
    assert response.status_code == 200
    work_order = response.json()
    wo_url = f"{API_BASE}/work-orders/{work_order['id']}"
    assert work_order["status"] == "draft"
    assert work_order["phase"] == "gathering"
    assert work_order["can_advance"] is False

    for step in work_order["gathering_steps"]:
        work_order = client.post(f"{wo_url}/gathering-steps/{step['id']}/confirm").json()
    assert work_order["status"] == "in-progress"
    work_order = client.post(f"{wo_url}/advance").json()
    assert work_order["phase"] == "cutting"

    groups = client.get(f"{wo_url}/rail-groups").json()
    assert [g["source_rail_id"] for g in groups] == [full["id"], offcut["id"]]
    for group in groups:
        work_order = client.post(f"{wo_url}/rail-groups/{group['source_rail_id']}/confirm",
                                 json={"executed_by": "Петров"}).json()
    assert work_order["progress"]["rail_groups_confirmed"] == 2
    assert len(work_order["executed_cuts"]) == 3
    led_client.turn_on_for_length.assert_any_call(1000)

    work_order = client.post(f"{wo_url}/advance").json()
    assert work_order["phase"] == "returning"

    returns = client.get(f"{wo_url}/returns").json()
    assert [(r["remainder_length"], r["led_id"]) for r in returns["remainders"]] == [(1000, 1), (50, None)]
    assert returns["total_waste"] == 0

    work_order = client.post(f"{wo_url}/return", json={"notes": "Готово"}).json()
    assert work_order["return_confirmation"]["confirmed"] is True

    work_order = client.post(f"{wo_url}/advance").json()
    assert work_order["phase"] == "completed"
    assert work_order["status"] == "completed"

    rails = client.get(f"{API_BASE}/rails").json()
    assert sorted(r["length"] for r in rails) == [50, 1000]
    assert all(r["is_remainder"] for r in rails)

    listed = client.get(f"{API_BASE}/work-orders", params={"plan_id": plan["id"]}).json()
    assert [wo["id"] for wo in listed] == [work_order["id"]]


def test_work_order_guards(client):
    add_rail(client, 2000)
    plan = create_plan_with_pieces(client)
    work_order = client.post(f"{API_BASE}/work-orders", json={"plan_id": plan["id"]}).json()
    wo_url = f"{API_BASE}/work-orders/{work_order['id']}"

    unchanged = client.post(f"{wo_url}/advance").json()
    assert unchanged["phase"] == "gathering"

    unchanged = client.post(f"{wo_url}/return", json={}).json()
    assert unchanged["return_confirmation"]["confirmed"] is False

    noted = client.put(f"{wo_url}/notes", json={"notes": "Пауза"}).json()
    assert noted["notes"] == "Пауза"

    cancelled = client.post(f"{wo_url}/cancel").json()
    assert cancelled["status"] == "cancelled"

    assert client.delete(wo_url).status_code == 200
    assert client.get(wo_url).status_code == 404
    assert client.post(f"{wo_url}/advance").status_code == 404
    assert client.post(f"{API_BASE}/work-orders", json={"plan_id": "missing"}).status_code == 404


def test_led_box_lookup(client):
    assert client.get(f"{API_BASE}/led/box/150").json() == {
        "length": 150, "led_id": 0, "description": "Small Remainder Box (10-30cm)"
    }
    assert client.get(f"{API_BASE}/led/box/40").json()["led_id"] is None


def test_null_fields_in_updates_rejected(client):
    rail = add_rail(client, 2000, notes="Поставка")
    plan = create_plan_with_pieces(client)
    piece_id = client.get(f"{API_BASE}/plans/{plan['id']}").json()["required_pieces"][0]["id"]

    assert client.put(f"{API_BASE}/rails/{rail['id']}", json={"length": None}).status_code == 422
    assert client.put(f"{API_BASE}/plans/{plan['id']}/pieces/{piece_id}",
                      json={"quantity": None}).status_code == 422
    assert client.put(f"{API_BASE}/plans/{plan['id']}", json={"name": None}).status_code == 422
    assert client.put(f"{API_BASE}/plans/{plan['id']}", json={"name": " "}).status_code == 400

    cleared = client.put(f"{API_BASE}/rails/{rail['id']}", json={"notes": None}).json()
    assert cleared["notes"] is None
    assert cleared["length"] == 2000
    assert client.get(f"{API_BASE}/plans/{plan['id']}").json()["name"] == "Шкаф А"


def test_rail_types(client):
    rail_types = client.get(f"{API_BASE}/rail-types").json()

    assert rail_types[0] == {"width": 10, "thickness": 3, "label": "10×3mm"}
    assert {"width": 40, "thickness": 10, "label": "40×10mm"} in rail_types


def test_response_shapes(client):
    add_rail(client, 300, is_remainder=True)
    plan = create_plan_with_pieces(client)

    stored = client.get(f"{API_BASE}/plans/{plan['id']}").json()
    assert stored["total_pieces"] == 3
    assert stored["required_pieces"][0]["rail_type"]["label"] == "12×5mm"

    preview = client.get(f"{API_BASE}/plans/{plan['id']}/material-plan").json()
    assert [s["source_kind"] for s in preview["suggestions"]] == ["new-stock", "new-stock", "remainder"]
    assert preview["plan"]["id"] == plan["id"]

    work_order = client.post(f"{API_BASE}/work-orders", json={"plan_id": plan["id"]}).json()
    assert work_order["progress"]["gathering_total"] == len(work_order["gathering_steps"])
    assert work_order["current_rail_group"]["source_kind"] == "new-stock"
    assert work_order["current_rail_group"]["remaining"] == 0
    assert work_order["material_plan_snapshot"]["new_rails_needed"] == preview["new_rails_needed"]
