"""
Full request flows against the real app, a throwaway SQLite database and
a stub factory.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import StubFactory
from pizza_service.main import app
from pizza_service.services.factory import FactoryResult, get_factory_service


@pytest.fixture
def live():
    with TestClient(app) as client:
        yield client


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def login(client: TestClient, email: str, password: str) -> str:
    response = client.put("/api/auth", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["token"]


def register(client: TestClient, name: str, email: str, password: str) -> dict:
    response = client.post("/api/auth", json={"name": name, "email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def setup_shop(client: TestClient, admin_token: str) -> tuple[int, int, list[dict]]:
    client.put(
        "/api/order/menu",
        json={"title": "Veggie", "description": "A garden of delight", "image": "pizza1.png", "price": 0.0038},
        headers=auth(admin_token),
    )
    menu = client.put(
        "/api/order/menu",
        json={"title": "Pepperoni", "description": "Spicy treat", "image": "pizza2.png", "price": 0.0042},
        headers=auth(admin_token),
    ).json()

    franchise = client.post(
        "/api/franchise",
        json={"name": "pizzaPocket", "admins": [{"email": "a@jwt.com"}]},
        headers=auth(admin_token),
    ).json()
    store = client.post(
        f"/api/franchise/{franchise['id']}/store",
        json={"name": "SLC"},
        headers=auth(admin_token),
    ).json()
    return franchise["id"], store["id"], menu


def test_health_after_startup(live):
    body = live.get("/health").json()

    assert body["database"] == "healthy"
    assert body["status"] == "operational"


def test_diner_orders_pizza(live):
    factory = StubFactory(FactoryResult(success=True, report_url="http://report", jwt="factory-jwt"))
    app.dependency_overrides[get_factory_service] = lambda: factory

    admin_token = login(live, "a@jwt.com", "admin")
    franchise_id, store_id, menu = setup_shop(live, admin_token)
    assert [m["title"] for m in menu] == ["Veggie", "Pepperoni"]

    diner = register(live, "pizza diner", "d@jwt.com", "diner")
    assert diner["user"]["roles"] == [{"role": "diner"}]

    response = live.post(
        "/api/order",
        json={
            "franchiseId": franchise_id,
            "storeId": store_id,
            "items": [
                {"menuId": menu[0]["id"], "description": "Veggie", "price": 0.05},
                {"menuId": menu[1]["id"], "description": "Pepperoni", "price": 0.07},
            ],
        },
        headers=auth(diner["token"]),
    )
    assert response.status_code == 200, response.text
    placed = response.json()
    assert placed["jwt"] == "factory-jwt"
    assert placed["followLinkToEndChaos"] == "http://report"
    assert factory.calls[0]["diner"]["email"] == "d@jwt.com"

    history = live.get("/api/order", headers=auth(diner["token"])).json()
    assert history["dinerId"] == diner["user"]["id"]
    assert [o["id"] for o in history["orders"]] == [placed["order"]["id"]]
    assert len(history["orders"][0]["items"]) == 2

    admin_id = live.get("/api/user/me", headers=auth(admin_token)).json()["id"]
    owned = live.get(f"/api/franchise/{admin_id}", headers=auth(admin_token)).json()
    assert [f["id"] for f in owned] == [franchise_id]

    admin_view = live.get("/api/franchise", headers=auth(admin_token)).json()
    store = admin_view["franchises"][0]["stores"][0]
    assert store["totalRevenue"] == pytest.approx(0.12)

    diner_view = live.get("/api/franchise", headers=auth(diner["token"])).json()
    assert diner_view == {"franchises": [{"id": franchise_id, "name": "pizzaPocket"}], "more": False}


def test_factory_failure_keeps_the_order(live):
    factory = StubFactory(FactoryResult(success=False, report_url="http://chaos"))
    app.dependency_overrides[get_factory_service] = lambda: factory

    admin_token = login(live, "a@jwt.com", "admin")
    franchise_id, store_id, menu = setup_shop(live, admin_token)
    diner = register(live, "pizza diner", "d@jwt.com", "diner")

    response = live.post(
        "/api/order",
        json={
            "franchiseId": franchise_id,
            "storeId": store_id,
            "items": [{"menuId": menu[0]["id"], "description": "Veggie", "price": 0.05}],
        },
        headers=auth(diner["token"]),
    )

    assert response.status_code == 500
    assert response.json()["followLinkToEndChaos"] == "http://chaos"
    assert len(live.get("/api/order", headers=auth(diner["token"])).json()["orders"]) == 1


def test_diner_cannot_manage_franchises(live):
    diner = register(live, "pizza diner", "d@jwt.com", "diner")

    response = live.post("/api/franchise", json={"name": "mine"}, headers=auth(diner["token"]))

    assert response.status_code == 403
    assert response.json() == {"message": "unable to create a franchise"}


def test_logout_revokes_token(live):
    diner = register(live, "pizza diner", "d@jwt.com", "diner")
    token = diner["token"]

    assert live.get("/api/user/me", headers=auth(token)).status_code == 200
    assert live.delete("/api/auth", headers=auth(token)).json() == {"message": "logout successful"}
    assert live.get("/api/user/me", headers=auth(token)).status_code == 401


def test_profile_update_issues_new_token(live):
    diner = register(live, "pizza diner", "d@jwt.com", "diner")

    response = live.put(
        f"/api/user/{diner['user']['id']}",
        json={"name": "Renamed", "password": "new-password"},
        headers=auth(diner["token"]),
    )

    assert response.status_code == 200
    assert response.json()["user"]["name"] == "Renamed"
    me = live.get("/api/user/me", headers=auth(response.json()["token"])).json()
    assert me["name"] == "Renamed"
    login(live, "d@jwt.com", "new-password")
