from security import decode_token
from tests.conftest import ADMIN_EMAIL, CUSTOMER_EMAIL, SECRET, login


def test_upsert_is_idempotent(client, store):
    body = {"name": "Dana", "phone": "555-0100"}
    first = client.put(f"/user/{CUSTOMER_EMAIL}", json=body).json()
    stored = store.users.find_one({"email": CUSTOMER_EMAIL}, {"_id": 0})
    second = client.put(f"/user/{CUSTOMER_EMAIL}", json=body).json()

    assert first["result"]["upsertedId"] is not None
    assert second["result"]["matchedCount"] == 1
    assert store.users.count_documents({}) == 1
    assert store.users.find_one({"email": CUSTOMER_EMAIL}, {"_id": 0}) == stored
    assert decode_token(first["token"], SECRET)["email"] == decode_token(second["token"], SECRET)["email"]


def test_upsert_cannot_grant_admin(client, store):
    client.put(f"/user/{CUSTOMER_EMAIL}", json={"name": "Eve", "role": "admin"})
    assert "role" not in store.users.find_one({"email": CUSTOMER_EMAIL})


def test_get_own_user(client, customer):
    res = client.get(f"/user/{CUSTOMER_EMAIL}", headers=customer)
    assert res.status_code == 200
    assert res.json()["name"] == "Test User"


def test_get_other_user_is_forbidden_even_for_admin(client, admin, customer):
    assert client.get(f"/user/{ADMIN_EMAIL}", headers=customer).status_code == 403
    assert client.get(f"/user/{CUSTOMER_EMAIL}", headers=admin).status_code == 403


def test_promote_to_admin(client, admin, customer, store):
    res = client.patch(f"/user/admin/{CUSTOMER_EMAIL}", headers=admin)
    assert res.json()["modifiedCount"] == 1
    assert store.users.find_one({"email": CUSTOMER_EMAIL})["role"] == "admin"
    assert client.get("/users", headers=customer).status_code == 200


def test_check_admin_status(client, admin, customer):
    assert client.get(f"/user/admin/{ADMIN_EMAIL}", headers=customer).json() == {"admin": True}
    assert client.get(f"/user/admin/{CUSTOMER_EMAIL}", headers=customer).json() == {"admin": False}


def test_check_admin_for_unknown_email_is_false(client, customer):
    res = client.get("/user/admin/nobody@example.com", headers=customer)
    assert res.status_code == 200
    assert res.json() == {"admin": False}


def test_token_for_deleted_user_is_not_admin(client, store):
    headers = login(client, "gone@example.com")
    store.users.delete_one({"email": "gone@example.com"})
    assert client.get("/users", headers=headers).status_code == 403


def test_body_email_is_ignored_in_favour_of_path(client, store):
    res = client.put(f"/user/{CUSTOMER_EMAIL}", json={"name": "Kim", "email": "not-an-email"})
    assert res.status_code == 200
    assert store.users.find_one({"name": "Kim"})["email"] == CUSTOMER_EMAIL
