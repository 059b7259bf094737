from conftest import auth_header, make_product, make_user


def review_payload(product_id, rating=5, comment="Really solid, would buy again"):
    return {"product": str(product_id), "rating": rating, "title": "Nice", "comment": comment}


def product_doc(db, product_id):
    return db["product"].find_one({"_id": product_id})


def test_create_review_is_pending(client, db, category, customer_headers):
    product_id = make_product(db, category)
    res = client.post("/api/reviews", json=review_payload(product_id), headers=customer_headers)
    assert res.status_code == 201
    body = res.json()
    assert body["message"] == "Review submitted successfully and pending approval"
    assert body["data"]["is_approved"] is False
    assert body["data"]["user"]["first_name"] == "Test"
    assert product_doc(db, product_id)["review_count"] == 0


def test_one_review_per_product(client, db, category, customer_headers):
    product_id = make_product(db, category)
    client.post("/api/reviews", json=review_payload(product_id), headers=customer_headers)
    res = client.post("/api/reviews", json=review_payload(product_id, rating=1), headers=customer_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "You have already reviewed this product"


def test_review_validation(client, db, category, customer_headers):
    product_id = make_product(db, category)
    assert client.post("/api/reviews", json=review_payload(product_id, rating=6),
                       headers=customer_headers).status_code == 400
    assert client.post("/api/reviews", json=review_payload(product_id, comment="short"),
                       headers=customer_headers).status_code == 400
    res = client.post("/api/reviews", json=review_payload("nope"), headers=customer_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Valid product ID is required"


def test_review_for_missing_product(client, customer_headers):
    res = client.post("/api/reviews", json=review_payload("64b000000000000000000000"), headers=customer_headers)
    assert res.status_code == 404


def test_approval_recomputes_rating(client, db, category, admin_headers):
    product_id = make_product(db, category)
    review_ids = []
    for index, rating in enumerate((5, 4, 4, 4)):
        headers = auth_header(make_user(db, email=f"reviewer{index}@example.com"))
        res = client.post("/api/reviews", json=review_payload(product_id, rating=rating), headers=headers)
        review_ids.append(res.json()["data"]["id"])

    for review_id in review_ids:
        res = client.put(f"/api/reviews/{review_id}/approve", headers=admin_headers)
        assert res.status_code == 200

    product = product_doc(db, product_id)
    assert product["average_rating"] == 4.3
    assert product["review_count"] == 4

    public = client.get(f"/api/reviews/product/{product_id}").json()
    assert public["pagination"]["total"] == 4


def test_delete_review_recomputes(client, db, category, customer_headers, admin_headers):
    product_id = make_product(db, category)
    review_id = client.post("/api/reviews", json=review_payload(product_id, rating=2),
                            headers=customer_headers).json()["data"]["id"]
    client.put(f"/api/reviews/{review_id}/approve", headers=admin_headers)
    assert product_doc(db, product_id)["average_rating"] == 2

    res = client.delete(f"/api/reviews/{review_id}", headers=customer_headers)
    assert res.status_code == 200
    product = product_doc(db, product_id)
    assert product["average_rating"] == 0
    assert product["review_count"] == 0


def test_only_owner_updates_review(client, db, category, customer_headers, admin_headers):
    product_id = make_product(db, category)
    review_id = client.post("/api/reviews", json=review_payload(product_id, rating=3),
                            headers=customer_headers).json()["data"]["id"]
    client.put(f"/api/reviews/{review_id}/approve", headers=admin_headers)

    stranger = auth_header(make_user(db, email="stranger@example.com"))
    assert client.put(f"/api/reviews/{review_id}", json={"rating": 1}, headers=stranger).status_code == 403
    assert client.delete(f"/api/reviews/{review_id}", headers=stranger).status_code == 403

    res = client.put(f"/api/reviews/{review_id}", json={"rating": 5}, headers=customer_headers)
    assert res.status_code == 200
    assert product_doc(db, product_id)["average_rating"] == 5


def test_admin_lists_pending_reviews(client, db, category, customer_headers, admin_headers):
    product_id = make_product(db, category)
    client.post("/api/reviews", json=review_payload(product_id), headers=customer_headers)

    res = client.get("/api/reviews", params={"is_approved": "false"}, headers=admin_headers)
    data = res.json()["data"]
    assert len(data) == 1
    assert data[0]["product"]["name"] == "Widget"
    assert data[0]["user"]["email"] == "customer@example.com"

    mine = client.get("/api/reviews/my-reviews", headers=customer_headers).json()["data"]
    assert len(mine) == 1
