from behave import given, when, then  # type: ignore

from cartqueue.infrastructure.models import Product


def user_headers(user_id):
    return {"X-User-ID": str(user_id)}


@given(u'a product {product_id:d} with stock {stock:d}')
def step_product_with_stock(context, product_id, stock):
    with context.database.session_factory() as session:
        session.add(Product(id=product_id, name=f"Product {product_id}", price=10.0, stock=stock))
        session.commit()


@when(u'user {user_id:d} adds {quantity:d} of product {product_id:d} to the cart')
def step_add_to_cart(context, user_id, quantity, product_id):
    context.response = context.client.post(
        "/api/v1/cart",
        json={"product_id": product_id, "quantity": quantity},
        headers=user_headers(user_id),
    )


@when(u'the cart worker processes the queue')
def step_worker_processes(context):
    for _ in context.worker.consume(limit=1, timeout=2):
        pass


@then(u'the response status is {status:d}')
def step_check_status(context, status):
    assert context.response.status_code == status, context.response.text


@then(u'the response message is "{message}"')
def step_check_message(context, message):
    assert context.response.json()["message"] == message


@then(u'the error code is "{error_code}"')
def step_check_error_code(context, error_code):
    assert context.response.json()["error_code"] == error_code


@then(u'the cart queue is empty')
def step_queue_empty(context):
    with context.connection.channel() as channel:
        assert context.topology.queue.bind(channel).get() is None


@then(u'the cart of user {user_id:d} contains {quantity:d} of product {product_id:d}')
def step_cart_contains(context, user_id, quantity, product_id):
    response = context.client.get("/api/v1/cart", headers=user_headers(user_id))
    assert response.status_code == 200
    items = response.json()["items"]
    assert [(i["product_id"], i["quantity"]) for i in items] == [(product_id, quantity)]


@then(u'the cart of user {user_id:d} is empty')
def step_cart_empty(context, user_id):
    response = context.client.get("/api/v1/cart", headers=user_headers(user_id))
    assert response.status_code == 200
    assert response.json()["items"] == []
