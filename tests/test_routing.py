from pbm_gui.services.routing import InMemoryRouter, route_satisfied, split_path


def test_split_path():
    assert split_path("/purchase?tab=orders") == ("/purchase", "tab=orders")
    assert split_path("/sales") == ("/sales", "")


def test_route_satisfied_is_prefix_on_pathname():
    assert route_satisfied("/purchase?tab=orders", "/purchase?tab=collections")
    assert route_satisfied("/purchase", "/purchase/orders/7")
    assert not route_satisfied("/purchase", "/sales")


def test_router_history_and_listeners():
    router = InMemoryRouter()
    seen = []
    unsub = router.subscribe(seen.append)
    router.navigate("/sales")
    router.navigate("/sales")
    unsub()
    router.navigate("/contracts")
    assert seen == ["/sales"]
    assert router.history == ["/dashboard", "/sales", "/contracts"]
    assert router.pathname() == "/contracts"
