from busline.src import directory


class TestDirectory:
    def test_route_points_are_distinct_and_sorted(self, session, factory):
        factory.route("Kandy", "Jaffna")
        factory.route("Colombo", "Kandy")
        factory.route("Colombo", "Galle")

        assert directory.listStartPoints(session) == ["Colombo", "Kandy"]
        assert directory.listEndPoints(session) == ["Galle", "Jaffna", "Kandy"]

    def test_route_points_empty_directory(self, session):
        assert directory.listStartPoints(session) == []
        assert directory.listEndPoints(session) == []

    def test_find_buses_by_route_only_returns_active_buses_on_that_route(
        self, session, factory
    ):
        # Given: two routes with active and inactive buses
        kandy = factory.route("Colombo", "Kandy")
        galle = factory.route("Colombo", "Galle")
        first = factory.bus(kandy)
        factory.bus(kandy, is_active=False)
        second = factory.bus(kandy)
        factory.bus(galle)

        # When
        result = directory.findBusesByRoute(session, "Colombo", "Kandy")

        # Then
        assert [bus.id for bus, route in result] == [first.id, second.id]
        assert all(route.id == kandy.id for bus, route in result)

    def test_find_buses_by_route_requires_exact_points(self, session, factory):
        route = factory.route("Colombo", "Kandy")
        factory.bus(route)

        assert directory.findBusesByRoute(session, "Kandy", "Colombo") == []
        assert directory.findBusesByRoute(session, "colombo", "Kandy") == []
