from datetime import timedelta
from decimal import Decimal

import pytest

from busline.src import exceptions
from busline.src.availability import searchBuses
from busline.src.enums import BookingStatus, ServiceClass

from conftest import TRAVEL_DATE


class TestSearchBuses:
    def test_active_bookings_reduce_available_seats(self, session, factory):
        # Given: a 40 seat bus with 12 ACTIVE bookings on the travel date
        passenger = factory.account("passenger")
        route = factory.route()
        bus = factory.bus(route, seat_count=40)
        for seat in range(1, 13):
            factory.booking(passenger, bus, seat)

        # When
        result = searchBuses(session, "Colombo", "Kandy", TRAVEL_DATE, 1)

        # Then
        assert len(result) == 1
        assert result[0].bus_id == bus.id
        assert result[0].available_seats == 28

    def test_cancelled_completed_and_other_dates_do_not_count(self, session, factory):
        passenger = factory.account("passenger")
        route = factory.route()
        bus = factory.bus(route, seat_count=40)
        factory.booking(passenger, bus, 1, status=BookingStatus.CANCELLED)
        factory.booking(passenger, bus, 2, status=BookingStatus.COMPLETED)
        factory.booking(passenger, bus, 3, travel_date=TRAVEL_DATE + timedelta(days=1))
        factory.booking(passenger, bus, 4)

        result = searchBuses(session, "Colombo", "Kandy", TRAVEL_DATE, 1)

        assert result[0].available_seats == 39

    def test_buses_without_enough_seats_are_excluded(self, session, factory):
        passenger = factory.account("passenger")
        route = factory.route()
        small = factory.bus(route, seat_count=4)
        large = factory.bus(route, seat_count=10)
        for seat in range(1, 3):
            factory.booking(passenger, small, seat)

        result = searchBuses(session, "Colombo", "Kandy", TRAVEL_DATE, 3)

        assert [bus.bus_id for bus in result] == [large.id]

    def test_exact_fit_is_included(self, session, factory):
        route = factory.route()
        bus = factory.bus(route, seat_count=3)

        result = searchBuses(session, "Colombo", "Kandy", TRAVEL_DATE, 3)

        assert [item.bus_id for item in result] == [bus.id]

    def test_service_filter(self, session, factory):
        route = factory.route()
        factory.bus(route, service=ServiceClass.NORMAL)
        luxury = factory.bus(route, service=ServiceClass.LUXURY)

        filtered = searchBuses(
            session, "Colombo", "Kandy", TRAVEL_DATE, 1, ServiceClass.LUXURY
        )
        unfiltered = searchBuses(session, "Colombo", "Kandy", TRAVEL_DATE, 1)

        assert [item.bus_id for item in filtered] == [luxury.id]
        assert len(unfiltered) == 2

    def test_inactive_buses_are_excluded(self, session, factory):
        route = factory.route()
        factory.bus(route, is_active=False)

        assert searchBuses(session, "Colombo", "Kandy", TRAVEL_DATE, 1) == []

    def test_results_are_ordered_by_bus_id_within_a_route(self, session, factory):
        route = factory.route()
        buses = [factory.bus(route) for _ in range(3)]

        result = searchBuses(session, "Colombo", "Kandy", TRAVEL_DATE, 1)

        assert [item.bus_id for item in result] == [bus.id for bus in buses]
        assert all(item.price == Decimal("450") for item in result)

    def test_unknown_route_is_not_found(self, session, factory):
        factory.route("Colombo", "Kandy")

        with pytest.raises(exceptions.UnknownRoute):
            searchBuses(session, "Colombo", "Jaffna", TRAVEL_DATE, 1)

    def test_known_route_without_capacity_returns_empty_list(self, session, factory):
        passenger = factory.account("passenger")
        route = factory.route()
        bus = factory.bus(route, seat_count=2)
        factory.booking(passenger, bus, 1)
        factory.booking(passenger, bus, 2)

        assert searchBuses(session, "Colombo", "Kandy", TRAVEL_DATE, 1) == []

    def test_seat_count_must_be_positive(self, session, factory):
        factory.route()

        with pytest.raises(exceptions.InvalidValue):
            searchBuses(session, "Colombo", "Kandy", TRAVEL_DATE, 0)
