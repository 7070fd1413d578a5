"""
API Endpoint URL Constants

This module defines the URL paths used throughout the application
for accessing different resources in the booking system.

These URLs are relative paths and are prefixed by the mount point of
the serving application ("/public" or "/member").
"""

# -------------------------------
# Authentication & Tokens
# -------------------------------
URL_ACCOUNT_TOKEN = "/account/token"

# -------------------------------
# Directory
# -------------------------------
URL_ROUTE = "/route"
URL_ROUTE_START_POINT = "/route/start_point"
URL_ROUTE_END_POINT = "/route/end_point"
URL_BUS = "/route/bus"
URL_BUS_SEARCH = "/route/bus/search"
URL_CONDUCTOR_BUS = "/route/bus/conductor"

# -------------------------------
# Booking
# -------------------------------
URL_BOOKING = "/booking"
URL_BOOKING_SEAT = "/booking/seat"
URL_BOOKING_DETAIL = "/booking/detail"
URL_BOOKING_ARTIFACT = "/booking/artifact"
