import argparse
from http import HTTPStatus
from requests import post
from minio.error import S3Error

from busline.src import argon2, minio
from busline.src.enums import AccountRole, ServiceClass
from busline.src.constants import BOOKING_QR_CODES
from busline.src.urls import URL_ACCOUNT_TOKEN, URL_BUS, URL_CONDUCTOR_BUS, URL_ROUTE
from busline.src.db import (
    Account,
    ORMbase,
    createEngine,
    createSessionMaker,
)

engine = createEngine()
sessionMaker = createSessionMaker(engine)


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables():
    ORMbase.metadata.drop_all(engine)
    print("* All tables deleted")
    minio.deleteBucket(minio.createClient(), BOOKING_QR_CODES)
    print("* All buckets deleted")


def createTables():
    ORMbase.metadata.create_all(engine)
    print("* All tables created")
    client = minio.createClient()
    try:
        minio.createBucket(client, BOOKING_QR_CODES)
    except S3Error as e:
        if e.code != "BucketAlreadyOwnedByYou":
            raise
    print("* All buckets created")


def initDB():
    session = sessionMaker()
    password = argon2.makePassword("password")
    accounts = [
        Account(
            username="admin",
            password=password,
            full_name="Busline admin",
            role=AccountRole.ADMIN,
        ),
        Account(
            username="owner",
            password=password,
            full_name="Busline bus owner",
            role=AccountRole.BUS_OWNER,
        ),
        Account(
            username="conductor",
            password=password,
            full_name="Busline conductor",
            role=AccountRole.CONDUCTOR,
        ),
        Account(
            username="passenger",
            password=password,
            full_name="Busline passenger",
            role=AccountRole.PASSENGER,
            phone_number="+94771234567",
            email_id="passenger@busline.com",
        ),
    ]
    session.add_all(accounts)
    session.commit()
    print("* Initialization completed")
    session.close()


def POST(URL: str, header: dict = {}, status_code: int = HTTPStatus.CREATED, **kwargs):
    response = post(URL, headers=header, **kwargs)
    assert response.status_code == status_code, response.text
    return response


def testDB():
    # Base URL
    BASE_URL = "http://127.0.0.1:8080/member"

    # Create admin token
    credentials = {"username": "admin", "password": "password"}
    response = POST(BASE_URL + URL_ACCOUNT_TOKEN, data=credentials)
    print("* Created token for admin")
    accessToken = {"Authorization": f"Bearer {response.json()['access_token']}"}

    # Create routes
    routes = []
    for start, end, price, distance in [
        ("Colombo", "Kandy", "450.00", "115.00"),
        ("Colombo", "Galle", "380.00", "126.00"),
        ("Kandy", "Jaffna", "1250.00", "315.00"),
    ]:
        routeData = {
            "start_point": start,
            "end_point": end,
            "price": price,
            "distance": distance,
        }
        response = POST(BASE_URL + URL_ROUTE, header=accessToken, data=routeData)
        routes.append(response.json())
    print("* Created routes")

    # Create buses, owned by the seeded bus owner
    session = sessionMaker()
    owner = session.query(Account).filter(Account.username == "owner").first()
    conductor = session.query(Account).filter(Account.username == "conductor").first()
    session.close()

    buses = []
    for number, route, seatCount, service in [
        ("NB-1234", routes[0], 40, ServiceClass.NORMAL),
        ("NC-4321", routes[0], 30, ServiceClass.LUXURY),
        ("ND-5555", routes[1], 45, ServiceClass.SEMI_LUXURY),
        ("NE-7777", routes[2], 35, ServiceClass.EXPRESS_LUXURY),
    ]:
        busData = {
            "registration_number": number,
            "route_id": route["id"],
            "owner_id": owner.id,
            "seat_count": seatCount,
            "service": int(service),
        }
        response = POST(BASE_URL + URL_BUS, header=accessToken, data=busData)
        buses.append(response.json())
    print("* Created buses")

    # Assign the conductor to the first bus
    assignmentData = {"conductor_id": conductor.id, "bus_id": buses[0]["id"]}
    POST(BASE_URL + URL_CONDUCTOR_BUS, header=accessToken, data=assignmentData)
    print("* Created conductor assignment")


# Setup database
if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    # remove tables
    parser.add_argument("-rm", action="store_true", help="remove tables")
    parser.add_argument("-cr", action="store_true", help="create tables")
    parser.add_argument("-init", action="store_true", help="initialize DB")
    parser.add_argument("-test", action="store_true", help="add test data")
    args = parser.parse_args()

    if args.cr:
        createTables()
    if args.init:
        initDB()
    if args.test:
        testDB()
    if args.rm:
        removeTables()
