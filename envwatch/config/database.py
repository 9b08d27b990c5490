from motor.motor_asyncio import AsyncIOMotorClient

from envwatch.config.settings import Settings


def create_client(settings: Settings) -> AsyncIOMotorClient:
    # Pool sizing for a single small API instance
    return AsyncIOMotorClient(
        settings.mongodb_uri,
        maxPoolSize=10,
        minPoolSize=1,
        connectTimeoutMS=5000,
        tz_aware=True,
    )


def get_database(client: AsyncIOMotorClient, settings: Settings):
    return client[settings.mongodb_db]


def reports_collection(db):
    return db.get_collection("reports")


def admins_collection(db):
    return db.get_collection("admins")
