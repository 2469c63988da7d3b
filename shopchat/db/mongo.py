# shopchat/db/mongo.py
from typing import Dict, Optional
import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from shopchat.core.config import get_settings
import certifi

logger = logging.getLogger(__name__)

# Two clusters: "clients" (conversations) and "catalog" (products, read-only)
CLIENTS = "clients"
CATALOG = "catalog"

_clients: Dict[str, AsyncIOMotorClient] = {}
_dbs: Dict[str, AsyncIOMotorDatabase] = {}


def get_db(name: str) -> AsyncIOMotorDatabase:
    assert name in _dbs, f"Mongo '{name}' DB not initialized"
    return _dbs[name]


def get_clients_db() -> AsyncIOMotorDatabase:
    return get_db(CLIENTS)


def get_catalog_db() -> AsyncIOMotorDatabase:
    return get_db(CATALOG)


def _new_client(uri: str) -> AsyncIOMotorClient:
    settings = get_settings()
    tls_opts = {"tls": True, "tlsCAFile": certifi.where()} if settings.MONGO_TLS else {}
    return AsyncIOMotorClient(
        uri,
        uuidRepresentation="standard",
        serverSelectionTimeoutMS=6000,
        connectTimeoutMS=6000,
        **tls_opts,
    )


async def _connect_one(name: str, uri: str, db_name: str) -> None:
    """
    Keep a lazy client even when the initial ping fails, so requests can
    succeed once the cluster becomes reachable.
    """
    client = _new_client(uri)
    _clients[name] = client
    _dbs[name] = client[db_name]
    try:
        await client.admin.command("ping")
        logger.info(f"Mongo '{name}' connected (ping ok)")
    except Exception as e:
        logger.warning(f"Mongo '{name}' ping at startup failed, will connect lazily: {e}")


async def connect(clients_uri: Optional[str] = None, catalog_uri: Optional[str] = None):
    settings = get_settings()
    await _connect_one(CLIENTS, clients_uri or settings.MONGO_URI_CLIENTS, settings.MONGO_DB_CLIENTS)
    await _connect_one(CATALOG, catalog_uri or settings.MONGO_URI_CATALOG, settings.MONGO_DB_CATALOG)


async def disconnect():
    for client in _clients.values():
        client.close()
    _clients.clear()
    _dbs.clear()
