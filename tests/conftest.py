import copy
import os
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from redis.exceptions import ConnectionError as RedisConnectionError

# Settings require these; tests never reach real services
os.environ.setdefault("MONGO_URI_CLIENTS", "mongodb://localhost:27017")
os.environ.setdefault("MONGO_URI_CATALOG", "mongodb://localhost:27017")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")

from shopchat.domain.models.product import Product
from shopchat.domain.repositories.business_config_repo import BusinessConfigClient
from shopchat.domain.repositories.conversation_repo import SessionStore
from shopchat.domain.repositories.product_repo import ProductRepo
from shopchat.domain.services.catalog_svc import CatalogCache, ConfigCache
from shopchat.domain.services.chat_svc import ChatOrchestrator
from shopchat.domain.services.embedding_svc import EmbeddingClient
from shopchat.domain.services.enrichment_svc import ResponseEnricher
from shopchat.domain.services.similarity_index import SimilarityIndex
from shopchat.utils.cache import TenantCache

DOMAIN = "tienda.pe"
OTHER_DOMAIN = "otra.pe"

# ----------------------------
# In-memory motor stand-ins
# ----------------------------

def _get_path(doc, path):
    node = doc
    for part in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node

def _matches(doc, filt):
    for key, cond in filt.items():
        value = _get_path(doc, key)
        if isinstance(cond, dict):
            if "$in" in cond and value not in cond["$in"]:
                return False
            if "$ne" in cond and value == cond["$ne"]:
                return False
        elif value != cond:
            return False
    return True

class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for d in self._docs:
            yield d

class FakeCollection:
    """Just enough of AsyncIOMotorCollection for the repositories."""

    def __init__(self, docs=None):
        self.docs = [copy.deepcopy(d) for d in docs or []]
        self.indexes = []

    def find(self, filt, projection=None):
        return FakeCursor([copy.deepcopy(d) for d in self.docs if _matches(d, filt)])

    async def find_one(self, filt, projection=None):
        for d in self.docs:
            if _matches(d, filt):
                return copy.deepcopy(d)
        return None

    async def update_one(self, filt, update, upsert=False):
        target = next((d for d in self.docs if _matches(d, filt)), None)
        if target is None:
            if not upsert:
                return SimpleNamespace(matched_count=0, upserted_id=None)
            target = {k: v for k, v in filt.items() if not isinstance(v, dict)}
            target.update(copy.deepcopy(update.get("$setOnInsert", {})))
            self.docs.append(target)
        target.update(copy.deepcopy(update.get("$set", {})))
        return SimpleNamespace(matched_count=1, upserted_id=None)

    async def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))
        return kwargs.get("name")

class FakeDB(dict):
    def __missing__(self, name):
        col = self[name] = FakeCollection()
        return col


class FakeRedis:
    """Just the commands RedisLock uses."""
    def __init__(self):
        self.data = {}

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.data:
            return None
        self.data[key] = value
        return True

    async def get(self, key):
        return self.data.get(key)

    async def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

class BrokenRedis:
    """Redis that went away after startup."""
    async def _down(self, *args, **kwargs):
        raise RedisConnectionError("Connection refused")

    set = get = delete = mget = _down


# ----------------------------
# Deterministic embeddings
# ----------------------------

VOCAB = ["audífonos", "cable", "mochila", "ruido", "carga", "laptop"]

def keyword_vector(text: str) -> list:
    low = text.lower()
    return [float(low.count(word)) for word in VOCAB]

def _embeddings_response(model, input):
    texts = [input] if isinstance(input, str) else input
    return SimpleNamespace(data=[SimpleNamespace(embedding=keyword_vector(t)) for t in texts])

@pytest.fixture
def fake_openai():
    client = MagicMock()
    client.embeddings.create = AsyncMock(side_effect=_embeddings_response)
    return client

# ----------------------------
# Catalog data
# ----------------------------

P_AUDIO = ObjectId("64b000000000000000000001")
P_CABLE = ObjectId("64b000000000000000000002")
P_BAG = ObjectId("64b000000000000000000003")
P_FOREIGN = ObjectId("64b000000000000000000004")
P_TRASHED = ObjectId("64b000000000000000000005")

def product_docs():
    return [
        {
            "_id": P_AUDIO, "domain": DOMAIN, "title": "Audífonos Estéreo XZ",
            "description_short": "Audífonos con cancelación de ruido",
            "price": {"regular": 199, "sale": 149}, "slug": "audifonos-xz",
            "image_default": ["https://cdn.tienda.pe/a1.jpg", "https://cdn.tienda.pe/a2.jpg"],
            "is_available": True, "stock": 4,
        },
        {
            "_id": P_CABLE, "domain": DOMAIN, "title": "Cable USB-C",
            "description_short": "Cable de carga rápida",
            "price": {"regular": 25}, "slug": "cable-usb-c",
            "image_default": ["https://cdn.tienda.pe/c1.jpg"], "is_available": True,
        },
        {
            "_id": P_BAG, "domain": DOMAIN, "title": "Mochila Urbana",
            "description_short": "Mochila impermeable para laptop",
            "price": {"regular": 120, "sale": None}, "slug": "mochila-urbana",
            "image_default": [], "is_available": True,
        },
        {
            "_id": P_FOREIGN, "domain": OTHER_DOMAIN, "title": "Audífonos Pro",
            "description_short": "Audífonos de estudio", "price": {"regular": 500}, "slug": "pro",
        },
        {
            "_id": P_TRASHED, "domain": DOMAIN, "title": "Audífonos Viejos",
            "description_short": "Descontinuados", "price": {"regular": 10}, "slug": "viejos",
            "is_trash": {"status": True},
        },
    ]

@pytest.fixture
def products():
    return [Product.model_validate(d) for d in product_docs()[:3]]

@pytest.fixture
def catalog_db():
    return FakeDB(products=FakeCollection(product_docs()))

@pytest.fixture
def clients_db():
    return FakeDB()

# ----------------------------
# Pipeline wiring
# ----------------------------

@pytest.fixture
def completion():
    client = MagicMock()
    client.complete = AsyncMock(
        return_value='{"message": "Hola", "audio_description": "Hola", "action": {"type": "none"}}'
    )
    return client

@pytest.fixture
def config_client():
    client = MagicMock(spec=BusinessConfigClient)
    client.fetch = AsyncMock(return_value={"horario": "9am - 6pm", "envio": "Gratis desde S/100"})
    return client

@pytest.fixture
def make_orchestrator(catalog_db, clients_db, fake_openai, completion, config_client):
    def _make(max_history: int = 10, redis=None, lock_ttl: int = 60) -> ChatOrchestrator:
        repo = ProductRepo(catalog_db)
        catalog = CatalogCache(repo, TenantCache("catalog"))
        return ChatOrchestrator(
            catalog=catalog,
            config=ConfigCache(config_client, TenantCache("business_config")),
            index=SimilarityIndex(EmbeddingClient(fake_openai, "text-embedding-3-small"), TenantCache("index")),
            products=repo,
            sessions=SessionStore(clients_db, max_history=max_history, redis=redis, lock_ttl=lock_ttl),
            completion=completion,
            enricher=ResponseEnricher(catalog),
            retrieval_k=2,
        )
    return _make
