from unittest.mock import AsyncMock, MagicMock

import openai
import httpx
import pytest

from conftest import DOMAIN, P_AUDIO, P_BAG, P_CABLE
from shopchat.domain.errors import EmbeddingCallError
from shopchat.domain.models.product import Product
from shopchat.domain.services.embedding_svc import EmbeddingClient, product_text
from shopchat.domain.services.similarity_index import SimilarityIndex
from shopchat.utils.cache import TenantCache


def _index(client, batch_size=64):
    return SimilarityIndex(EmbeddingClient(client, "text-embedding-3-small", batch_size=batch_size), TenantCache("index"))


def test_product_text_is_name_and_short_description(products):
    assert product_text(products[1]) == "Nombre: Cable USB-C, Descripción: Cable de carga rápida"

@pytest.mark.asyncio
async def test_empty_catalog_makes_no_embedding_call(fake_openai):
    index = _index(fake_openai)

    assert await index.search(DOMAIN, [], "audífonos") == []
    built = await index.build_or_get(DOMAIN, [])
    assert await index.query(built, "audífonos") == []
    fake_openai.embeddings.create.assert_not_awaited()

@pytest.mark.asyncio
async def test_query_returns_nearest_first(fake_openai, products):
    index = _index(fake_openai)
    built = await index.build_or_get(DOMAIN, products)

    assert (await index.query(built, "busco una mochila para mi laptop", k=1)) == [str(P_BAG)]
    assert (await index.query(built, "audífonos que aíslen el ruido", k=1)) == [str(P_AUDIO)]

@pytest.mark.asyncio
async def test_query_bounds_k_and_ties_keep_insertion_order(fake_openai, products):
    index = _index(fake_openai)
    built = await index.build_or_get(DOMAIN, products)

    # cable and mochila both score 0 for this query
    ids = await index.query(built, "audífonos con ruido", k=5)
    assert ids == [str(P_AUDIO), str(P_CABLE), str(P_BAG)]
    assert len(await index.query(built, "audífonos", k=2)) == 2
    assert set(ids) <= {p.id for p in products}

@pytest.mark.asyncio
async def test_repeated_queries_are_stable(fake_openai, products):
    index = _index(fake_openai)
    built = await index.build_or_get(DOMAIN, products)

    first = await index.query(built, "cable de carga", k=3)
    for _ in range(3):
        assert await index.query(built, "cable de carga", k=3) == first

@pytest.mark.asyncio
async def test_index_is_built_once_per_tenant(fake_openai, products):
    index = _index(fake_openai)

    first = await index.build_or_get(DOMAIN, products)
    second = await index.build_or_get(DOMAIN, products)

    assert first is second
    assert fake_openai.embeddings.create.await_count == 1
    assert len(first) == 3 and first.dimension == 6

@pytest.mark.asyncio
async def test_index_rebuilds_when_catalog_changes(fake_openai, products):
    index = _index(fake_openai)
    first = await index.build_or_get(DOMAIN, products)

    changed = products[:2] + [products[2].model_copy(update={"description_short": "Mochila con cable"})]
    second = await index.build_or_get(DOMAIN, changed)

    assert second is not first
    assert second.fingerprint != first.fingerprint

@pytest.mark.asyncio
async def test_embedding_batches_respect_batch_size(fake_openai, products):
    index = _index(fake_openai, batch_size=2)
    await index.build_or_get(DOMAIN, products)

    sizes = [len(call.kwargs["input"]) for call in fake_openai.embeddings.create.await_args_list]
    assert sizes == [2, 1]

@pytest.mark.asyncio
async def test_embedding_failure_is_typed(products):
    client = MagicMock()
    client.embeddings.create = AsyncMock(
        side_effect=openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/embeddings"))
    )
    with pytest.raises(EmbeddingCallError):
        await _index(client).build_or_get(DOMAIN, products)

@pytest.mark.asyncio
async def test_embed_many_uses_vector_cache(fake_openai):
    cache = MagicMock()
    cache.key = MagicMock(side_effect=lambda text, model: f"k:{text}")
    cache.get_many = AsyncMock(return_value=[[1.0, 0.0], None])
    cache.set = AsyncMock()
    embedder = EmbeddingClient(fake_openai, "m", cache=cache)

    vectors = await embedder.embed_many(["cached", "cable nuevo"])

    assert vectors[0] == [1.0, 0.0]
    fake_openai.embeddings.create.assert_awaited_once_with(model="m", input=["cable nuevo"])
    cache.set.assert_awaited_once()
    assert cache.set.await_args.args[0] == "k:cable nuevo"
