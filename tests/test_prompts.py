import json

from conftest import DOMAIN, P_AUDIO
from shopchat.domain.models.product import Product
from shopchat.domain.services.prompts import (
    describe_product,
    describe_products,
    sanitize,
    serialize_config,
    system_prompt,
)


def test_sanitize_collapses_newlines_and_double_quotes():
    assert sanitize('Línea 1\nLínea "2"\r\nLínea 3\r') == "Línea 1 Línea '2' Línea 3 "
    assert sanitize(None) == ""

def test_describe_product_uses_sale_price_and_store_url(products):
    line = describe_product(products[0], DOMAIN)
    assert line == (
        f'ID: {P_AUDIO}, Nombre: "Audífonos Estéreo XZ", Precio: S/149, '
        "Descripción: Audífonos con cancelación de ruido, URL: https://tienda.pe/product/audifonos-xz"
    )

def test_describe_product_without_price():
    product = Product.model_validate({"_id": "x1", "domain": DOMAIN, "title": 'Taza "Feliz"\nGrande', "slug": "taza"})
    line = describe_product(product, DOMAIN, currency="$")
    assert "Precio: No disponible" in line
    assert 'Nombre: "Taza \'Feliz\' Grande"' in line

def test_describe_products_keeps_given_order(products):
    ranked = [products[2], products[0]]
    text = describe_products(ranked, DOMAIN)
    assert text.index("Mochila Urbana") < text.index("Audífonos Estéreo XZ")
    assert text.count(" | ") == 1

def test_serialize_config_prunes_and_sanitizes():
    raw = {"nombre": 'La "Tienda"', "horario": "9am\n6pm", "vacío": "", "redes": [], "envio": {"gratis": 0}}
    data = json.loads(serialize_config(raw))
    assert data == {"nombre": "La 'Tienda'", "horario": "9am 6pm", "envio": {"gratis": 0}}
    assert serialize_config(None) == "{}"

def test_system_prompt_is_deterministic_and_grounded(products):
    descriptions = describe_products(products, DOMAIN)
    config = {"horario": "9am - 6pm"}

    prompt = system_prompt(DOMAIN, descriptions, config)

    assert prompt == system_prompt(DOMAIN, descriptions, dict(config))
    assert f'la tienda "{DOMAIN}"' in prompt
    assert prompt.endswith(descriptions)
    assert serialize_config(config) in prompt
    assert "add_to_cart" in prompt and "go_to_url" in prompt
    assert "No inventes productos" in prompt
