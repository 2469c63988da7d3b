from typing import Any, Dict, Sequence
import json
import re

from shopchat.domain.models.product import Product
from shopchat.domain.services.constants import ALL_ACTIONS

_NEWLINES_RE = re.compile(r"\r\n|\r|\n")

PRICE_UNAVAILABLE = "No disponible"

# =============================================================================
#                               SANITIZING
# =============================================================================

def sanitize(text: Any) -> str:
    """
    Make a value safe to embed in the prompt: newlines become spaces and
    double quotes become single quotes, so quoted fields and the JSON reply
    contract cannot be broken by catalog data.
    """
    if text is None:
        return ""
    return _NEWLINES_RE.sub(" ", str(text)).replace('"', "'")

def _prune_empty(obj):
    """
    Recursively remove None, blank strings and empty lists/dicts.
    Keep: 0, False, and non-empty values. Strings are sanitized on the way.
    """
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            pv = _prune_empty(v)
            if pv is None or (isinstance(pv, (list, dict)) and len(pv) == 0):
                continue
            out[sanitize(k)] = pv
        return out
    if isinstance(obj, list):
        out = []
        for v in obj:
            pv = _prune_empty(v)
            if pv is None or (isinstance(pv, (list, dict)) and len(pv) == 0):
                continue
            out.append(pv)
        return out
    if isinstance(obj, str):
        s = sanitize(obj).strip()
        return s if s != "" else None
    return obj

def serialize_config(config: Dict[str, Any]) -> str:
    """Compact JSON of the business configuration with empty fields pruned."""
    return json.dumps(_prune_empty(config or {}), ensure_ascii=False, separators=(",", ":"), sort_keys=True)

# =============================================================================
#                               PRODUCT LINES
# =============================================================================

def _format_price(value) -> str:
    if value is None:
        return PRICE_UNAVAILABLE
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"

def describe_product(product: Product, domain: str, currency: str = "S/") -> str:
    price = product.display_price
    price_txt = f"{currency}{_format_price(price)}" if price else PRICE_UNAVAILABLE
    return (
        f'ID: {product.id}, Nombre: "{sanitize(product.title)}", Precio: {price_txt}, '
        f"Descripción: {sanitize(product.description_short)}, URL: {product.url_for(domain)}"
    )

def describe_products(products: Sequence[Product], domain: str, currency: str = "S/") -> str:
    """Ranked products, one line each, in the given (relevance) order."""
    return " | ".join(describe_product(p, domain, currency) for p in products)

# =============================================================================
#                               SYSTEM PROMPT
# =============================================================================

_REPLY_FORMAT = (
    "{\n"
    '  "message": "Texto para el chat visual.",\n'
    '  "audio_description": "Frase conversacional para la voz.",\n'
    '  "action": {\n'
    '    "type": "' + " | ".join(sorted(ALL_ACTIONS)) + '",\n'
    '    "productId": "ID_DEL_PRODUCTO_O_NULL",\n'
    '    "quantity": CANTIDAD_NUMERICA_O_NULL,\n'
    '    "url": "URL_COMPLETA_DEL_PRODUCTO_O_NULL"\n'
    "  }\n"
    "}"
)

def system_prompt(domain: str, product_descriptions: str, business_config: Dict[str, Any]) -> str:
    """
    Grounding prompt for one tenant session. Deterministic for equal inputs.
    The confirm-before-act and no-invention rules are instructions to the
    model only; nothing server-side enforces them.
    """
    store = sanitize(domain)
    return (
        f'Eres un asistente de ventas experto, amable y consultivo para la tienda "{store}".\n\n'
        "### Regla de Oro: Preguntar Antes de Actuar\n"
        "NUNCA ejecutes una acción final (go_to_url, add_to_cart) en tu primera respuesta sobre un producto. "
        "Primero informa y luego PREGUNTA si el usuario desea continuar. Solo cuando lo confirme "
        "explícitamente, ejecuta la acción en tu siguiente respuesta.\n\n"
        "### Regla de Fidelidad al Catálogo\n"
        "Habla SOLO de los productos listados en tu contexto. No inventes productos, precios, "
        "características ni URLs. Si algo no está en la lista, dilo con amabilidad.\n\n"
        "## Tus Canales de Comunicación\n"
        "1. 'message' (chat visual): texto para ser leído en pantalla.\n"
        "2. 'audio_description' (voz): guion conversacional para ser escuchado; nunca menciona "
        "links, botones ni otros elementos de la interfaz.\n\n"
        "## Formato de Respuesta Obligatorio (JSON)\n"
        f"{_REPLY_FORMAT}\n\n"
        "### Preguntas Generales sobre el Catálogo\n"
        "Si el usuario pregunta algo muy general (\"¿qué productos tienes?\"), no enumeres productos: "
        "invítalo a explorar las categorías de la tienda o a contarte qué busca. action.type será \"none\".\n\n"
        "## Flujo para Productos Específicos\n"
        "PASO 1 - El usuario pregunta: da la información y propón el siguiente paso. "
        "action.type SIEMPRE es \"none\" o \"show_product\".\n"
        "PASO 2 - El usuario confirma (\"sí\", \"agrégalo\", \"llévame\"): confirma lo que haces y "
        "devuelve action.type \"go_to_url\" o \"add_to_cart\" con el productId y la url del producto.\n\n"
        "## Configuración del Negocio\n"
        f"{serialize_config(business_config)}\n\n"
        "## Tu Contexto de Productos\n"
        "Usa esta lista, ordenada por relevancia, como tu única fuente de información:\n"
        f"{product_descriptions}"
    )
