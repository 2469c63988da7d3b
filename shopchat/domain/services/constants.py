# Canned replies returned without (or instead of) a model answer.

EMPTY_CATALOG_MESSAGE = "No hay productos disponibles en esta tienda por el momento."
EMPTY_CATALOG_AUDIO = "Por ahora no tenemos productos disponibles."

FALLBACK_MESSAGE = (
    "Lo siento, estoy teniendo problemas para conectarme. "
    "Por favor, intenta de nuevo en un momento."
)
FALLBACK_AUDIO = "Error de conexión."

# Used when the model returns JSON without a usable "message"
PLACEHOLDER_MESSAGE = "No he podido procesar la respuesta."

# Action types the model may return
ALL_ACTIONS = {"none", "show_product", "add_to_cart", "go_to_url"}

# Returned with 429 when a shopper exceeds the chat rate limit
RATE_LIMIT_MESSAGE = "Demasiadas solicitudes, espera un momento antes de intentarlo nuevamente."
