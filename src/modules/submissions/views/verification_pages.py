from typing import Optional

from jinja2 import DictLoader, Environment, StrictUndefined

from modules.verification.models.verification_token import TokenRejection

TEMPLATES = {
    "page.html": """<!DOCTYPE html>
<html lang="it">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{ title }}</title>
<style>
body { font-family: Arial, sans-serif; background: #f4f6f8; margin: 0; }
.card { max-width: 520px; margin: 80px auto; background: #fff; border-radius: 8px;
        padding: 32px; box-shadow: 0 2px 8px rgba(0,0,0,.1); text-align: center; }
h1 { color: {{ color }}; font-size: 24px; }
p { color: #444; line-height: 1.5; }
code { background: #eef; padding: 2px 6px; border-radius: 4px; }
</style>
</head>
<body><div class="card"><h1>{{ title }}</h1>{% block body %}<p>{{ message }}</p>{% endblock %}</div></body>
</html>""",
    "success.html": """{% extends "page.html" %}{% block body %}
<p>Grazie! Il tuo indirizzo email è stato verificato e il documento è stato archiviato.</p>
<p>Codice documento: <code>{{ document_id }}</code></p>
<p>Riceverai a breve una copia via email.</p>
{% endblock %}""",
}

env = Environment(loader=DictLoader(TEMPLATES), autoescape=True, undefined=StrictUndefined)

SUCCESS_COLOR = "#2e7d32"
ERROR_COLOR = "#c62828"

REJECTIONS = {
    TokenRejection.NOT_FOUND: (
        404,
        "Link non valido",
        "Il link di verifica non è valido. Controlla di aver copiato l'indirizzo completo.",
    ),
    TokenRejection.EXPIRED: (
        410,
        "Link scaduto",
        "Il link di verifica è scaduto. Compila di nuovo il modulo per ricevere un nuovo link.",
    ),
    TokenRejection.ALREADY_VERIFIED: (
        400,
        "Email già verificata",
        "Questo link è già stato usato e il documento risulta archiviato.",
    ),
}


def success_page(document_id: Optional[str]) -> str:
    return env.get_template("success.html").render(
        title="Email verificata", color=SUCCESS_COLOR, document_id=document_id or ""
    )


def rejection_page(reason: TokenRejection):
    """Returns (status_code, html) for a rejected token"""
    status_code, title, message = REJECTIONS[reason]
    page = env.get_template("page.html").render(title=title, color=ERROR_COLOR, message=message)
    return status_code, page


def failure_page() -> str:
    return env.get_template("page.html").render(
        title="Errore",
        color=ERROR_COLOR,
        message="Non è stato possibile completare la verifica. Riprova più tardi.",
    )
