"""
➡️ But : Documentation Swagger/OpenAPI du moteur de grilles.

custom_openapi(app) complète le schéma généré par FastAPI :
- description des conventions (UTC, erreurs métier, pagination),
- description des tags (un par groupe de routes),
- schéma de sécurité du header `X-Game-Access` des parties protégées.
"""

from fastapi.openapi.utils import get_openapi

TAGS_METADATA = [
    {"name": "auth", "description": "Comptes, connexion et profil courant."},
    {"name": "games", "description": "Cycle de vie d'une partie : création, réglages, verrouillage, accès."},
    {"name": "squares", "description": "Grille 10x10 : réservation, confirmation et flux temps réel (SSE)."},
    {"name": "players", "description": "Gestion des joueurs d'une partie (rôles, blocage, retrait)."},
    {"name": "cron", "description": "Tâches planifiées protégées par `CRON_SECRET`."},
    {"name": "internal", "description": "Hooks appelés par des services internes (activation après paiement)."},
]

DESCRIPTION = (
    "Football squares : réservation et verrouillage de grilles 10x10.\n\n"
    "### Conventions\n"
    "- Toutes les heures sont en UTC.\n"
    "- Pagination : query params `page` & `size`.\n"
    "- Erreurs métier : `detail = {code, message, ...}` (ex. `CELL_UNAVAILABLE` liste les cases en conflit).\n"
    "- Parties protégées : header `X-Game-Access` (jeton de POST /games/{id}/access).\n"
)


def custom_openapi(app):
    if app.openapi_schema:
        return app.openapi_schema
    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=DESCRIPTION,
        routes=app.routes,
        tags=TAGS_METADATA,
    )
    schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
    schemes["GameAccess"] = {
        "type": "apiKey",
        "in": "header",
        "name": "X-Game-Access",
        "description": "Jeton de partie protégée, limité à (partie, utilisateur).",
    }
    app.openapi_schema = schema
    return app.openapi_schema
