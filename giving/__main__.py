"""
Point d'entrée principal pour le backend de dons.
Usage:
    python -m giving
Ce mode vérifie les identifiants puis lance uvicorn directement, avec quelques variables d'environnement:
- PORT: port d'écoute (par défaut 8000)
- UVICORN_RELOAD: active le reload auto en dev ("1"/"true"/"yes")
- LOG_LEVEL: niveau de logs uvicorn (ex: "info", "debug")
"""
import os
import sys

import uvicorn

from giving.config import missing_credentials


def main() -> None:
    missing = missing_credentials()
    if missing:
        # Refus de démarrer: aucun paiement ne peut fonctionner sans ces identifiants
        print(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Set them in the environment or in .env before starting the server.",
            file=sys.stderr,
        )
        raise SystemExit(1)

    port = int(os.environ.get("PORT", 8000))
    # Activer le reload uniquement si explicitement demandé (ex: en local)
    reload_flag = os.environ.get("UVICORN_RELOAD", "").lower() in ("1", "true", "yes")
    log_level = os.environ.get("LOG_LEVEL", "info")
    uvicorn.run(
        "giving.asgi:app",  # on réutilise l'ASGI app unique
        host="0.0.0.0",
        port=port,
        reload=reload_flag,
        log_level=log_level,
    )


if __name__ == "__main__":
    main()
