# giving.config
from pathlib import Path
import os
from typing import List
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du backend de dons.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets du processeur de paiement (Stripe)
- Expose CORS/hosts, le stockage d'idempotence et la devise
- Fournit missing_credentials() pour refuser le démarrage sans identifiants
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

# Identifiants obligatoires: sans eux aucun canal ne peut fonctionner
REQUIRED_CREDENTIALS = ("STRIPE_SECRET_KEY", "STRIPE_PUBLIC_KEY")

# Stripe: clés publique/privée et environnement (informatif, la clé détermine le mode réel)
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_PUBLIC_KEY = _clean_env(os.getenv("STRIPE_PUBLIC_KEY") or "")
STRIPE_ENVIRONMENT = _clean_env(os.getenv("STRIPE_ENVIRONMENT") or "production").lower()

# Les montants sont toujours en centimes, une seule devise
PAYMENT_CURRENCY = _clean_env(os.getenv("PAYMENT_CURRENCY") or "usd").lower()

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]
# HSTS uniquement quand le service est servi en HTTPS (derrière proxy)
HSTS_ENABLED = (os.getenv("HSTS_ENABLED", "false").lower() == "true")

# Idempotence: Redis si IDEMPOTENCY_REDIS_URL, sinon stockage mémoire (un seul process)
IDEMPOTENCY_REDIS_URL = _clean_env(os.getenv("IDEMPOTENCY_REDIS_URL") or "")
IDEMPOTENCY_TTL_SECONDS = int(os.getenv("IDEMPOTENCY_TTL_SECONDS", "86400"))


def missing_credentials() -> List[str]:
    """
    Retourne la liste des identifiants obligatoires absents.
    - Lit l'environnement à l'appel (et non à l'import) pour refléter l'état courant du process.
    """
    return [name for name in REQUIRED_CREDENTIALS if not _clean_env(os.getenv(name) or "")]
