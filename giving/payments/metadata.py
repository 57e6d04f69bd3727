"""
Note et métadonnées Stripe d'un don (informatives: n'affectent ni le montant ni la déduplication).
"""
from typing import Dict, Optional

from .schemas import DonorFields

# Limite Stripe par valeur de métadonnée
METADATA_VALUE_MAX = 500


# module giving.payments.metadata
def build_note(body: DonorFields, extra: Optional[str] = None) -> str:
    """
    Construit la note jointe au paiement.
    - Format: "Fund: tithe | Name: Ada | Email: ada@example.org | Dedication: ..."
    - Les champs vides sont omis; la note libre du client est ajoutée en dernier.
    """
    parts = [f"Fund: {body.fund}"]
    if body.name:
        parts.append(f"Name: {body.name}")
    if body.email:
        parts.append(f"Email: {body.email}")
    dedication = body.dedication.text() if body.dedication else ""
    if dedication:
        parts.append(f"Dedication: {dedication}")
    if extra and extra.strip() and extra.strip() not in parts:
        parts.append(extra.strip())
    return " | ".join(parts)


def build_metadata(body: DonorFields) -> Dict[str, str]:
    meta = {"fund": body.fund}
    if body.name:
        meta["donor_name"] = body.name
    if body.dedication and body.dedication.text():
        meta["dedication"] = body.dedication.text()
    return {k: v[:METADATA_VALUE_MAX] for k, v in meta.items()}
