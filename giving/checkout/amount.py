"""
Politique de montant (logique pure, pas de réseau, pas d'état).

Source unique de vérité pour la validation, les frais estimés et le total:
l'aperçu affiché et le montant soumis passent tous deux par compute_total().
"""
import math
import re
from decimal import Decimal, InvalidOperation, ROUND_CEILING, ROUND_HALF_UP
from typing import Any, Optional

from .errors import InvalidAmount
from .models import MonetaryTotal

# Estimation des frais du processeur (le montant réel est calculé côté processeur)
FEE_RATE = Decimal("0.029")
FIXED_FEE = Decimal("0.30")
MIN_AMOUNT = Decimal("1.00")

_NON_NUMERIC = re.compile(r"[^0-9.]")
_LEADING_NUMBER = re.compile(r"^(\d+\.?\d*|\.\d+)")
_CENT = Decimal("0.01")


# module giving.checkout.amount
def parse_amount(raw: Any) -> Optional[Decimal]:
    """
    Interprète une saisie de type monétaire ("$1,250.50", "25", 10.5).
    - Les nombres (int, float, Decimal) sont convertis directement, notation scientifique comprise.
    - Texte: supprime tout caractère hors chiffres et point décimal.
    - Lit le plus long nombre décimal en tête ("1.2.3" -> 1.2).
    - Retourne None si rien d'exploitable (vide, "abc", ".").
    """
    if raw is None or raw == "" or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float, Decimal)):
        return _from_number(raw)
    cleaned = _NON_NUMERIC.sub("", str(raw))
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return None
    try:
        value = Decimal(match.group(1))
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def _from_number(raw: Any) -> Optional[Decimal]:
    # Valeur numérique: convertie telle quelle (1e-05 reste 0.00001), jamais nettoyée comme du texte
    if isinstance(raw, float) and not math.isfinite(raw):
        return None
    value = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    return value if value.is_finite() else None


def validate(raw: Any, minimum: Decimal = MIN_AMOUNT) -> Decimal:
    """
    Valide la saisie et retourne le montant de base (Decimal).
    - Soulève InvalidAmount si non interprétable ou inférieur au minimum (1.00).
    """
    value = parse_amount(raw)
    if value is None or value < minimum:
        raise InvalidAmount(raw=raw)
    return value


def is_valid(raw: Any) -> bool:
    """Pilote l'état du bouton « give » (désactivé si False)."""
    value = parse_amount(raw)
    return value is not None and value >= MIN_AMOUNT


def to_cents(amount: Any) -> int:
    """Convertit un montant en centimes entiers, arrondi au centime le plus proche (demi vers le haut)."""
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return int((value.quantize(_CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def compute_fee(base: Any) -> int:
    """Frais estimés en centimes: ceil((base * 0.029 + 0.30) * 100), jamais négatifs."""
    value = base if isinstance(base, Decimal) else Decimal(str(base))
    fee = (value * FEE_RATE + FIXED_FEE) * 100
    return max(0, int(fee.to_integral_value(rounding=ROUND_CEILING)))


def compute_total(base: Any, cover_fees: bool) -> MonetaryTotal:
    """Combine montant de base et frais optionnels; ne lève jamais pour un montant validé."""
    fee_cents = compute_fee(base) if cover_fees else 0
    return MonetaryTotal(base_cents=to_cents(base), fee_cents=fee_cents)


def format_usd(cents: int) -> str:
    """Affichage: 102550 -> "$1,025.50"."""
    sign = "-" if cents < 0 else ""
    dollars, rest = divmod(abs(int(cents)), 100)
    return f"{sign}${dollars:,}.{rest:02d}"
