"""
Corps de requête des endpoints de paiement (pydantic v2).
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

FUNDS = ("tithe", "offering", "missions", "building-fund")


class DedicationIn(BaseModel):
    name: str = ""
    note: str = ""

    def text(self) -> str:
        name = self.name.strip()
        note = self.note.strip()
        if name and note:
            return f"{name}: {note}"
        return name or note


class DonorFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    fund: str = "tithe"
    name: Optional[str] = None
    email: Optional[str] = None
    dedication: Optional[DedicationIn] = None

    @field_validator("fund")
    @classmethod
    def _known_fund(cls, v: str) -> str:
        v = (v or "tithe").lower()
        if v not in FUNDS:
            raise ValueError(f"Unknown fund: {v}")
        return v


class PayRequest(DonorFields):
    """
    POST /api/pay
    - amount: entier en centimes (> 0)
    - idempotencyKey: clé générée par le client, une par tentative logique
    """
    token: str = Field(min_length=1)
    amount: int = Field(gt=0, strict=True)
    idempotency_key: Optional[str] = Field(default=None, alias="idempotencyKey", max_length=255)
    note: Optional[str] = None


class CreateIntentRequest(DonorFields):
    amount: int = Field(gt=0, strict=True)


def first_error(exc: ValidationError) -> str:
    """Message court pour le corps {"error": ...} (premier champ fautif)."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    err = errors[0]
    field = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
    if field in ("token", "amount") and err.get("type") in ("missing", "string_too_short"):
        return "Missing token or amount"
    return f"{field}: {err.get('msg')}" if field else str(err.get("msg"))
