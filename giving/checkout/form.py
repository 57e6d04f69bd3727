"""
État du formulaire de don (saisie brute, puces de montant, fonds, frais).
Produit les instantanés DonationIntent consommés par CheckoutSession.
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple

from . import amount as policy
from .models import Dedication, DonationIntent, Fund

PRESET_AMOUNTS: Tuple[str, ...] = ("25", "50", "100", "250")


@dataclass
class DonationForm:
    raw_amount: str = ""
    fund: Fund = Fund.TITHE
    cover_fees: bool = False
    donor_name: str = ""
    donor_email: str = ""
    dedication: Optional[Dedication] = None
    presets: Tuple[str, ...] = PRESET_AMOUNTS
    selected_preset: Optional[str] = field(default=None)

    def choose_preset(self, value: str) -> None:
        """Clic sur une puce: remplace la saisie et marque la puce active."""
        if value not in self.presets:
            raise ValueError(f"Unknown preset amount: {value}")
        self.raw_amount = value
        self.selected_preset = value

    def type_amount(self, raw: str) -> None:
        # Toute saisie manuelle désélectionne les puces
        self.raw_amount = raw
        self.selected_preset = None

    @property
    def give_enabled(self) -> bool:
        return policy.is_valid(self.raw_amount)

    @property
    def amount_error_visible(self) -> bool:
        return not self.give_enabled

    def fee_preview(self) -> str:
        if not self.give_enabled or not self.cover_fees:
            return "(adds ~$0.00)"
        base = policy.validate(self.raw_amount)
        return f"(adds ~{policy.format_usd(policy.compute_fee(base))})"

    def summary(self, fund_label: Optional[str] = None) -> str:
        """Résumé affiché sous le formulaire; chaîne vide tant que le montant est invalide."""
        if not self.give_enabled:
            return ""
        base = policy.validate(self.raw_amount)
        total = policy.compute_total(base, self.cover_fees)
        text = f"Giving {policy.format_usd(total.base_cents)} to {fund_label or self.fund.label}"
        if total.fee_cents:
            text += f" • Fees ~ {policy.format_usd(total.fee_cents)}"
        return text + f" • Total {policy.format_usd(total.total_cents)}"

    def intent(self) -> DonationIntent:
        """Instantané immuable; soulève InvalidAmount si le montant n'est pas valide."""
        return DonationIntent(
            base_amount=policy.validate(self.raw_amount),
            fund=self.fund,
            cover_fees=self.cover_fees,
            donor_name=self.donor_name.strip() or None,
            donor_email=self.donor_email.strip() or None,
            dedication=self.dedication,
        )
