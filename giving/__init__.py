"""
giving: parcours de don (checkout), moteur d'orchestration côté client et service de paiement côté serveur.

- giving.checkout: montant, canaux de paiement, session de checkout, client de soumission
- giving.payments: service de charge idempotent (Stripe) exposé par FastAPI
"""

__version__ = "0.1.0"
