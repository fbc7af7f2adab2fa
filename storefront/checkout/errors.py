"""
Erreurs du checkout.
- CheckoutValidationError: corrigeable côté client, aucun effet de bord (400).
- CheckoutConflictError: soumission en double / clé d’idempotence déjà utilisée (409).
- CheckoutForbiddenError / CheckoutNotFoundError: session ou commande d’un autre utilisateur (403 / 404).
- CheckoutDependencyError: échec Supabase ou Stripe, effets compensés (500).
Le message est renvoyé tel quel au client: il reste générique pour les 500,
la cause détaillée est journalisée côté serveur.
"""

class CheckoutError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CheckoutValidationError(CheckoutError):
    status_code = 400


class CheckoutConflictError(CheckoutError):
    status_code = 409


class CheckoutDependencyError(CheckoutError):
    status_code = 500


class CheckoutForbiddenError(CheckoutError):
    status_code = 403


class CheckoutNotFoundError(CheckoutError):
    status_code = 404
