"""Erreurs métier, traduites en réponses HTTP dans `main.py`."""


class DomainError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(DomainError):
    """Entrée invalide, corrigeable par l'utilisateur."""
    status_code = 422


class NotFoundError(DomainError):
    """Référence périmée (ex: client supprimé)."""
    status_code = 404


class PermissionDeniedError(DomainError):
    """L'enregistrement appartient à un autre utilisateur."""
    status_code = 403


class TransientError(DomainError):
    """Réseau / timeout : l'appelant peut réessayer."""
    status_code = 503
    retry_after = 1
