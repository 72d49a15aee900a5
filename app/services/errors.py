from __future__ import annotations


class InstallmentError(ValueError):
    """Base des erreurs métier sur les échéances."""


class ValidationError(InstallmentError):
    """Saisie utilisateur vide ou invalide."""


class InvalidDateError(InstallmentError):
    """Date d'échéance illisible: défaut des données amont, pas une saisie."""

    def __init__(self, value) -> None:
        super().__init__(f"Date invalide: {value!r}")
        self.value = value


class InstallmentNotFoundError(InstallmentError):
    pass


class InstallmentAlreadyPaidError(InstallmentError):
    pass


class PaymentInFlightError(InstallmentError):
    pass


class PersistenceError(InstallmentError):
    def __init__(self, message: str, *, conflict: bool = False) -> None:
        super().__init__(message)
        self.conflict = conflict
