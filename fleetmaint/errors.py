"""Erreurs metier / Domain errors.

Les services ne levent que ces exceptions ; la couche API les convertit en reponses HTTP.
Services only raise these; the API layer converts them into HTTP responses.
"""


class MaintenanceError(Exception):
    """Erreur de base / Base error."""

    status_code = 400
    kind = "error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(MaintenanceError):
    """Champs manquants, listes vides, references invalides / Missing fields, empty lists, bad references."""

    status_code = 422
    kind = "validation_error"


class NotFoundError(MaintenanceError):
    """Entite absente ou hors du perimetre du tenant / Entity absent or outside tenant scope."""

    status_code = 404
    kind = "not_found"


class ConflictError(MaintenanceError):
    """Regle metier violee (unicite, transition illegale) / Business rule violated (uniqueness, illegal transition)."""

    status_code = 409
    kind = "conflict"


class IntegrityError(MaintenanceError):
    """Echec de transaction, annulee entierement ; peut etre rejouee / Transaction failure, fully rolled back; safe to retry."""

    status_code = 503
    kind = "integrity_error"
