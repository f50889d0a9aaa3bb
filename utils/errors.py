"""
Errores de dominio del motor operativo.

Los servicios levantan estas excepciones; los endpoints las traducen a
HTTPException usando ``status_code``.
"""
from fastapi import HTTPException, status


class OperationError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OperationError):
    """Datos faltantes o inválidos; la operación no se aplica"""
    status_code = 422


class NotFoundError(OperationError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity} {entity_id} no encontrado")
        self.entity = entity
        self.entity_id = entity_id


class AlreadyRecordedError(OperationError):
    """Ya existe un registro de consumo confirmado para (habitación, item, día)"""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, existing_source: str):
        super().__init__(f"El item ya fue registrado hoy (por {existing_source})")
        self.existing_source = existing_source


class InvalidTransitionError(OperationError):
    status_code = status.HTTP_409_CONFLICT


class ConflictError(OperationError):
    status_code = status.HTTP_409_CONFLICT


class SideEffectFailure(Exception):
    """
    Falla de notificación o sync con PMS. Nunca se propaga al caller de la
    operación principal: el SideEffectRunner la loguea.
    """

    def __init__(self, target: str, message: str):
        super().__init__(f"{target}: {message}")
        self.target = target


def to_http_exception(err: OperationError) -> HTTPException:
    """Traducción de un error de dominio a la respuesta HTTP del endpoint"""
    return HTTPException(status_code=err.status_code, detail=err.message)
