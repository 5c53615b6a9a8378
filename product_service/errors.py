class CatalogError(Exception):
    status_code = 500

    def __init__(self, message: str = "Internal Server Error"):
        super().__init__(message)
        self.message = message


class BadRequest(CatalogError):
    status_code = 400


class ValidationError(BadRequest):
    pass


class NotFound(CatalogError):
    status_code = 404


class InternalError(CatalogError):
    status_code = 500


class StoreError(InternalError):
    pass


class NotificationError(InternalError):
    pass


class QueueError(InternalError):
    pass


class ConfigError(CatalogError):
    pass
