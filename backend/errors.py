from flask import jsonify


class ApiError(Exception):
    status_code = 500

    def to_dict(self):
        return {"error": str(self)}


class InvalidPayload(ApiError):
    """Malformed or missing request fields."""
    status_code = 400


class Unauthorized(ApiError):
    status_code = 401

    def __init__(self, message="Unauthorized"):
        super().__init__(message)


class PersistenceFailure(ApiError):
    """The store could not be read or written."""
    status_code = 500

    def __init__(self, error, message):
        super().__init__(error)
        self.message = message

    def to_dict(self):
        return {"error": str(self), "message": self.message}


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(err):
        return jsonify(err.to_dict()), err.status_code
