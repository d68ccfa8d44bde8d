from flask import jsonify


class ShopError(Exception):
    """Base class for errors surfaced to the shop UI."""
    status_code = 500
    kind = 'error'

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {'success': False, 'error': self.kind, 'message': self.message}
        if self.details:
            payload['details'] = self.details
        return payload


class ConflictError(ShopError):
    """The requested dates overlap a reservation that is still held."""
    status_code = 409
    kind = 'conflict'


class NotFoundError(ShopError):
    status_code = 404
    kind = 'not_found'


class ValidationError(ShopError):
    status_code = 400
    kind = 'validation'


class StoreUnavailableError(ShopError):
    """The database call failed; the caller must not assume the write happened."""
    status_code = 503
    kind = 'store_unavailable'


def register_error_handlers(app):
    @app.errorhandler(ShopError)
    def shop_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(400)
    def bad_request(e): return jsonify(success=False, error='bad_request'), 400

    @app.errorhandler(401)
    def unauthorized(e): return jsonify(success=False, error='unauthorized'), 401

    @app.errorhandler(404)
    def not_found(e): return jsonify(success=False, error='not_found'), 404

    @app.errorhandler(500)
    def server_error(e): return jsonify(success=False, error='server_error'), 500
