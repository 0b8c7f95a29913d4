from .http_service import HttpError, HttpService

__all__ = ["HttpError", "HttpService"]
