from pharmdesk.schemas.common import ErrorOut

# Representative envelope per status: (error code, message, path) shown in Swagger.
_ERROR_EXAMPLES: dict[int, tuple[str, str, str]] = {
    400: (
        "insufficient_stock",
        "Insufficient stock for Paracetamol 500mg: requested 5, available 2",
        "/sales",
    ),
    401: ("unauthorized", "Invalid token", "/auth/me"),
    403: ("forbidden", "Insufficient role for this action", "/medicines"),
    404: ("not_found", "Medicine not found", "/medicines/medicine-id"),
    409: ("conflict", "Supplier is referenced by 3 medicine(s)", "/suppliers/supplier-id"),
    422: ("validation_error", "Validation failed", "/sales"),
    429: ("rate_limited", "Too many failed attempts. Try again later.", "/auth/login"),
    500: ("internal_error", "Internal server error", "/sales"),
    503: (
        "stock_unavailable",
        "Sale could not be recorded; no stock was changed. Retry the request.",
        "/sales",
    ),
}


def error_responses(*status_codes: int) -> dict[int, dict]:
    """OpenAPI ``responses`` entries describing the shared error envelope."""
    responses: dict[int, dict] = {}
    for status_code in status_codes:
        code, message, path = _ERROR_EXAMPLES.get(status_code, ("http_error", "HTTP error", "/"))
        responses[status_code] = {
            "model": ErrorOut,
            "description": message,
            "content": {
                "application/json": {
                    "example": {
                        "message": message,
                        "error": {
                            "code": code,
                            "message": message,
                            "request_id": "request-id",
                            "path": path,
                            "details": None,
                        }
                    }
                }
            },
        }
    return responses
