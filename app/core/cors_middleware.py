from fastapi import Request, Response

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}


async def permissive_cors_middleware(request: Request, call_next):
    """Wildcard CORS on every response; the widget and billing pages call us from any origin"""
    if request.method == "OPTIONS":
        return Response(status_code=200, content=b"", headers=CORS_HEADERS)

    response = await call_next(request)
    for header, value in CORS_HEADERS.items():
        response.headers[header] = value
    return response
