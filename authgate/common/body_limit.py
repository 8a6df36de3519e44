"""
Request body cap.

A declared ``Content-Length`` over the limit is refused before the app runs.
Bodies without one (chunked) are counted as they are read, and the read that
crosses the limit raises ``PayloadTooLargeException``.
"""

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from authgate.common.exceptions import PayloadTooLargeException, create_error_response


class BodySizeLimitMiddleware:
    def __init__(self, app: ASGIApp, max_body_bytes: int = 1024):
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = None
        for name, value in scope.get("headers", []):
            if name == b"content-length":
                declared = value.decode("latin-1").strip()
                break

        if declared is not None:
            if not declared.isdigit():
                response = create_error_response(400, "Invalid Content-Length")
                await response(scope, receive, send)
                return
            if int(declared) > self.max_body_bytes:
                response = create_error_response(413, "Request body too large")
                await response(scope, receive, send)
                return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    raise PayloadTooLargeException()
            return message

        await self.app(scope, limited_receive, send)
