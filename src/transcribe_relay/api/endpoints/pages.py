"""Index page delivery with an embedded session nonce."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from transcribe_relay.api.dependencies import NonceStoreDep

router = APIRouter(tags=["pages"])

NONCE_META_TEMPLATE = '<meta name="session-nonce" content="{nonce}">\n</head>'
FRONTEND_MISSING_MESSAGE = "Frontend not built. Run make build first."


def inject_nonce(template: str, nonce: str) -> str:
    """Insert the nonce meta tag before the first ``</head>``."""
    return template.replace("</head>", NONCE_META_TEMPLATE.format(nonce=nonce), 1)


@router.get("/", include_in_schema=False)
@router.get("/index.html", include_in_schema=False)
async def serve_index(request: Request, nonces: NonceStoreDep) -> Response:
    """Serve the built index page with a freshly issued nonce."""
    template: str | None = request.app.state.index_template
    if template is None:
        return PlainTextResponse(FRONTEND_MISSING_MESSAGE, status_code=404)

    nonces.sweep()
    return HTMLResponse(inject_nonce(template, nonces.issue()))
