"""Static entry page of the chat client."""

import os

from fastapi import APIRouter
from fastapi.responses import FileResponse, JSONResponse

from halotalk.settings import app_settings

router = APIRouter()


@router.get("/", include_in_schema=False)
async def serve_index():
    index_path = os.path.join(app_settings.PUBLIC_DIR, "index.html")
    if not os.path.exists(index_path):
        return JSONResponse(status_code=404, content={"detail": "UI not found"})
    return FileResponse(index_path)
