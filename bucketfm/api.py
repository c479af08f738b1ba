"""
API routes for bucketfm
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, Request, UploadFile

from .auth import get_claims, get_current_user
from .config import get_config
from .errors import BucketError, FileManagerError, MissingFieldError
from .metrics import metrics_manager
from .models import ApiResponse, DEFAULT_MIME_TYPE, FileAction, ResponseCode, UserInfo
from .storage_api import FileManagerApi
from .utils import format_file_size

logger = logging.getLogger(__name__)

# API router
api_router = APIRouter(prefix="/api", tags=["api"])

ACTION_HANDLERS = {
    FileAction.LIST: "handle_list",
    FileAction.RENAME: "handle_rename",
    FileAction.MOVE: "handle_move",
    FileAction.COPY: "handle_copy",
    FileAction.REMOVE: "handle_remove",
    FileAction.EDIT: "handle_edit",
    FileAction.GET_CONTENT: "handle_get_content",
    FileAction.GET_META: "handle_get_meta",
    FileAction.CREATE_FOLDER: "handle_create_folder",
    FileAction.CHANGE_PERMISSIONS: "handle_set_permissions",
}


def get_file_manager(request: Request) -> FileManagerApi:
    """Dependency returning the application's file-manager facade"""
    return request.app.state.file_manager


def _error_response(status_code: int, code: ResponseCode, msg: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=ApiResponse(code=code.value, msg=msg, data=None).to_dict(),
    )


def _file_manager_http_exception(exc: FileManagerError) -> HTTPException:
    """Convert a FileManagerError into a HTTPException."""

    if exc.find_cause(MissingFieldError) is not None:
        return _error_response(400, ResponseCode.ERROR, str(exc))
    if exc.find_cause(BucketError) is not None:
        return _error_response(404, ResponseCode.NOT_FOUND, str(exc))
    return _error_response(400, ResponseCode.ERROR, str(exc))


@api_router.get("/session")
async def get_session(user: UserInfo = Depends(get_current_user)):
    """Return current session information"""

    return ApiResponse(
        code=ResponseCode.SUCCESS.value,
        msg="success",
        data={
            "user": {"name": user.name},
            "claims": user.to_claims(),
        }
    ).to_dict()


@api_router.post("/files")
async def file_action(
    payload: Dict[str, Any] = Body(...),
    claims: Dict[str, Any] = Depends(get_claims),
    file_manager: FileManagerApi = Depends(get_file_manager),
):
    """Dispatch a file-manager action to its handler"""

    action = payload.get("action")
    try:
        requested = FileAction(action)
    except ValueError:
        raise _error_response(400, ResponseCode.ERROR, f"Unknown action: {action}")

    handler = getattr(file_manager, ACTION_HANDLERS[requested])

    try:
        with metrics_manager.operation_context(requested.value):
            return await handler(payload, claims)
    except FileManagerError as e:
        raise _file_manager_http_exception(e) from e


@api_router.post("/files/upload")
async def upload_file(
    bucketname: str = Form(""),
    directoryPath: str = Form(""),
    file: UploadFile = File(...),
    claims: Dict[str, Any] = Depends(get_claims),
    file_manager: FileManagerApi = Depends(get_file_manager),
):
    """Upload a file into a bucket folder"""

    max_size = get_config().upload.maxSize
    too_large = _error_response(
        413,
        ResponseCode.PAYLOAD_TOO_LARGE,
        f"File too large (max: {format_file_size(max_size or 0)})",
    )

    if max_size is not None and file.size is not None and file.size > max_size:
        raise too_large

    buffer = await file.read()
    if max_size is not None and len(buffer) > max_size:
        raise too_large

    try:
        with metrics_manager.operation_context("upload"):
            response = await file_manager.handle_save_file(
                bucketname,
                directoryPath,
                file.filename or "",
                file.content_type or DEFAULT_MIME_TYPE,
                buffer,
                claims,
            )
    except FileManagerError as e:
        raise _file_manager_http_exception(e) from e

    metrics_manager.add_upload_bytes(len(buffer))
    return response


def setup_api_routes(app):
    """Setup API routes"""
    app.include_router(api_router)
    logger.info("API routes setup complete")
