from typing import Optional

from fastapi import Header, HTTPException, Request

# 用户身份由上游网关鉴权后通过请求头透传


def get_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    return x_user_id or None


def require_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="需要登录")
    return x_user_id


def require_owner_id(
    x_user_id: Optional[str] = Header(None),
    x_guest_id: Optional[str] = Header(None),
) -> str:
    """已登录用户优先，其次为游客设备ID"""
    owner_id = x_user_id or x_guest_id
    if not owner_id:
        raise HTTPException(status_code=401, detail="缺少用户或游客身份")
    return owner_id


def get_state(request: Request):
    return request.app.state
