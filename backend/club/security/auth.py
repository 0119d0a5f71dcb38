"""
认证与身份解析
只负责从 Bearer token 解析当前成员；登录与会话签发不在本服务范围内
"""
import bcrypt
import logging
from datetime import datetime, timedelta, UTC
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from club.config import settings
from club.database import get_db
from club.errors import ForbiddenError
from club.models.ontology import MemberProfile, Membership, MembershipStatus

logger = logging.getLogger(__name__)

ADMIN_SCOPE = "admin"

security = HTTPBearer()


def get_password_hash(password: str) -> str:
    """密码 / PIN 哈希"""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """验证密码 / PIN"""
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def create_access_token(profile_id: int, scope: Optional[str] = None,
                        expires_minutes: Optional[int] = None) -> str:
    """创建 JWT token，sub 为成员 ID"""
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    to_encode = {
        "sub": str(profile_id),
        "exp": datetime.now(UTC) + timedelta(minutes=minutes)
    }
    if scope is not None:
        to_encode["scope"] = scope
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """解码 JWT token"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciales inválidas"
        )


def get_token_payload(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    return decode_token(credentials.credentials)


def get_current_profile(
    payload: dict = Depends(get_token_payload),
    db: Session = Depends(get_db)
) -> MemberProfile:
    """获取当前成员；停用成员 401，会籍非 activa 时 403"""
    try:
        profile_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Credenciales inválidas")

    profile = db.query(MemberProfile).filter(MemberProfile.id == profile_id).first()
    if not profile:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Perfil no encontrado")
    if not profile.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Perfil desactivado")

    membership = db.query(Membership).filter(Membership.id == profile.membership_id).first()
    if not membership or membership.status != MembershipStatus.ACTIVE:
        raise ForbiddenError("membership", "La membresía no está activa")
    return profile


def require_admin(payload: dict = Depends(get_token_payload)) -> dict:
    """管理端点：token 需带 scope=admin"""
    if payload.get("scope") != ADMIN_SCOPE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Se requiere acceso de administrador")
    return payload
