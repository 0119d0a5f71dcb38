"""
业务异常定义
服务层抛出，main 中统一转换为 HTTP 响应
"""
from typing import Any, Dict, Optional


class ClubError(ValueError):
    """业务异常基类"""

    code = "error"
    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.code, "detail": self.message}
        body.update({k: v for k, v in self.context.items() if v is not None})
        return body


class NotFoundError(ClubError):
    """实体不存在或已停用"""

    code = "not_found"
    status_code = 404


class ForbiddenError(ClubError):
    """权限评估拒绝

    reason: category | hours | cap | spending | authorization | membership
    """

    code = "forbidden"
    status_code = 403

    def __init__(self, reason: str, message: str, **context: Any):
        super().__init__(message, reason=reason, **context)
        self.reason = reason


class ConflictError(ClubError):
    """写入时时段已被占用"""

    code = "conflict"
    status_code = 409


class InvalidTransitionError(ClubError):
    """状态机不允许的转换"""

    code = "invalid_transition"
    status_code = 409

    def __init__(self, message: str, current: Optional[str] = None, target: Optional[str] = None):
        super().__init__(message, current=current, target=target)
        self.current = current
        self.target = target


class ValidationError(ClubError):
    """输入格式错误或外键不存在"""

    code = "validation_error"
    status_code = 422
