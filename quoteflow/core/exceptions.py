# quoteflow/core/exceptions.py
"""
Error taxonomy.

Every error is an HTTPException so services can raise them directly and
FastAPI turns them into responses. Messages are user-facing (Hebrew) and
never include internal details.
"""
from typing import Any, Optional
from fastapi import HTTPException, status


# --------------------------
# Validation
# --------------------------
class ValidationFailed(HTTPException):
    def __init__(self, detail: Any = "הנתונים שנשלחו אינם תקינים"):
        super().__init__(status_code=422, detail=detail)


# --------------------------
# Reference integrity
# --------------------------
class NotFoundError(HTTPException):
    def __init__(self, detail: str = "הפריט המבוקש לא נמצא"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


# --------------------------
# Domain rules
# --------------------------
class DomainRuleViolation(HTTPException):
    def __init__(self, detail: str, status_code: int = status.HTTP_409_CONFLICT):
        super().__init__(status_code=status_code, detail=detail)


class InvalidStatusTransition(DomainRuleViolation):
    def __init__(self, current: str, target: str):
        super().__init__(f"לא ניתן להעביר הצעה מסטטוס '{current}' לסטטוס '{target}'")
        self.current = current
        self.target = target


class QuoteNotEditable(DomainRuleViolation):
    def __init__(self, detail: str = "לא ניתן לערוך הצעה בסטטוס הנוכחי"):
        super().__init__(detail)


class QuoteAlreadySigned(DomainRuleViolation):
    def __init__(self):
        super().__init__("ההצעה כבר נחתמה")


class ReferencedEntity(DomainRuleViolation):
    def __init__(self, detail: str):
        super().__init__(detail)


class DuplicateEntity(DomainRuleViolation):
    def __init__(self, detail: str):
        super().__init__(detail)


class QuoteExpired(DomainRuleViolation):
    def __init__(self):
        super().__init__("תוקף ההצעה פג", status_code=status.HTTP_410_GONE)


class EmailVerificationFailed(DomainRuleViolation):
    def __init__(self):
        super().__init__("אימות האימייל נכשל", status_code=status.HTTP_401_UNAUTHORIZED)


class VerificationRequired(DomainRuleViolation):
    def __init__(self):
        super().__init__("יש לאמת את כתובת האימייל לפני המשך", status_code=status.HTTP_403_FORBIDDEN)


class CompanyNotConfigured(DomainRuleViolation):
    def __init__(self):
        super().__init__("פרטי החברה לא הוגדרו")


# --------------------------
# Infrastructure
# --------------------------
class FontUnavailable(HTTPException):
    def __init__(self, detail: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail or "הגופן הדרוש להפקת המסמך אינו זמין",
        )


class DocumentGenerationTimeout(HTTPException):
    def __init__(self):
        super().__init__(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="הפקת המסמך ארכה זמן רב מדי")


class DocumentGenerationError(HTTPException):
    def __init__(self):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="הפקת המסמך נכשלה")
