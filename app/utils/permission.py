from app.schemas.user import UserContext
from app.core.constants import RoleEnum
from app.core.exceptions import Forbidden


class PermissionHelper:
    @staticmethod
    def is_admin(context: UserContext) -> bool:
        return context.role == RoleEnum.ADMIN

    @staticmethod
    def require_admin(context: UserContext):
        if not PermissionHelper.is_admin(context):
            raise Forbidden("Only administrators can manage enrollments.")
