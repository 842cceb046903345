from app.models.activity_log import AdminActivityLog  # noqa: F401
from app.models.admin_session import AdminSession  # noqa: F401
from app.models.admin_user import AdminRole, AdminUser  # noqa: F401
from app.models.otp_code import OtpCode  # noqa: F401
