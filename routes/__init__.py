from .health import health_bp
from .auth import auth_bp
from .users import users_bp
from .departments import departments_bp
from .leaves import leaves_bp
from .holidays import holidays_bp
from .dashboard import dashboard_bp
from .audit_logs import audit_bp
from .tasks import columns_bp, tasks_bp
from .leave_rules import leave_rules_bp
