from .db import db
from .department import Department
from .user import User
from .audit_log import AuditLog
from .session import Session
from .login_attempt import LoginAttempt
from .leave import Leave, LeaveStatus, LeaveType
from .holiday import Holiday
from .kanban import KanbanColumn, Task, TaskPriority
from .leave_rule import LeaveRule
