# Import models here so Alembic can discover metadata.
from farm_access.models.user import User  # noqa: F401

# Catalog + per-farm bindings
from farm_access.models.role import Role  # noqa: F401
from farm_access.models.permission import Permission  # noqa: F401
from farm_access.models.farm import Farm  # noqa: F401
from farm_access.models.farm_role_permission import FarmRolePermission  # noqa: F401

# Membership lifecycle
from farm_access.models.farm_member import FarmMember  # noqa: F401
from farm_access.models.farm_invitation import FarmInvitation  # noqa: F401

# Farm-owned data torn down with the farm
from farm_access.models.field import Field  # noqa: F401
from farm_access.models.task import Task, TaskParticipant  # noqa: F401
from farm_access.models.equipment import Equipment  # noqa: F401
from farm_access.models.season import Season  # noqa: F401
