from typing import Annotated
from fastapi import Depends
from inventa.modules.auth.dependencies import get_tenant_context, require_admin
from inventa.modules.auth.schemas import TenantContext

# Any member of the tenant named by X-Company-ID
TenantDependency = Annotated[TenantContext, Depends(get_tenant_context)]

# Administrators only
AdminDependency = Annotated[TenantContext, Depends(require_admin)]
