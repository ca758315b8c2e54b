from typing import Annotated
from fastapi import Depends
from inventa.modules.auth.dependencies import get_principal
from inventa.modules.auth.schemas import Principal

principal_dependency = Annotated[Principal, Depends(get_principal)]
