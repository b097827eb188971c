"""Common FastAPI dependencies for API endpoints.

Services are built once in the application lifespan and stored on
``app.state``.
"""

from typing import Annotated

from fastapi import Depends, Request

from mixer.services.mixing_service import MixingService


def get_mixing_service(request: Request) -> MixingService:
    return request.app.state.mixing_service


MixingServiceDep = Annotated[MixingService, Depends(get_mixing_service)]
