'''
Exposes the role router: where should a client on `path` go?
'''
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Query

from ..core.session_router import SessionHandle
from ..models import auth as auth_models
from ..services.security import get_token_subject
from ..services.user_service import UserService


class SessionAPI:
    def __init__(self):
        self.router = APIRouter(
            prefix="/session",
            tags=["Session"]
        )
        self._register_routes()

    def _register_routes(self):
        self.router.add_api_route(
            "/route",
            self.resolve_route,
            methods=["GET"],
            response_model=auth_models.RouteDecision,
            summary="Resolve Route for Current Session")

    async def resolve_route(
        self,
        path: Annotated[str, Query(min_length=1)],
        subject: Annotated[Optional[str], Depends(get_token_subject)],
        user_service: Annotated[UserService, Depends(UserService)]
    ):
        """
        Runs the role router for the bearer of the (optional) token.
        A missing or invalid token is an anonymous session.
        """
        session = SessionHandle(role_lookup=user_service.get_role)
        action = await session.init(subject, path)
        return auth_models.RouteDecision(
            state=session.state.value,
            role=session.role,
            action=action.kind.value,
            target=action.target,
            signal=action.signal.value if action.signal else None,
            sign_out=action.sign_out,
        )

session_api = SessionAPI()
router = session_api.router
