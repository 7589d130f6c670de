'''
Role-based routing for client sessions.

`resolve` is the pure decision: given who is signed in (if anyone), how to
look up their role, and where they are, it says whether to render the page or
redirect. `SessionHandle` wraps it in the Loading / Unauthenticated /
Authenticated lifecycle a client keeps while identity changes.
'''
import enum
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel

from ..common.logger import log
from ..database.db_enums import UserRole

LOGIN_ROUTE = "/login"
ROOT_ROUTE = "/"

PUBLIC_ROUTES = frozenset({
    "/login",
    "/admin/initial-setup",
    "/register",
    "/parent-login",
    "/teacher/register",
    "/forgot-password",
    "/change-password",
})

ROLE_HOME = {
    UserRole.ADMIN: "/admin/dashboard",
    UserRole.TEACHER: "/teacher/dashboard",
    UserRole.PARENT: "/parent/dashboard",
}

# Looks up the role of an identity. Returns None when no profile exists.
RoleLookup = Callable[[Any], Awaitable[Optional[str]]]


class SessionState(str, enum.Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class ActionKind(str, enum.Enum):
    RENDER_CHILDREN = "render_children"
    REDIRECT_TO = "redirect_to"


class RouterSignal(str, enum.Enum):
    AUTHZ_LOOKUP_FAILED = "AuthzLookupFailed"
    UNKNOWN_ROLE = "UnknownRole"


class RouteAction(BaseModel):
    kind: ActionKind
    target: Optional[str] = None
    signal: Optional[RouterSignal] = None
    sign_out: bool = False
    role: Optional[UserRole] = None

    @classmethod
    def render_children(cls, role: Optional[UserRole] = None) -> "RouteAction":
        return cls(kind=ActionKind.RENDER_CHILDREN, role=role)

    @classmethod
    def redirect_to(cls, target: str, **kwargs) -> "RouteAction":
        return cls(kind=ActionKind.REDIRECT_TO, target=target, **kwargs)


def is_public_route(path: str) -> bool:
    return path in PUBLIC_ROUTES


def parse_role(raw_role: Any) -> Optional[UserRole]:
    try:
        return UserRole(getattr(raw_role, "value", raw_role))
    except ValueError:
        return None


def decide_for_role(role: UserRole, path: str) -> RouteAction:
    """Decision for a signed-in user whose role is already known."""
    if path == ROOT_ROUTE or is_public_route(path):
        return RouteAction.redirect_to(ROLE_HOME[role], role=role)
    return RouteAction.render_children(role=role)


def decide_for_anonymous(path: str) -> RouteAction:
    if is_public_route(path):
        return RouteAction.render_children()
    return RouteAction.redirect_to(LOGIN_ROUTE)


async def resolve(identity: Any, path: str, role_lookup: RoleLookup) -> RouteAction:
    """
    Decides what to do with `path` for `identity`.

    * no identity: public routes render, everything else (including "/")
      goes to the login page.
    * the role lookup fails or finds nothing: sign out, go to login and
      raise the AuthzLookupFailed signal.
    * the role is not one we know: sign out, go to login, UnknownRole.
    * a known role on "/" or a public route goes to that role's home;
      any other path renders.
    """
    if identity is None:
        return decide_for_anonymous(path)

    try:
        raw_role = await role_lookup(identity)
    except Exception as e:
        log.error(f"Role lookup failed for identity {identity}: {e}", exc_info=True)
        raw_role = None
        lookup_failed = True
    else:
        lookup_failed = raw_role is None

    if lookup_failed:
        log.warning(f"No profile found for identity {identity}. Signing out.")
        return RouteAction.redirect_to(
            LOGIN_ROUTE, signal=RouterSignal.AUTHZ_LOOKUP_FAILED, sign_out=True
        )

    role = parse_role(raw_role)
    if role is None:
        log.warning(f"Identity {identity} has an unknown role '{raw_role}'. Signing out.")
        return RouteAction.redirect_to(
            LOGIN_ROUTE, signal=RouterSignal.UNKNOWN_ROLE, sign_out=True
        )

    return decide_for_role(role, path)


class SessionHandle:
    """
    Client-side session lifecycle.

    Every identity change passes through LOADING before settling. A sign-out
    decided by `resolve` tears the session down, so the handle ends up
    UNAUTHENTICATED even though an identity was offered.
    """
    def __init__(
        self,
        role_lookup: RoleLookup,
        sign_out: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self._role_lookup = role_lookup
        self._sign_out = sign_out
        self.state = SessionState.LOADING
        self.identity: Any = None
        self.role: Optional[UserRole] = None
        self.signals: list[RouterSignal] = []

    async def init(self, identity: Any, path: str) -> RouteAction:
        return await self.on_identity_change(identity, path)

    async def on_identity_change(self, identity: Any, path: str) -> RouteAction:
        self.state = SessionState.LOADING
        self.identity = identity
        self.role = None

        action = await resolve(identity, path, self._role_lookup)
        if action.signal is not None:
            self.signals.append(action.signal)

        if action.sign_out:
            await self.teardown()
        elif identity is None:
            self.state = SessionState.UNAUTHENTICATED
        else:
            self.role = action.role
            self.state = SessionState.AUTHENTICATED
        return action

    async def on_route_change(self, path: str) -> RouteAction:
        """Navigation with an unchanged identity reuses the known role."""
        if self.state == SessionState.AUTHENTICATED and self.role is not None:
            return decide_for_role(self.role, path)
        if self.state == SessionState.UNAUTHENTICATED:
            return decide_for_anonymous(path)
        return await self.on_identity_change(self.identity, path)

    async def teardown(self):
        if self._sign_out is not None:
            await self._sign_out()
        self.identity = None
        self.role = None
        self.state = SessionState.UNAUTHENTICATED
