"""
Admin console entry point and dashboard
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from auth import get_bearer_token, get_user_id, verify_jwt_token
from console_state import load_dashboard
from database import get_db
from role_helpers import is_admin_user, require_admin

router = APIRouter(tags=["admin"])

LOGIN_PAGE = "/login.html"
CONSOLE_PAGE = "/admin.html"


@router.get("/admin")
async def admin_console(request: Request, db=Depends(get_db)):
    """
    Send the caller to the console, the login page, or home.
    Reads the ID token from the Authorization header or the `token` cookie.
    """
    user_id = get_user_id(request)
    if not user_id:
        token = get_bearer_token(request) or request.cookies.get("token")
        payload = verify_jwt_token(token) if token else None
        user_id = payload.get("sub") if payload else None

    if not user_id:
        return RedirectResponse(LOGIN_PAGE, status_code=302)

    user = db.users.find_one({"_id": user_id})
    if not is_admin_user(user):
        print(f"[admin] Non-admin {user_id} redirected home")
        return RedirectResponse("/", status_code=302)

    return RedirectResponse(CONSOLE_PAGE, status_code=302)


@router.get("/api/admin/dashboard")
async def get_dashboard(request: Request, db=Depends(get_db)):
    """All five console sections, loaded concurrently, with summary stats"""
    require_admin(request, db)
    state = await load_dashboard(db)
    return {**state.snapshot.to_dict(), "stats": state.stats()}
