from fastapi import APIRouter, Depends, Form

from ..dependencies import get_context
from ..exceptions import ForumError
from ..schemas import FormRepopulation
from ..services import auth_service
from ..services.session_service import FLASH_ERROR, FLASH_SUCCESS, RequestContext
from ..templating import render
from ..utils import redirect

router = APIRouter(tags=["authentication"])


@router.get("/signup")
async def sign_up_page(context: RequestContext = Depends(get_context)):
    form = await context.consume_form()
    return await render(context, "signup.html", {"form": form})


@router.post("/signup")
async def sign_up(
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    password_check: str = Form("", alias="passwordCheck"),
    context: RequestContext = Depends(get_context),
):
    """
    Register a new account.

    Failures are reported with a flash message and the submitted name and
    email are handed back so the form can be filled in again.
    """
    try:
        await auth_service.sign_up(context.db, name, email, password, password_check)
    except ForumError as e:
        await context.flash(FLASH_ERROR, e.message)
        await context.flash_form(FormRepopulation(name=name, email=email))
        return redirect("/signup")

    await context.flash(FLASH_SUCCESS, "Account created successfully!")
    return redirect("/signin")


@router.get("/signin")
async def sign_in_page(context: RequestContext = Depends(get_context)):
    form = await context.consume_form()
    return await render(context, "signin.html", {"form": form})


@router.post("/signin")
async def sign_in(
    email: str = Form(""),
    password: str = Form(""),
    context: RequestContext = Depends(get_context),
):
    try:
        user = await auth_service.authenticate(context.db, email, password)
    except ForumError as e:
        await context.flash(FLASH_ERROR, e.message)
        await context.flash_form(FormRepopulation(email=email))
        return redirect("/signin")

    await context.login(user)
    await context.flash(FLASH_SUCCESS, "Signed in successfully!")
    return redirect("/restaurants")


@router.get("/logout")
async def logout(context: RequestContext = Depends(get_context)):
    await context.logout()
    await context.flash(FLASH_SUCCESS, "Signed out successfully!")
    return redirect("/signin")
