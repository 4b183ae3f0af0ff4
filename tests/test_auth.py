import pytest
from sqlalchemy import func, select

from restaurant_forum.exceptions import AuthenticationError, ConflictError, ValidationError
from restaurant_forum.models import User, UserSession
from restaurant_forum.services import auth_service
from conftest import DEFAULT_PASSWORD, sign_in


async def _user_count(db, email):
    return await db.scalar(select(func.count(User.id)).where(User.email == email))


class TestSignUp:
    """Registration flow."""

    async def test_sign_up_creates_user_with_hashed_password(self, client, test_session):
        response = await client.post("/signup", data={
            "name": "Alice",
            "email": "alice@example.com",
            "password": "pa55word",
            "passwordCheck": "pa55word",
        })

        assert response.status_code == 302
        assert response.headers["location"] == "/signin"

        result = await test_session.execute(
            select(User.name, User.password).where(User.email == "alice@example.com"))
        name, password = result.one()
        assert name == "Alice"
        assert password != "pa55word"
        assert auth_service.verify_password("pa55word", password)

        page = await client.get("/signin")
        assert "Account created successfully!" in page.text

    async def test_password_mismatch_creates_nothing(self, client, test_session):
        response = await client.post("/signup", data={
            "name": "Bob",
            "email": "bob@example.com",
            "password": "one",
            "passwordCheck": "two",
        })

        assert response.status_code == 302
        assert response.headers["location"] == "/signup"
        assert await _user_count(test_session, "bob@example.com") == 0

        # Error message and submitted values survive the redirect, once
        page = await client.get("/signup")
        assert "Passwords do not match!" in page.text
        assert 'value="Bob"' in page.text
        assert 'value="bob@example.com"' in page.text

        again = await client.get("/signup")
        assert "Passwords do not match!" not in again.text
        assert 'value="Bob"' not in again.text

    async def test_duplicate_email_creates_nothing(self, client, test_session, create_user):
        await create_user(email="taken@example.com")

        response = await client.post("/signup", data={
            "name": "Copycat",
            "email": "taken@example.com",
            "password": "pw",
            "passwordCheck": "pw",
        })

        assert response.status_code == 302
        assert response.headers["location"] == "/signup"
        assert await _user_count(test_session, "taken@example.com") == 1
        page = await client.get("/signup")
        assert "Email already exists!" in page.text

    async def test_service_rejects_mismatch_and_duplicates(self, test_session):
        with pytest.raises(ValidationError):
            await auth_service.sign_up(test_session, "Eve", "eve@example.com", "a", "b")

        await auth_service.sign_up(test_session, "Eve", "eve@example.com", "a", "a")
        with pytest.raises(ConflictError):
            await auth_service.sign_up(test_session, "Eve 2", "eve@example.com", "a", "a")

        assert await _user_count(test_session, "eve@example.com") == 1

    async def test_password_over_bcrypt_limit_is_rejected(self, client, test_session):
        long_password = "p" * 80

        response = await client.post("/signup", data={
            "name": "Long",
            "email": "long@example.com",
            "password": long_password,
            "passwordCheck": long_password,
        })

        assert response.status_code == 302
        assert response.headers["location"] == "/signup"
        assert await _user_count(test_session, "long@example.com") == 0
        page = await client.get("/signup")
        assert "Password must be at most 72 bytes long!" in page.text

        # Multi-byte characters count by their UTF-8 length
        with pytest.raises(ValidationError):
            await auth_service.sign_up(test_session, "Wide", "wide@example.com", "é" * 40, "é" * 40)


class TestSignIn:
    """Local email/password sign in, sessions and logout."""

    async def test_sign_in_sets_session_cookie(self, client, create_user):
        await create_user(name="Carol", email="carol@example.com")

        response = await sign_in(client, "carol@example.com")
        assert "forum_session" in response.headers.get("set-cookie", "")

        page = await client.get("/restaurants")
        assert page.status_code == 200
        assert "Signed in successfully!" in page.text
        assert "Carol" in page.text

    async def test_wrong_password_redirects_back_with_email(self, client, create_user):
        await create_user(email="dave@example.com")

        response = await client.post("/signin", data={
            "email": "dave@example.com", "password": "nope"})

        assert response.status_code == 302
        assert response.headers["location"] == "/signin"
        page = await client.get("/signin")
        assert "Incorrect email or password!" in page.text
        assert 'value="dave@example.com"' in page.text

        # Still anonymous
        assert (await client.get("/restaurants")).headers["location"] == "/signin"

    async def test_overlong_password_fails_like_a_wrong_one(self, client, test_session, create_user):
        await create_user(email="grace@example.com")

        response = await client.post("/signin", data={
            "email": "grace@example.com", "password": "p" * 80})

        assert response.status_code == 302
        assert response.headers["location"] == "/signin"
        page = await client.get("/signin")
        assert "Incorrect email or password!" in page.text

        with pytest.raises(AuthenticationError):
            await auth_service.authenticate(test_session, "grace@example.com", "p" * 80)

    async def test_logout_ends_session(self, client, test_session, create_user):
        user = await create_user(email="erin@example.com")
        await sign_in(client, "erin@example.com")

        response = await client.get("/logout")
        assert response.status_code == 302
        assert response.headers["location"] == "/signin"

        remaining = await test_session.scalar(
            select(func.count(UserSession.id)).where(UserSession.user_id == user.id))
        assert remaining == 0

        page = await client.get("/signin")
        assert "Signed out successfully!" in page.text
        assert (await client.get("/restaurants")).headers["location"] == "/signin"

    async def test_anonymous_request_is_sent_to_sign_in(self, client):
        response = await client.get("/users/top")

        assert response.status_code == 302
        assert response.headers["location"] == "/signin"
        page = await client.get("/signin")
        assert "Please sign in first." in page.text

    async def test_tampered_cookie_is_anonymous(self, client, other_client, create_user):
        await create_user(email="frank@example.com")
        await sign_in(client, "frank@example.com", DEFAULT_PASSWORD)
        assert (await client.get("/restaurants")).status_code == 200

        response = await other_client.get(
            "/restaurants", headers={"cookie": "forum_session=not-a-valid-token"})
        assert response.status_code == 302
        assert response.headers["location"] == "/signin"
