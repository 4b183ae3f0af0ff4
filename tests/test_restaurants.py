from sqlalchemy import func, select

from restaurant_forum.database import AsyncSessionLocal
from restaurant_forum.models import Category, Comment, Favorite, Restaurant
from restaurant_forum.services import restaurant_service
from conftest import sign_in


async def _category(db, name):
    category = Category(name=name)
    db.add(category)
    await db.commit()
    return category


class TestListing:

    async def test_pagination_and_category_filter(self, test_session, create_user, create_restaurant):
        user = await create_user()
        thai = await _category(test_session, "Thai")
        for _ in range(10):
            await create_restaurant(category=thai)
        for _ in range(3):
            await create_restaurant()

        first = await restaurant_service.get_restaurants(test_session, user.id, page=1, limit=9)
        assert len(first.restaurants) == 9
        assert first.pagination.pages == [1, 2]
        assert first.pagination.next == 2

        second = await restaurant_service.get_restaurants(test_session, user.id, page=2, limit=9)
        assert len(second.restaurants) == 4
        assert second.pagination.prev == 1

        filtered = await restaurant_service.get_restaurants(
            test_session, user.id, category_id=thai.id, page=1, limit=20)
        assert len(filtered.restaurants) == 10
        assert all(r.category.name == "Thai" for r in filtered.restaurants)

    async def test_listing_marks_favorites_and_truncates(self, test_session, create_user, create_restaurant):
        user = await create_user()
        liked = await create_restaurant(description="x" * 200)
        await create_restaurant()
        test_session.add(Favorite(user_id=user.id, restaurant_id=liked.id))
        await test_session.commit()

        page = await restaurant_service.get_restaurants(test_session, user.id)
        cards = {r.id: r for r in page.restaurants}

        assert cards[liked.id].is_favorited is True
        assert cards[liked.id].description.endswith("...")
        assert len(cards[liked.id].description) < 200
        assert sum(r.is_favorited for r in page.restaurants) == 1

    async def test_listing_page_renders(self, client, create_user, create_restaurant):
        await create_user(email="me@example.com")
        await create_restaurant(name="Noodle Place")
        await sign_in(client, "me@example.com")

        response = await client.get("/restaurants")
        assert response.status_code == 200
        assert "Noodle Place" in response.text

    async def test_root_redirects_to_listing(self, client):
        response = await client.get("/")
        assert response.status_code == 302
        assert response.headers["location"] == "/restaurants"


class TestRestaurantPages:

    async def test_detail_increments_view_count(self, client, test_session, create_user, create_restaurant):
        await create_user(email="me@example.com")
        restaurant = await create_restaurant(name="Bistro")
        await sign_in(client, "me@example.com")

        for _ in range(2):
            response = await client.get(f"/restaurants/{restaurant.id}")
            assert response.status_code == 200
            assert "Bistro" in response.text

        views = await test_session.scalar(
            select(Restaurant.view_count).where(Restaurant.id == restaurant.id))
        assert views == 2

        dashboard = await client.get(f"/restaurants/{restaurant.id}/dashboard")
        assert dashboard.status_code == 200
        assert 'class="view-count">2<' in dashboard.text

    async def test_views_from_separate_sessions_all_count(self, test_session, create_user, create_restaurant):
        user = await create_user()
        restaurant = await create_restaurant()
        # test_session still holds the restaurant with view_count == 0

        async with AsyncSessionLocal() as other_db:
            await restaurant_service.get_restaurant(other_db, restaurant.id, user.id)

        detail = await restaurant_service.get_restaurant(test_session, restaurant.id, user.id)

        assert detail.view_count == 2
        views = await test_session.scalar(
            select(Restaurant.view_count).where(Restaurant.id == restaurant.id))
        assert views == 2

    async def test_missing_restaurant(self, client, create_user):
        await create_user(email="me@example.com")
        await sign_in(client, "me@example.com")

        assert (await client.get("/restaurants/31337")).status_code == 404
        assert (await client.get("/restaurants/31337/dashboard")).status_code == 404

    async def test_dashboard_counts(self, test_session, create_user, create_restaurant):
        user = await create_user()
        other = await create_user()
        restaurant = await create_restaurant()
        test_session.add_all([
            Comment(user_id=user.id, restaurant_id=restaurant.id, text="good"),
            Comment(user_id=other.id, restaurant_id=restaurant.id, text="bad"),
            Favorite(user_id=user.id, restaurant_id=restaurant.id),
        ])
        await test_session.commit()

        dashboard = await restaurant_service.get_dashboard(test_session, restaurant.id)

        assert dashboard.comment_count == 2
        assert dashboard.favorite_count == 1
        assert dashboard.like_count == 0

    async def test_top_restaurants_ordered_by_favorites(self, test_session, create_user, create_restaurant):
        users = [await create_user() for _ in range(3)]
        quiet = await create_restaurant(name="Quiet")
        busy = await create_restaurant(name="Busy")
        medium = await create_restaurant(name="Medium")
        for u in users:
            test_session.add(Favorite(user_id=u.id, restaurant_id=busy.id))
        test_session.add(Favorite(user_id=users[0].id, restaurant_id=medium.id))
        await test_session.commit()

        top = await restaurant_service.get_top_restaurants(test_session, users[0].id)

        assert [r.name for r in top] == ["Busy", "Medium", "Quiet"]
        assert [r.favorited_count for r in top] == [3, 1, 0]
        assert top[0].is_favorited is True
        assert top[2].is_favorited is False

    async def test_feeds(self, client, test_session, create_user, create_restaurant):
        user = await create_user(email="me@example.com")
        restaurant = await create_restaurant(name="Fresh Opening")
        test_session.add(Comment(user_id=user.id, restaurant_id=restaurant.id, text="Loved it"))
        await test_session.commit()
        await sign_in(client, "me@example.com")

        response = await client.get("/restaurants/feeds")
        assert response.status_code == 200
        assert "Fresh Opening" in response.text
        assert "Loved it" in response.text


class TestComments:

    async def test_post_comment(self, client, test_session, create_user, create_restaurant):
        await create_user(email="me@example.com")
        restaurant = await create_restaurant()
        await sign_in(client, "me@example.com")

        response = await client.post("/comments", data={
            "text": "Great dumplings", "restaurantId": str(restaurant.id)})

        assert response.status_code == 302
        assert response.headers["location"] == f"/restaurants/{restaurant.id}"
        page = await client.get(f"/restaurants/{restaurant.id}")
        assert "Great dumplings" in page.text

    async def test_empty_comment_rejected(self, client, test_session, create_user, create_restaurant):
        await create_user(email="me@example.com")
        restaurant = await create_restaurant()
        await sign_in(client, "me@example.com")

        response = await client.post("/comments", data={
            "text": "   ", "restaurantId": str(restaurant.id)})

        assert response.status_code == 400
        assert await test_session.scalar(select(func.count(Comment.id))) == 0

    async def test_only_admin_deletes_comments(self, client, other_client, test_session, create_user, create_restaurant):
        author = await create_user(email="author@example.com")
        await create_user(email="admin@example.com", is_admin=True)
        restaurant = await create_restaurant()
        comment = Comment(user_id=author.id, restaurant_id=restaurant.id, text="meh")
        test_session.add(comment)
        await test_session.commit()
        await sign_in(client, "author@example.com")
        await sign_in(other_client, "admin@example.com")

        assert (await client.delete(f"/comments/{comment.id}")).status_code == 403

        response = await other_client.post(f"/comments/{comment.id}?_method=DELETE")
        assert response.status_code == 302
        assert response.headers["location"] == f"/restaurants/{restaurant.id}"
        assert await test_session.scalar(select(func.count(Comment.id))) == 0

        assert (await other_client.delete(f"/comments/{comment.id}")).status_code == 404
