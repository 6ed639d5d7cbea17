"""Tests for the bookmark endpoints."""
from httpx import AsyncClient

from tests.fakes import InMemoryGateway, sign_in_browser


async def test_bookmarks__anonymous_gets_401(client: AsyncClient) -> None:
    """Every bookmark endpoint requires a signed-in user."""
    assert (await client.get("/bookmarks/")).status_code == 401
    assert (
        await client.post("/bookmarks/", json={"title": "T", "url": "https://t.example.com"})
    ).status_code == 401
    assert (await client.delete("/bookmarks/1")).status_code == 401


async def test_bookmarks__started_but_unfinished_sign_in_gets_401(
    client: AsyncClient,
) -> None:
    """A browser with a cookie but no completed sign-in is still anonymous."""
    await client.get("/auth/sign-in")

    assert (await client.get("/bookmarks/")).status_code == 401


async def test_bookmarks__other_browser_cannot_act_as_signed_in_user(
    client: AsyncClient, other_client: AsyncClient, gateway: InMemoryGateway,
) -> None:
    """A browser without the cookie sees nothing of another browser's user."""
    mine = gateway.seed("user-1", "Private", "https://private.example.com")
    await sign_in_browser(client, gateway)

    assert (await other_client.get("/bookmarks/")).status_code == 401
    assert (await other_client.delete(f"/bookmarks/{mine['id']}")).status_code == 401
    assert "Private" not in (await other_client.get("/")).text
    assert [b["title"] for b in (await client.get("/bookmarks/")).json()] == ["Private"]


async def test_bookmarks__two_browsers_see_their_own_rows(
    client: AsyncClient, other_client: AsyncClient, gateway: InMemoryGateway,
) -> None:
    """Each signed-in browser lists only its own user's bookmarks."""
    gateway.seed("user-1", "One", "https://one.example.com")
    gateway.seed("user-2", "Two", "https://two.example.com")
    await sign_in_browser(client, gateway, "user-1")
    await sign_in_browser(other_client, gateway, "user-2")

    assert [b["title"] for b in (await client.get("/bookmarks/")).json()] == ["One"]
    assert [b["title"] for b in (await other_client.get("/bookmarks/")).json()] == ["Two"]


async def test_list_bookmarks__newest_first(
    client: AsyncClient, gateway: InMemoryGateway,
) -> None:
    """The collection comes back newest first."""
    gateway.seed("user-1", "A", "https://a.example.com")
    gateway.seed("user-1", "B", "https://b.example.com")
    gateway.seed("user-2", "Other", "https://other.example.com")
    await sign_in_browser(client, gateway)

    response = await client.get("/bookmarks/")

    assert response.status_code == 200
    assert [b["title"] for b in response.json()] == ["B", "A"]


async def test_create_bookmark__appears_in_list(
    client: AsyncClient, gateway: InMemoryGateway,
) -> None:
    """Adding a bookmark shows it in the list."""
    await sign_in_browser(client, gateway)

    response = await client.post(
        "/bookmarks/",
        json={"title": "  Example ", "url": " http://example.com "},
    )

    assert response.status_code == 200
    assert response.json() == {"accepted": True}
    data = (await client.get("/bookmarks/")).json()
    assert [(b["title"], b["url"], b["user_id"]) for b in data] == [
        ("Example", "http://example.com", "user-1"),
    ]


async def test_create_bookmark__insert_reaches_other_browser_of_same_user(
    client: AsyncClient, other_client: AsyncClient, gateway: InMemoryGateway,
) -> None:
    """A second browser signed in as the same user is refreshed by the feed."""
    await sign_in_browser(client, gateway, "user-1")
    await sign_in_browser(other_client, gateway, "user-1")

    await client.post("/bookmarks/", json={"title": "Shared", "url": "https://s.example.com"})

    assert [b["title"] for b in (await other_client.get("/bookmarks/")).json()] == ["Shared"]


async def test_create_bookmark__blank_fields_ignored(
    client: AsyncClient, gateway: InMemoryGateway,
) -> None:
    """Whitespace-only input is not inserted."""
    await sign_in_browser(client, gateway)

    response = await client.post("/bookmarks/", json={"title": "   ", "url": "http://example.com"})

    assert response.json() == {"accepted": False}
    assert "insert" not in gateway.calls


async def test_create_bookmark__script_url_rejected(
    client: AsyncClient, gateway: InMemoryGateway,
) -> None:
    """Only http(s) links are accepted."""
    await sign_in_browser(client, gateway)

    for url in ("javascript:alert(1)", "JavaScript:alert(1)", "data:text/html,x", "example.com"):
        response = await client.post("/bookmarks/", json={"title": "X", "url": url})
        assert response.status_code == 422, url

    assert "insert" not in gateway.calls


async def test_delete_bookmark__removes_row(
    client: AsyncClient, gateway: InMemoryGateway,
) -> None:
    """Deleting the older of two bookmarks leaves the newer one."""
    a = gateway.seed("user-1", "A", "https://a.example.com")
    gateway.seed("user-1", "B", "https://b.example.com")
    await sign_in_browser(client, gateway)

    response = await client.delete(f"/bookmarks/{a['id']}")

    assert response.json() == {"accepted": True}
    assert [b["title"] for b in (await client.get("/bookmarks/")).json()] == ["B"]
