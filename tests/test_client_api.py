"""TweetheartClient against the in-process app."""
import httpx
import pytest

from app.client.api import TweetheartClient


@pytest.fixture
async def make_client(client):
    # Depends on `client` for the database and service overrides.
    from app.main import app

    made = []

    def _make():
        http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
        made.append(TweetheartClient("http://testserver", http=http))
        return made[-1]

    yield _make
    for tweetheart_client in made:
        await tweetheart_client.close()


class TestTweetheartClient:

    async def test_match_and_promote_flow(self, make_client, events):
        alice = make_client()
        bob = make_client()
        a = await alice.signup("alice@example.com", "long-enough-pw", "Alice", birthdate="1994-02-02")
        b = await bob.signup("bob@example.com", "long-enough-pw", "Bob", birthdate="1993-03-03")
        assert alice.token and bob.token and alice.token != bob.token

        for c in (alice, bob):
            await c.update_location(40.7128, -74.0060)

        pager = alice.feed_pager(distance=0)
        await pager.load_next_page()
        assert pager.current["id"] == b["id"]
        await pager.swipe(180)
        assert pager.current is None

        result = await bob.swipe(a["id"], "like")
        assert result["is_match"] is True

        await alice.refresh_matches()
        [pending] = alice.matches.pending
        sent = await alice.send_message(pending["preparation_chat_id"], "hey")

        # Feed the recorded server events to Bob's state, as the socket would.
        await bob.refresh_matches()
        for room, event, payload in events.emitted:
            if room == f"user_{b['id']}":
                bob.dispatch(event, payload)

        assert bob.chats.chats.ids() == [sent["chat_id"]]
        assert bob.chats.total_unread == 1
        assert bob.matches.pending == []

        await bob.mark_read(sent["chat_id"])
        assert bob.chats.total_unread == 0
        assert [m["content"] for m in await bob.get_messages(sent["chat_id"])] == ["hey"]

    async def test_connect_socket_requires_session(self, make_client):
        with pytest.raises(RuntimeError):
            await make_client().connect_socket()

    async def test_refresh_session(self, make_client):
        carol = make_client()
        created = await carol.signup("carol@example.com", "long-enough-pw", "Carol")

        refreshed = await carol.refresh_session()

        assert refreshed["id"] == created["id"]
        assert carol.token
